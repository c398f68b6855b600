"""Lookup of compiled contract artifacts.

Artifacts are read from a Hardhat build tree, i.e. the JSON files that
`npx hardhat compile` writes under `artifacts/<sourceName>/<ContractName>.json`.
Debug files (`*.dbg.json`) and the `build-info` directory are ignored.
"""
import dataclasses
import json
from pathlib import Path
from typing import Any, Dict, List, Union


class ArtifactError(LookupError):
    pass


class ArtifactNotFoundError(ArtifactError):
    pass


class AmbiguousArtifactError(ArtifactError):
    pass


class ArtifactNotDeployableError(ArtifactError):
    pass


@dataclasses.dataclass(frozen=True)
class Artifact:
    name: str
    source_name: str
    abi: List[Dict[str, Any]]
    bytecode: str

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.name}"

    def constructor_inputs(self) -> List[Dict[str, Any]]:
        for entry in self.abi:
            if entry.get("type") == "constructor":
                return list(entry.get("inputs", []))
        return []


class ArtifactStore:
    """Build resolver backed by a Hardhat `artifacts/` directory."""

    def __init__(self, root: Union[str, Path] = "artifacts"):
        self.root = Path(root)

    def get_artifact(self, name: str) -> Artifact:
        path = self._locate(name)
        try:
            data = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            raise ArtifactError(f"Could not read artifact {path}: {e}") from e

        artifact = Artifact(
            name=data.get("contractName", path.stem),
            source_name=data.get("sourceName", path.parent.name),
            abi=data.get("abi", []),
            bytecode=data.get("bytecode") or "0x",
        )
        _check_deployable(artifact)
        return artifact

    def _locate(self, name: str) -> Path:
        if not self.root.is_dir():
            raise ArtifactNotFoundError(
                f"Artifacts directory {self.root} not found; compile the contracts first"
            )

        if ":" in name:
            # fully qualified: contracts/Foo.sol:Foo
            source, contract = name.rsplit(":", 1)
            path = self.root / source / f"{contract}.json"
            if not path.is_file():
                raise ArtifactNotFoundError(f"Artifact for {name} not found")
            return path

        matches = sorted(
            p for p in self.root.rglob(f"{name}.json")
            if "build-info" not in p.parts and not p.name.endswith(".dbg.json")
        )
        if not matches:
            raise ArtifactNotFoundError(f"Artifact for contract {name!r} not found in {self.root}")
        if len(matches) > 1:
            candidates = ", ".join(
                f"{p.parent.relative_to(self.root).as_posix()}:{name}" for p in matches
            )
            raise AmbiguousArtifactError(
                f"Multiple artifacts for {name!r}; use a fully qualified name: {candidates}"
            )
        return matches[0]


def _check_deployable(artifact: Artifact) -> None:
    code = artifact.bytecode
    if code in ("", "0x"):
        raise ArtifactNotDeployableError(
            f"{artifact.name} has no bytecode (interface or abstract contract?)"
        )
    if "__$" in code:
        raise ArtifactNotDeployableError(f"{artifact.name} has unlinked library references")
