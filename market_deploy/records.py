"""Durable record of successful deployments.

One JSON file per network and artifact, e.g.
`deployments/core_testnet2/PredictionMarket.json`. Re-deploying overwrites
the file; earlier addresses stay recoverable from the chain itself.
"""
import datetime
import json
import re
from pathlib import Path
from typing import Optional, Union

from market_deploy.models import DeploymentResult

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


def record_path(records_dir: Union[str, Path], network: str, artifact_name: str) -> Path:
    # fully qualified names (contracts/Foo.sol:Foo) are stored under the contract name
    name = artifact_name.rsplit(":", 1)[-1]
    for part in (network, name):
        if not _SAFE_NAME.match(part):
            raise ValueError(f"Invalid record name: {part!r}")
    return Path(records_dir) / network / f"{name}.json"


def write_deployment(records_dir: Union[str, Path], artifact_name: str,
                     result: DeploymentResult) -> Path:
    p = record_path(records_dir, result.network, artifact_name)
    p.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "artifact": artifact_name,
        "network": result.network,
        "contract_address": result.contract_address,
        "transaction_hash": result.transaction_hash,
        "deployed_at": datetime.datetime.now(datetime.timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    p.write_text(json.dumps(payload, indent=2) + "\n")
    return p


def read_deployment(records_dir: Union[str, Path], network: str, artifact_name: str) -> Optional[dict]:
    p = record_path(records_dir, network, artifact_name)
    if not p.exists():
        return None
    return json.loads(p.read_text())
