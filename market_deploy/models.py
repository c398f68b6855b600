import dataclasses
import enum
from typing import Any, Tuple, Union


class Stage(str, enum.Enum):
    BUILD_LOOKUP = "BUILD_LOOKUP"
    SUBMIT = "SUBMIT"
    CONFIRM = "CONFIRM"


class DeployState(str, enum.Enum):
    READY = "READY"
    BUILDING = "BUILDING"
    SUBMITTING = "SUBMITTING"
    CONFIRMING = "CONFIRMING"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclasses.dataclass(frozen=True)
class DeploymentRequest:
    artifact_name: str
    constructor_args: Tuple[Any, ...] = ()


@dataclasses.dataclass(frozen=True)
class DeploymentResult:
    contract_address: str
    transaction_hash: str
    network: str

    ok = True

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclasses.dataclass(frozen=True)
class DeploymentFailure:
    stage: Stage
    cause: str
    detail: str = ""

    ok = False

    def to_dict(self) -> dict:
        return {"stage": self.stage.value, "cause": self.cause}


DeploymentOutcome = Union[DeploymentResult, DeploymentFailure]
