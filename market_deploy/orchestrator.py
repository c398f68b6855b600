import sys
import traceback
from typing import IO, List, Optional

from market_deploy.models import (
    DeployState,
    DeploymentFailure,
    DeploymentOutcome,
    DeploymentRequest,
    DeploymentResult,
    Stage,
)

_ORDER = [
    DeployState.READY,
    DeployState.BUILDING,
    DeployState.SUBMITTING,
    DeployState.CONFIRMING,
    DeployState.DONE,
]


class DeploymentOrchestrator:
    """Resolve an artifact, submit it, wait for confirmation.

    Every call to `deploy` is a single-shot run returning either a
    DeploymentResult or a DeploymentFailure. Nothing is retried: a failed
    submission is reported as-is, since resubmitting without nonce/fee
    adjustment can leave duplicate or stuck transactions.
    """

    def __init__(self, resolver, client, network: str, *,
                 verify_command: str = "npx hardhat verify", out: Optional[IO[str]] = None):
        self.resolver = resolver
        self.client = client
        self.network = network
        self.verify_command = verify_command
        self.out = out
        self.state = DeployState.READY
        self.history: List[DeployState] = [DeployState.READY]

    def deploy(self, request: DeploymentRequest) -> DeploymentOutcome:
        self.state = DeployState.READY
        self.history = [DeployState.READY]
        name = request.artifact_name

        self._advance(DeployState.BUILDING)
        self._print(f"Deploying {name} contract to {self.network}...")
        try:
            artifact = self.resolver.get_artifact(name)
        except Exception as e:
            return self._fail(Stage.BUILD_LOOKUP, e)

        self._advance(DeployState.SUBMITTING)
        try:
            pending = self.client.submit(artifact, request.constructor_args)
        except Exception as e:
            return self._fail(Stage.SUBMIT, e)

        self._advance(DeployState.CONFIRMING)
        self._print(f"Deployment transaction: {pending.transaction_hash}")
        self._print("Waiting for confirmation...")
        try:
            receipt = pending.await_confirmation()
        except Exception as e:
            return self._fail(Stage.CONFIRM, e)

        result = DeploymentResult(
            contract_address=receipt.address,
            transaction_hash=receipt.transaction_hash,
            network=self.network,
        )
        self._advance(DeployState.DONE)
        self._print(f"{name} deployed to: {result.contract_address}")
        self._print(f"Deployment transaction: {result.transaction_hash}")
        self._print("")
        self._print("Verify with:")
        self._print(self.verification_hint(result.contract_address))
        return result

    def verification_hint(self, address: str) -> str:
        return f"{self.verify_command} --network {self.network} {address}"

    def _advance(self, state: DeployState) -> None:
        if _ORDER.index(state) != _ORDER.index(self.state) + 1:
            raise RuntimeError(f"Invalid transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _fail(self, stage: Stage, error: BaseException) -> DeploymentFailure:
        self.state = DeployState.FAILED
        self.history.append(DeployState.FAILED)
        return DeploymentFailure(
            stage=stage,
            cause=f"{type(error).__name__}: {error}",
            detail="".join(traceback.format_exception(type(error), error, error.__traceback__)),
        )

    def _print(self, line: str) -> None:
        print(line, file=self.out or sys.stdout)
