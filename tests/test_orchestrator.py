import io
import itertools
import sys
import os

import pytest

# Ensure project root is on sys.path so tests can import local package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from market_deploy.artifacts import Artifact, ArtifactNotFoundError
from market_deploy.chain import Receipt, SubmissionError, TransactionRevertedError
from market_deploy.models import DeployState, DeploymentFailure, DeploymentRequest, DeploymentResult, Stage
from market_deploy.orchestrator import DeploymentOrchestrator


class FakeResolver:
    def __init__(self, known=("PredictionMarket",)):
        self.known = known
        self.calls = []

    def get_artifact(self, name):
        self.calls.append(name)
        if name not in self.known:
            raise ArtifactNotFoundError(f"Artifact for contract {name!r} not found")
        return Artifact(name=name, source_name=f"contracts/{name}.sol", abi=[], bytecode="0x6080")


class FakePending:
    def __init__(self, tx_hash, address, error=None):
        self.transaction_hash = tx_hash
        self._address = address
        self._error = error

    def await_confirmation(self):
        if self._error:
            raise self._error
        return Receipt(address=self._address, transaction_hash=self.transaction_hash, block_number=7)


class FakeClient:
    def __init__(self, submit_error=None, confirm_error=None):
        self.submit_error = submit_error
        self.confirm_error = confirm_error
        self.submitted = []
        self._counter = itertools.count(1)

    def submit(self, artifact, constructor_args=()):
        self.submitted.append((artifact.name, tuple(constructor_args)))
        if self.submit_error:
            raise self.submit_error
        n = next(self._counter)
        return FakePending(f"0xabc{n}", f"0x{n:040x}", self.confirm_error)


def make(resolver=None, client=None):
    out = io.StringIO()
    orch = DeploymentOrchestrator(resolver or FakeResolver(), client or FakeClient(), "core_testnet2", out=out)
    return orch, out


def test_prediction_market_scenario_prints_address_and_hash():
    class ScenarioClient(FakeClient):
        def submit(self, artifact, constructor_args=()):
            return FakePending("0xabc", "0x123")

    orch, out = make(client=ScenarioClient())
    result = orch.deploy(DeploymentRequest("PredictionMarket"))

    assert isinstance(result, DeploymentResult)
    assert result.ok
    assert result.contract_address == "0x123"
    assert result.transaction_hash == "0xabc"
    assert result.network == "core_testnet2"
    text = out.getvalue()
    assert "PredictionMarket deployed to: 0x123" in text
    assert "Deployment transaction: 0xabc" in text
    assert "npx hardhat verify --network core_testnet2 0x123" in text.splitlines()
    assert orch.history == [
        DeployState.READY, DeployState.BUILDING, DeployState.SUBMITTING,
        DeployState.CONFIRMING, DeployState.DONE,
    ]


def test_unknown_artifact_fails_build_lookup_without_touching_chain():
    client = FakeClient()
    orch, _ = make(client=client)

    outcome = orch.deploy(DeploymentRequest("NoSuchContract"))

    assert isinstance(outcome, DeploymentFailure)
    assert outcome.stage == Stage.BUILD_LOOKUP
    assert "NoSuchContract" in outcome.cause
    assert "ArtifactNotFoundError" in outcome.detail
    assert client.submitted == []
    assert orch.state == DeployState.FAILED
    assert orch.history == [DeployState.READY, DeployState.BUILDING, DeployState.FAILED]


def test_known_artifact_reaches_submission_with_constructor_args():
    client = FakeClient()
    orch, _ = make(client=client)

    orch.deploy(DeploymentRequest("PredictionMarket", constructor_args=(1, "0xdead")))

    assert client.submitted == [("PredictionMarket", (1, "0xdead"))]
    assert DeployState.SUBMITTING in orch.history


def test_submit_failure_produces_no_result():
    client = FakeClient(submit_error=SubmissionError("nonce too low"))
    orch, out = make(client=client)

    outcome = orch.deploy(DeploymentRequest("PredictionMarket"))

    assert not outcome.ok
    assert outcome.stage == Stage.SUBMIT
    assert outcome.cause == "SubmissionError: nonce too low"
    assert "deployed to" not in out.getvalue()
    assert len(client.submitted) == 1


def test_revert_is_a_confirm_failure():
    client = FakeClient(confirm_error=TransactionRevertedError("reverted in block 0x10"))
    orch, _ = make(client=client)

    outcome = orch.deploy(DeploymentRequest("PredictionMarket"))

    assert outcome.stage == Stage.CONFIRM
    assert orch.history[-2:] == [DeployState.CONFIRMING, DeployState.FAILED]


def test_repeated_deploys_are_independent():
    client = FakeClient()
    orch, _ = make(client=client)
    request = DeploymentRequest("PredictionMarket")

    first = orch.deploy(request)
    second = orch.deploy(request)

    assert first.ok and second.ok
    assert first.contract_address != second.contract_address
    assert len(client.submitted) == 2
    assert orch.history[0] == DeployState.READY
    assert orch.history.count(DeployState.DONE) == 1


def test_request_is_immutable():
    request = DeploymentRequest("PredictionMarket")
    with pytest.raises(Exception):
        request.artifact_name = "Other"
