import sys
import os

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from market_deploy import records
from market_deploy.models import DeploymentResult


def test_write_then_read(tmp_path):
    result = DeploymentResult(contract_address="0x123", transaction_hash="0xabc", network="core_testnet2")
    p = records.write_deployment(tmp_path, "contracts/PredictionMarket.sol:PredictionMarket", result)

    assert p == tmp_path / "core_testnet2" / "PredictionMarket.json"
    rec = records.read_deployment(tmp_path, "core_testnet2", "PredictionMarket")
    assert rec["contract_address"] == "0x123"
    assert rec["artifact"] == "contracts/PredictionMarket.sol:PredictionMarket"
    assert rec["deployed_at"].endswith("Z")


def test_missing_record(tmp_path):
    assert records.read_deployment(tmp_path, "core_testnet2", "PredictionMarket") is None


def test_rejects_path_traversal(tmp_path):
    with pytest.raises(ValueError):
        records.read_deployment(tmp_path, "..", "PredictionMarket")
