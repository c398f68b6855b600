import dataclasses
import os
from typing import Dict, Mapping, Optional


class ConfigError(RuntimeError):
    pass


# Known networks; DEPLOY_RPC_URL / DEPLOY_CHAIN_ID override these.
NETWORKS: Dict[str, Dict[str, object]] = {
    "core_testnet2": {"rpc_url": "https://rpc.test2.btcs.network", "chain_id": 1114},
    "localhost": {"rpc_url": "http://127.0.0.1:8545", "chain_id": 31337},
    "hardhat": {"rpc_url": "http://127.0.0.1:8545", "chain_id": 31337},
}


@dataclasses.dataclass(frozen=True)
class Settings:
    network: str = "core_testnet2"
    artifact: str = "PredictionMarket"
    rpc_url: Optional[str] = None
    rpc_api_key: Optional[str] = None
    chain_id: Optional[int] = None
    private_key: Optional[str] = None
    artifacts_dir: str = "artifacts"
    records_dir: str = "deployments"
    confirmations: int = 1
    confirm_timeout: Optional[float] = 300
    poll_interval: float = 2.0
    verify_command: str = "npx hardhat verify"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        network = env.get("DEPLOY_NETWORK") or cls.network
        known = NETWORKS.get(network, {})

        rpc_url = env.get("DEPLOY_RPC_URL") or known.get("rpc_url")
        if not rpc_url:
            raise ConfigError(f"Unknown network {network!r}; set DEPLOY_RPC_URL")

        chain_id = known.get("chain_id")
        if env.get("DEPLOY_CHAIN_ID"):
            chain_id = _parse(env, "DEPLOY_CHAIN_ID", int)

        timeout: Optional[float] = cls.confirm_timeout
        if "DEPLOY_CONFIRM_TIMEOUT" in env:
            # 0 or empty: wait for as long as it takes
            timeout = _parse(env, "DEPLOY_CONFIRM_TIMEOUT", float, 0) or None

        return cls(
            network=network,
            artifact=env.get("DEPLOY_ARTIFACT") or cls.artifact,
            rpc_url=rpc_url,
            rpc_api_key=env.get("DEPLOY_RPC_API_KEY") or None,
            chain_id=chain_id,
            private_key=env.get("DEPLOY_PRIVATE_KEY") or None,
            artifacts_dir=env.get("DEPLOY_ARTIFACTS_DIR") or cls.artifacts_dir,
            records_dir=env.get("DEPLOY_RECORDS_DIR") or cls.records_dir,
            confirmations=_parse(env, "DEPLOY_CONFIRMATIONS", int, cls.confirmations),
            confirm_timeout=timeout,
            poll_interval=_parse(env, "DEPLOY_POLL_INTERVAL", float, cls.poll_interval),
            verify_command=env.get("DEPLOY_VERIFY_COMMAND") or cls.verify_command,
        )


def _parse(env: Mapping[str, str], key: str, cast, default=None):
    raw = env.get(key)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}")
