"""Deploy the configured contract artifact.

Takes no flags. Network, credentials and artifact are read from the
environment (see market_deploy.config). Exits 0 on success and 1 on any
failure, with the error written to stderr.
"""
import logging
import os
import sys
from typing import Optional

from market_deploy import records
from market_deploy.artifacts import ArtifactStore
from market_deploy.chain import ChainClient, JsonRpcClient
from market_deploy.config import ConfigError, Settings
from market_deploy.models import DeploymentRequest
from market_deploy.orchestrator import DeploymentOrchestrator


def build_orchestrator(settings: Settings) -> DeploymentOrchestrator:
    rpc = JsonRpcClient(settings.rpc_url, api_key=settings.rpc_api_key)
    client = ChainClient(
        rpc,
        settings.private_key,
        chain_id=settings.chain_id,
        confirmations=settings.confirmations,
        confirm_timeout=settings.confirm_timeout,
        poll_interval=settings.poll_interval,
    )
    return DeploymentOrchestrator(
        ArtifactStore(settings.artifacts_dir),
        client,
        settings.network,
        verify_command=settings.verify_command,
    )


def log_level() -> str:
    level = os.getenv("DEPLOY_LOG_LEVEL", "WARNING").upper()
    if not isinstance(logging.getLevelName(level), int):
        return "WARNING"
    return level


def main(argv=None) -> int:
    logging.basicConfig(
        level=log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    return run(settings, build_orchestrator(settings))


def run(settings: Settings, orchestrator: DeploymentOrchestrator) -> int:
    request = DeploymentRequest(artifact_name=settings.artifact)
    outcome = orchestrator.deploy(request)
    if not outcome.ok:
        print(f"Deployment failed at {outcome.stage.value}: {outcome.cause}", file=sys.stderr)
        if outcome.detail:
            print(outcome.detail, file=sys.stderr, end="")
        return 1

    try:
        path = records.write_deployment(settings.records_dir, request.artifact_name, outcome)
    except (OSError, ValueError) as e:
        # the contract is live; losing the record must not hide that
        print(f"Warning: could not write deployment record: {e}", file=sys.stderr)
    else:
        print(f"Wrote {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
