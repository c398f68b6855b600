from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from flask_cors import CORS
import os
import threading
import time
from typing import Dict

from eth_account import Account
from eth_account.messages import encode_defunct

from market_deploy import records
from market_deploy.cli import build_orchestrator
from market_deploy.config import Settings
from market_deploy.models import DeploymentRequest

app = Flask(__name__)
# Allow browser calls to the relayer endpoints.
CORS(app, resources={r"/relay/*": {"origins": "*"}, r"/deployments/*": {"origins": "*"}, r"/health": {"origins": "*"}})

@app.errorhandler(Exception)
def handle_exception(e):
    if isinstance(e, HTTPException):
        return jsonify({"error": e.description}), e.code
    return jsonify({"error": str(e)}), 500
nonces: Dict[str, str] = {}
# one deployment at a time; each holds the deployer nonce until confirmed
deploy_lock = threading.Lock()


class Forbidden(Exception):
    pass


@app.errorhandler(Forbidden)
def handle_forbidden(e):
    return jsonify({"error": str(e)}), 403


def _message(action: str, address: str, nonce: str, ts: int) -> str:
    return f"PredictionMarket Deploy Relayer\nAction: {action}\nAddress: {address}\nNonce: {nonce}\nTimestamp: {ts}"

def _verify_signature(data, action: str):
    require_sig = os.getenv("RELAYER_REQUIRE_SIGNATURE", "1") == "1"
    if not require_sig:
        return

    admin = os.getenv("RELAYER_ADMIN_ADDRESS", "")
    if not admin:
        raise Forbidden("RELAYER_ADMIN_ADDRESS env not set")

    address = data.get("address", "")
    signature = data.get("signature", "")
    nonce = data.get("nonce", "")
    ts = int(data.get("timestamp", 0))

    if not address or not signature or not nonce or not ts:
        raise Forbidden("Missing signature fields")
    if address.lower() != admin.lower():
        raise Forbidden("Address is not the relayer admin")

    # basic replay protection
    if nonces.get(address) != nonce:
        raise Forbidden("Invalid nonce")
    if abs(int(time.time()) - ts) > 300:
        raise Forbidden("Signature expired")

    msg = _message(action, address, nonce, ts)
    recovered = Account.recover_message(encode_defunct(text=msg), signature=signature)
    if recovered.lower() != address.lower():
        raise Forbidden("Invalid signature")

    # consume nonce
    nonces.pop(address, None)


@app.route('/health', methods=['GET', 'HEAD'])
def health():
    return jsonify({"ok": True}), 200


@app.route('/deployments/<network>/<artifact>', methods=['GET'])
def deployment(network, artifact):
    records_dir = os.getenv("DEPLOY_RECORDS_DIR") or "deployments"
    try:
        record = records.read_deployment(records_dir, network, artifact)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    if record is None:
        return jsonify({"error": "no deployment recorded"}), 404
    return jsonify(record)


@app.route('/relay/nonce', methods=['POST'])
def relay_nonce():
    data = request.json or {}
    address = data.get("address", "")
    if not address:
        return jsonify({"error": "address required"}), 400
    nonce = os.urandom(8).hex()
    nonces[address] = nonce
    return jsonify({"nonce": nonce, "timestamp": int(time.time())})


@app.route('/relay/deploy', methods=['POST'])
def relay_deploy():
    data = request.json or {}
    _verify_signature(data, "deploy")
    settings = Settings.from_env()
    artifact = data.get("artifact") or settings.artifact

    if not deploy_lock.acquire(blocking=False):
        return jsonify({"error": "a deployment is already in progress"}), 409
    try:
        outcome = build_orchestrator(settings).deploy(DeploymentRequest(artifact_name=artifact))
    finally:
        deploy_lock.release()

    if not outcome.ok:
        return jsonify({"error": outcome.cause, **outcome.to_dict()}), 502

    body = outcome.to_dict()
    try:
        records.write_deployment(settings.records_dir, artifact, outcome)
    except (OSError, ValueError) as e:
        # the contract is live; report the record failure alongside the result
        body["record_error"] = str(e)
    return jsonify(body)


if __name__ == '__main__':
    port = int(os.getenv("PORT", "5000"))
    app.run(host="0.0.0.0", port=port)
