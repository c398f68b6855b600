import dataclasses
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests
from eth_abi import encode as abi_encode
from eth_account import Account
from eth_utils import to_checksum_address, to_hex

from market_deploy.artifacts import Artifact

logger = logging.getLogger(__name__)


class ChainClientError(RuntimeError):
    pass


class RpcError(ChainClientError):
    def __init__(self, method: str, code: Optional[int], message: str):
        super().__init__(f"{method} failed ({code}): {message}")
        self.method = method
        self.code = code
        self.message = message


class SubmissionError(ChainClientError):
    pass


class ConfirmationError(ChainClientError):
    pass


class TransactionRevertedError(ConfirmationError):
    pass


class ConfirmationTimeoutError(ConfirmationError):
    pass


class JsonRpcClient:
    def __init__(self, url: str, api_key: Optional[str] = None, timeout: float = 20,
                 session: Optional[requests.Session] = None):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self._next_id = 0

    def call(self, method: str, params: List[Any]) -> Any:
        self._next_id += 1
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        logger.debug("rpc -> %s %s", method, params)
        r = self.session.post(self.url, json=payload, headers=headers, timeout=self.timeout)
        r.raise_for_status()
        body = r.json()
        if body.get("error"):
            err = body["error"]
            raise RpcError(method, err.get("code"), err.get("message", ""))
        logger.debug("rpc <- %s %s", method, body.get("result"))
        return body.get("result")


def encode_constructor_args(artifact: Artifact, args: Sequence[Any]) -> bytes:
    inputs = artifact.constructor_inputs()
    if len(inputs) != len(args):
        raise ValueError(
            f"{artifact.name} constructor takes {len(inputs)} argument(s), got {len(args)}"
        )
    if not inputs:
        return b""
    return abi_encode([_abi_type(i) for i in inputs], list(args))


def _abi_type(param: Dict[str, Any]) -> str:
    t = param["type"]
    if t.startswith("tuple"):
        inner = ",".join(_abi_type(c) for c in param.get("components", []))
        return f"({inner}){t[len('tuple'):]}"
    return t


@dataclasses.dataclass(frozen=True)
class Receipt:
    address: str
    transaction_hash: str
    block_number: int


class ChainClient:
    """Signs and submits contract-creation transactions over JSON-RPC.

    Timeout policy for confirmation lives here: `confirm_timeout` of None
    waits for as long as the node keeps answering.
    """

    def __init__(self, rpc: JsonRpcClient, private_key: Optional[str], *, chain_id: Optional[int] = None,
                 confirmations: int = 1, confirm_timeout: Optional[float] = 300,
                 poll_interval: float = 2.0,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.rpc = rpc
        self._private_key = private_key
        self.chain_id = chain_id
        self.confirmations = max(1, confirmations)
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    def submit(self, artifact: Artifact, constructor_args: Sequence[Any] = ()) -> "PendingTransaction":
        if not self._private_key:
            raise SubmissionError("No deployer private key configured (DEPLOY_PRIVATE_KEY)")
        try:
            account = Account.from_key(self._private_key)
            data = artifact.bytecode + encode_constructor_args(artifact, constructor_args).hex()
            chain_id = self.chain_id
            if chain_id is None:
                chain_id = int(self.rpc.call("eth_chainId", []), 16)
            nonce = int(self.rpc.call("eth_getTransactionCount", [account.address, "pending"]), 16)
            gas = int(self.rpc.call("eth_estimateGas", [{"from": account.address, "data": data}]), 16)
            gas_price = int(self.rpc.call("eth_gasPrice", []), 16)
            tx = {
                "nonce": nonce,
                "gas": gas,
                "gasPrice": gas_price,
                "value": 0,
                "data": data,
                "chainId": chain_id,
            }
            signed = account.sign_transaction(tx)
            tx_hash = self.rpc.call("eth_sendRawTransaction", [to_hex(signed.raw_transaction)])
        except (requests.RequestException, ChainClientError, ValueError, TypeError) as e:
            raise SubmissionError(f"Could not submit {artifact.name}: {e}") from e
        return PendingTransaction(self, tx_hash, nonce)


class PendingTransaction:
    def __init__(self, client: ChainClient, transaction_hash: str, nonce: int):
        self.client = client
        self.transaction_hash = transaction_hash
        self.nonce = nonce

    def await_confirmation(self) -> Receipt:
        client = self.client
        started = client._clock()
        while True:
            receipt = self._poll()
            if receipt is not None:
                if int(receipt.get("status") or "0x1", 16) == 0:
                    raise TransactionRevertedError(
                        f"Transaction {self.transaction_hash} reverted in block {receipt.get('blockNumber')}"
                    )
                block = int(receipt["blockNumber"], 16)
                if self._depth(block) >= client.confirmations:
                    address = receipt.get("contractAddress")
                    if not address:
                        raise ConfirmationError(
                            f"Receipt for {self.transaction_hash} has no contract address"
                        )
                    return Receipt(
                        address=to_checksum_address(address),
                        transaction_hash=receipt.get("transactionHash", self.transaction_hash),
                        block_number=block,
                    )
            if client.confirm_timeout is not None and client._clock() - started >= client.confirm_timeout:
                raise ConfirmationTimeoutError(
                    f"Transaction {self.transaction_hash} not confirmed after {client.confirm_timeout}s"
                )
            client._sleep(client.poll_interval)

    def _poll(self) -> Optional[Dict[str, Any]]:
        try:
            return self.client.rpc.call("eth_getTransactionReceipt", [self.transaction_hash])
        except (requests.RequestException, RpcError, ValueError) as e:
            raise ConfirmationError(f"Could not fetch receipt for {self.transaction_hash}: {e}") from e

    def _depth(self, block: int) -> int:
        if self.client.confirmations == 1:
            return 1
        try:
            head = int(self.client.rpc.call("eth_blockNumber", []), 16)
        except (requests.RequestException, RpcError, ValueError, TypeError) as e:
            raise ConfirmationError(f"Could not fetch block number: {e}") from e
        return head - block + 1
