"""
Settlement hand-off.

A settlement collaborator receives the sized opportunity and either submits
it to the flash-loan contract or, in dry-run mode, only records it.
"""

import asyncio
from collections import deque
from typing import Deque, List, Optional, Protocol, Sequence, Tuple

from eth_account.signers.local import LocalAccount
from web3 import Web3

from .abi import SETTLEMENT_ABI
from .exceptions import ExecutionError
from .types import SettlementRequest
from .utils import get_logger, to_checksum

logger = get_logger(__name__)

MAX_RECORDED_REQUESTS = 100

MAX_CONTRACT_HOPS = 3


class Settlement(Protocol):
    async def execute(self, request: SettlementRequest) -> Optional[str]:
        """Hand off a request; returns a transaction hash when one was sent."""
        ...


def contract_hop_paths(
    hop_pairs: Sequence[Tuple[str, str]],
) -> List[List[str]]:
    """
    Map hop token pairs onto the contract's three path slots.

    Unused slots are empty arrays.

    Raises:
        ExecutionError: If the cycle has more hops than the contract accepts
    """
    if not hop_pairs:
        raise ExecutionError("Cannot settle an empty path")
    if len(hop_pairs) > MAX_CONTRACT_HOPS:
        raise ExecutionError(
            f"Settlement contract supports at most {MAX_CONTRACT_HOPS} hops, "
            f"got {len(hop_pairs)}"
        )

    slots = [
        [to_checksum(token_in), to_checksum(token_out)]
        for token_in, token_out in hop_pairs
    ]
    while len(slots) < MAX_CONTRACT_HOPS:
        slots.append([])
    return slots


class DryRunSettlement:
    """Logs requests without sending anything, keeping the most recent ones."""

    def __init__(self, max_requests: int = MAX_RECORDED_REQUESTS):
        self.requests: Deque[SettlementRequest] = deque(maxlen=max_requests)

    async def execute(self, request: SettlementRequest) -> Optional[str]:
        self.requests.append(request)
        logger.info(
            f"[DRY RUN] executeArbitrage loan={request.loan_amount} "
            f"hops={len(request.hop_pairs)} minOuts={request.min_outputs}"
        )
        return None


class ContractSettlement:
    """
    Sends ``executeArbitrage`` to the deployed flash-loan contract.

    The transaction is built, signed locally with the given account and sent
    raw. Gas overrides from the request are applied as-is.
    """

    def __init__(
        self,
        web3: Web3,
        contract_address: str,
        account: LocalAccount,
        chain_id: int,
    ):
        self.web3 = web3
        self.account = account
        self.chain_id = chain_id
        self.contract = web3.eth.contract(
            address=to_checksum(contract_address), abi=SETTLEMENT_ABI
        )

    def build_transaction(self, request: SettlementRequest) -> dict:
        path1, path2, path3 = contract_hop_paths(request.hop_pairs)
        nonce = self.web3.eth.get_transaction_count(self.account.address)
        params = {
            "from": self.account.address,
            "nonce": nonce,
            "chainId": self.chain_id,
        }
        params.update(request.gas)

        return self.contract.functions.executeArbitrage(
            to_checksum(request.loan_token),
            path1,
            path2,
            path3,
            int(request.loan_amount),
            [int(value) for value in request.min_outputs],
        ).build_transaction(params)

    def _send(self, request: SettlementRequest) -> str:
        tx = self.build_transaction(request)
        signed = self.account.sign_transaction(tx)
        tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        return self.web3.to_hex(tx_hash)

    async def execute(self, request: SettlementRequest) -> Optional[str]:
        """
        Submit the request.

        Returns:
            Transaction hash

        Raises:
            ExecutionError: If the path does not fit the contract or the
                transaction could not be built or sent
        """
        loop = asyncio.get_running_loop()
        try:
            tx_hash = await loop.run_in_executor(None, self._send, request)
        except ExecutionError:
            raise
        except Exception as e:
            raise ExecutionError(f"Settlement transaction failed: {e}") from e

        logger.info(f"Settlement transaction sent: {tx_hash}")
        return tx_hash
