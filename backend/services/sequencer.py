"""
Account sequencer — live reads of sequence number, base fee and network time.

Nothing here is cached: the paying account can change under us (a crashed
attempt that actually landed, an out-of-band transaction, a merged account),
so every build starts from a fresh read.
"""
import asyncio
import logging

from models import AccountSnapshot

logger = logging.getLogger(__name__)


class AccountSequencer:
    def __init__(self, chain):
        self.chain = chain

    async def fetch_snapshot(self, account_id: str) -> AccountSnapshot:
        """Read the account's current sequence and the base fee. Raises AccountNotFound."""
        account, base_fee = await asyncio.gather(
            self.chain.load_account(account_id),
            self.chain.fetch_base_fee(),
        )
        snapshot = AccountSnapshot(
            account_id=account_id,
            sequence=int(account["sequence"]),
            base_fee=base_fee,
        )
        logger.debug(f"Snapshot {account_id[:8]}...: seq={snapshot.sequence} fee={base_fee}")
        return snapshot

    async def fetch_sequence(self, account_id: str) -> int:
        account = await self.chain.load_account(account_id)
        return int(account["sequence"])

    async def fetch_base_fee(self) -> int:
        return await self.chain.fetch_base_fee()

    async def fetch_validity_window(self, duration_seconds: int) -> tuple[int, int]:
        """(min_time, max_time) starting at the network's latest ledger close time."""
        if duration_seconds <= 0:
            raise ValueError("Validity window duration must be positive")
        now = await self.chain.fetch_network_time()
        return now, now + duration_seconds

    async def network_time(self) -> int:
        return await self.chain.fetch_network_time()
