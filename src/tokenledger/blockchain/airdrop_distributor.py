from __future__ import annotations

from typing import Any, Callable, Sequence, Union

from ..core import ledger_metrics
from ..core.ledger_exceptions import AlreadyClaimed, InvalidInput, InvalidProof
from .ledger_engine import LedgerEngine
from .merkle import HASH_SIZE, claim_leaf, from_hex, to_hex, verify_proof

HashLike = Union[bytes, str]


def _as_hash(value: HashLike) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        if len(value) != HASH_SIZE:
            raise InvalidInput(f"Expected a 32-byte hash, got {len(value)} bytes")
        return bytes(value)
    return from_hex(value)


class MerkleDistributor(LedgerEngine):
    """
    One-shot airdrop claims against a committed merkle root.

    Each allocation ``(account, index, amount)`` is a leaf of the tree whose
    root was fixed at construction. Claiming verifies the proof, flips the
    index's bit, and only then asks the token to issue ``amount`` to
    ``account``. Anyone may submit a claim on an account's behalf; the
    tokens always go to the committed account.
    """

    MECHANISM = "airdrop"

    def __init__(
        self,
        token: Any,
        ledger_address: str,
        admin_address: str,
        merkle_root: HashLike,
        time_provider: Callable[[], int] | None = None,
    ):
        super().__init__(token, ledger_address, admin_address, time_provider=time_provider)
        self.merkle_root = _as_hash(merkle_root)
        self._log.info("MerkleDistributor initialized with root %s", to_hex(self.merkle_root))

    def is_claimed(self, index: int) -> bool:
        return self.store.is_claimed(index)

    def claim(
        self,
        index: int,
        account: str,
        amount: int,
        proof: Sequence[HashLike],
        current_time: int | None = None,
    ) -> int:
        """
        Raises:
            AlreadyClaimed: the index's bit is already set
            InvalidProof: the proof does not lead to the committed root
            TransferFailed: the token refused to issue
        """
        self._require_enabled()
        account = self._account(account)
        self.store.require_amount(amount)
        now = self._normalize_timestamp(current_time)
        siblings = [_as_hash(node) for node in proof]

        with self._operation("claim"):
            if self.store.is_claimed(index):
                raise AlreadyClaimed(f"Drop index {index} already claimed", details={"index": index})

            leaf = claim_leaf(account, index, amount)
            if not verify_proof(siblings, self.merkle_root, leaf):
                raise InvalidProof(
                    f"Invalid proof for index {index}",
                    details={"index": index, "account": account},
                )

            self.store.mark_claimed(index)
            self.store.add_total("total_claimed", amount)
            self._emit("Claimed", account, amount, now)

            self.token.safe_mint(account, amount)

        ledger_metrics.record_payout(self.MECHANISM, amount)
        return amount

    def claimed_count(self) -> int:
        return self.store.state.claimed.count()

    @property
    def total_claimed(self) -> int:
        return self._total("total_claimed")
