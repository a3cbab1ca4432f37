from __future__ import annotations

from ..core.ledger_exceptions import InvalidInput

WORD_BITS = 256


class ClaimedBitMap:
    """
    One bit per airdrop index, packed into 256-bit words.

    Bits only ever go from unset to set.
    """

    def __init__(self) -> None:
        self.words: dict[int, int] = {}

    def _locate(self, index: int) -> tuple[int, int]:
        if not isinstance(index, int) or isinstance(index, bool) or index < 0:
            raise InvalidInput(f"Claim index must be a non-negative integer, got {index!r}")
        return index // WORD_BITS, index % WORD_BITS

    def word_of(self, index: int) -> int:
        return self._locate(index)[0]

    def get(self, index: int) -> bool:
        word_index, bit_index = self._locate(index)
        mask = 1 << bit_index
        return self.words.get(word_index, 0) & mask == mask

    def set_true(self, index: int) -> None:
        word_index, bit_index = self._locate(index)
        self.words[word_index] = self.words.get(word_index, 0) | (1 << bit_index)

    def count(self) -> int:
        return sum(bin(word).count("1") for word in self.words.values())
