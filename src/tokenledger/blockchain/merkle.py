"""
Keccak-256 merkle tree for airdrop distributions.

Leaves commit to ``(account, index, amount)``:

    leaf = keccak256(keccak256(abi.encode(address account, uint256 index, uint256 amount)))

Interior nodes hash the sorted pair ``keccak256(min(a, b) + max(a, b))`` so a
proof is just the ordered list of sibling hashes, with no left/right flags.
When a level has an odd number of nodes the last one is paired with itself.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from Crypto.Hash import keccak

from ..core.addresses import normalize_address
from ..core.ledger_exceptions import InvalidInput

HASH_SIZE = 32
UINT256_MAX = 2**256 - 1


def keccak256(data: bytes) -> bytes:
    """Compute keccak256 hash (same as Ethereum)."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def _encode_address(account: str) -> bytes:
    addr = normalize_address(account)
    if not addr.startswith("0x") or len(addr) != 42:
        raise InvalidInput(f"Invalid account address: {account}")
    try:
        raw = bytes.fromhex(addr[2:])
    except ValueError as exc:
        raise InvalidInput(f"Invalid hex characters in address: {account}") from exc
    return raw.rjust(HASH_SIZE, b"\x00")


def _encode_uint256(value: int) -> bytes:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0 or value > UINT256_MAX:
        raise InvalidInput(f"Value {value!r} is not a uint256")
    return value.to_bytes(HASH_SIZE, "big")


def encode_claim(account: str, index: int, amount: int) -> bytes:
    """ABI-style encoding of the claim triple (three 32-byte words)."""
    return _encode_address(account) + _encode_uint256(index) + _encode_uint256(amount)


def claim_leaf(account: str, index: int, amount: int) -> bytes:
    return keccak256(keccak256(encode_claim(account, index, amount)))


def hash_pair(a: bytes, b: bytes) -> bytes:
    if a > b:
        a, b = b, a
    return keccak256(a + b)


def verify_proof(proof: Sequence[bytes], root: bytes, leaf: bytes) -> bool:
    """Fold ``leaf`` up through ``proof`` and compare against ``root``."""
    computed = leaf
    for sibling in proof:
        if len(sibling) != HASH_SIZE:
            return False
        computed = hash_pair(computed, sibling)
    return computed == root


def to_hex(value: bytes) -> str:
    return "0x" + value.hex()


def from_hex(value: str) -> bytes:
    text = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        raw = bytes.fromhex(text)
    except ValueError as exc:
        raise InvalidInput(f"Invalid hex string: {value}") from exc
    if len(raw) != HASH_SIZE:
        raise InvalidInput(f"Expected a 32-byte hash, got {len(raw)} bytes")
    return raw


class MerkleTree:
    """Builds a root and per-leaf proofs over pre-hashed leaves."""

    def __init__(self, leaves: Iterable[bytes]):
        self.leaves = list(leaves)
        if not self.leaves:
            raise InvalidInput("Merkle tree requires at least one leaf.")
        self.tree = self._build_tree(self.leaves)
        self.root = self.tree[-1][0]

    @classmethod
    def from_claims(cls, claims: Iterable[Tuple[str, int, int]]) -> "MerkleTree":
        """Build from ``(account, index, amount)`` triples."""
        return cls(claim_leaf(account, index, amount) for account, index, amount in claims)

    def _build_tree(self, leaves: List[bytes]) -> List[List[bytes]]:
        tree = [leaves]
        current_level = leaves
        while len(current_level) > 1:
            next_level = []
            for i in range(0, len(current_level), 2):
                left = current_level[i]
                right = current_level[i + 1] if i + 1 < len(current_level) else left
                next_level.append(hash_pair(left, right))
            tree.append(next_level)
            current_level = next_level
        return tree

    def get_root(self) -> bytes:
        return self.root

    def get_proof(self, position: int) -> List[bytes]:
        """Proof for the leaf at ``position`` in insertion order."""
        if position < 0 or position >= len(self.leaves):
            raise InvalidInput(f"Leaf position {position} out of range")

        proof = []
        idx = position
        for level in self.tree[:-1]:
            sibling = idx ^ 1
            proof.append(level[sibling] if sibling < len(level) else level[idx])
            idx //= 2
        return proof

    def verify(self, proof: Sequence[bytes], leaf: bytes) -> bool:
        return verify_proof(proof, self.root, leaf)
