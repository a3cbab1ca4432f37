"""
Airdrop distribution files.

Turns a list of ``(address, amount)`` allocations into the committed root
plus one claim entry (index, amount, proof) per address. Indices follow
input order; an address may appear only once.
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Iterable, List, Tuple

from pydantic import ValidationError

from ..core.input_validation_schemas import AirdropAllocationInput, ClaimEntry, DistributionFile
from ..core.ledger_exceptions import InvalidInput
from .merkle import MerkleTree, claim_leaf, from_hex, to_hex, verify_proof

logger = logging.getLogger(__name__)


def parse_allocations(rows: Iterable[Tuple[str, object]]) -> List[AirdropAllocationInput]:
    allocations = []
    seen = set()
    for position, (address, amount) in enumerate(rows):
        try:
            allocation = AirdropAllocationInput(address=address, amount=amount)
        except ValidationError as exc:
            raise InvalidInput(f"Row {position}: {exc.errors()[0]['msg']}") from exc
        if allocation.address in seen:
            raise InvalidInput(f"Row {position}: duplicate address {allocation.address}")
        seen.add(allocation.address)
        allocations.append(allocation)
    if not allocations:
        raise InvalidInput("No allocations supplied")
    return allocations


def build_distribution(rows: Iterable[Tuple[str, object]]) -> DistributionFile:
    allocations = parse_allocations(rows)
    tree = MerkleTree(
        claim_leaf(item.address, index, item.amount) for index, item in enumerate(allocations)
    )
    claims = {
        item.address: ClaimEntry(
            index=index,
            amount=item.amount,
            proof=[to_hex(node) for node in tree.get_proof(index)],
        )
        for index, item in enumerate(allocations)
    }
    distribution = DistributionFile(
        merkle_root=to_hex(tree.get_root()),
        token_total=sum(item.amount for item in allocations),
        claims=claims,
    )
    logger.info(
        "Built distribution for %s allocations",
        len(allocations),
        extra={"event": "airdrop.distribution_built", "root": distribution.merkle_root},
    )
    return distribution


def verify_entry(distribution: DistributionFile, address: str) -> bool:
    entry = distribution.claims.get(address.lower())
    if entry is None:
        return False
    leaf = claim_leaf(address, entry.index, entry.amount)
    return verify_proof(
        [from_hex(node) for node in entry.proof], from_hex(distribution.merkle_root), leaf
    )


def load_csv(path: Path) -> List[Tuple[str, str]]:
    rows = []
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames or "address" not in reader.fieldnames or "amount" not in reader.fieldnames:
            raise InvalidInput("CSV needs header: address,amount")
        for record in reader:
            address = (record.get("address") or "").strip()
            amount = (record.get("amount") or "").strip()
            if address and amount:
                rows.append((address, amount))
    return rows


def load_distribution(path: Path) -> DistributionFile:
    with open(path) as f:
        try:
            return DistributionFile.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise InvalidInput(f"Malformed distribution file {path}: {exc}") from exc


def save_distribution(distribution: DistributionFile, path: Path) -> None:
    with open(path, "w") as f:
        json.dump(distribution.model_dump(), f, indent=2)
