from __future__ import annotations

import re

from pydantic import BaseModel, Field, conint, field_validator

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
HASH_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")


def _check_address(value: str) -> str:
    value = value.strip()
    if not ADDRESS_RE.match(value):
        raise ValueError(f"Invalid EVM address: {value}")
    return value.lower()


def _check_hash(value: str) -> str:
    if not HASH_RE.match(value):
        raise ValueError(f"Invalid 32-byte hex hash: {value}")
    return value.lower()


class AirdropAllocationInput(BaseModel):
    address: str
    amount: conint(gt=0)

    @field_validator("address")
    @classmethod
    def _address(cls, value: str) -> str:
        return _check_address(value)


class ClaimEntry(BaseModel):
    index: conint(ge=0)
    amount: conint(gt=0)
    proof: list[str] = Field(default_factory=list)

    @field_validator("proof")
    @classmethod
    def _proof_hashes(cls, value: list[str]) -> list[str]:
        return [_check_hash(node) for node in value]


class DistributionFile(BaseModel):
    merkle_root: str
    token_total: conint(ge=0)
    claims: dict[str, ClaimEntry]

    @field_validator("merkle_root")
    @classmethod
    def _root_hash(cls, value: str) -> str:
        return _check_hash(value)

    @field_validator("claims")
    @classmethod
    def _claim_addresses(cls, value: dict[str, ClaimEntry]) -> dict[str, ClaimEntry]:
        return {_check_address(address): entry for address, entry in value.items()}


class VestingPreviewInput(BaseModel):
    principal: conint(ge=0)
    drawn: conint(ge=0) = 0
    last_drawn_at: int | None = None
    start: conint(ge=0)
    end: conint(ge=0)
    cliff_duration: conint(ge=0) = 0
    now: conint(ge=0)
