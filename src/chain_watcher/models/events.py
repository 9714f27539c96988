"""Canonical events produced by mappers and delivered to sinks."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class LogFoundEvent(Generic[T]):
    """An event derived from a single contract log or chain attribute set."""

    name: str
    address: str
    chain_id: int
    tx_hash: str
    block_height: int
    block_time: int  # unix seconds
    attributes: T
    tags: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TransactionFoundEvent(Generic[T]):
    """An event derived from a whole transaction (e.g. a redeem call)."""

    name: str
    address: str
    tx_hash: str
    block_height: int
    chain_id: int
    block_time: int
    attributes: T

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


CanonicalEvent = Union[LogFoundEvent[Any], TransactionFoundEvent[Any]]
