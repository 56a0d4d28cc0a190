"""Backend-neutral records returned by the access clients and the orchestrator."""

from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from .errors import BackendError

IDENTIFIER_LENGTH = 32

T = TypeVar("T")


def to_identifier(raw: bytes) -> bytes:
    """Copy raw id or hash bytes into a fixed 32-byte identifier."""
    raw = bytes(raw or b"")
    return raw[:IDENTIFIER_LENGTH].ljust(IDENTIFIER_LENGTH, b"\x00")


@dataclass(frozen=True)
class EventRecord:
    type: str
    transaction_id: bytes
    transaction_index: int
    event_index: int
    payload: bytes


@dataclass(frozen=True)
class BlockEventsRecord:
    block_id: bytes
    height: int
    # Unix seconds; always 0 for blocks served by a legacy node.
    timestamp: int
    events: List[EventRecord] = field(default_factory=list)


@dataclass(frozen=True)
class Block:
    id: bytes
    height: int
    timestamp: int
    collection_ids: List[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class Collection:
    id: bytes
    transaction_ids: List[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class TransactionEvent:
    transaction_index: int
    event_index: int
    type: str
    payload: bytes


@dataclass(frozen=True)
class TransactionResult:
    status: int
    status_code: int
    error_message: str
    events: List[TransactionEvent] = field(default_factory=list)


@dataclass
class AggregateResult:
    """Blocks gathered across eras plus the number of attempted backend calls.

    When ``error`` is set, ``blocks`` holds everything collected before the
    failing segment.
    """

    blocks: List[BlockEventsRecord] = field(default_factory=list)
    api_calls: int = 0
    error: Optional[BackendError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> "AggregateResult":
        if self.error is not None:
            raise self.error
        return self


@dataclass
class PointResult(Generic[T]):
    """Outcome of a single-node operation; ``api_calls`` is 0 or 1."""

    value: Optional[T] = None
    api_calls: int = 0
    error: Optional[BackendError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> "PointResult[T]":
        if self.error is not None:
            raise self.error
        return self
