"""Routing and aggregation of height-scoped queries across versioned access nodes."""

from .config import BeamSettings, NodeDescriptor, NodeDirectory
from .errors import BackendError, BeamError, ConfigurationError, NoCoverageError
from .models import (
    AggregateResult,
    Block,
    BlockEventsRecord,
    Collection,
    EventRecord,
    PointResult,
    TransactionEvent,
    TransactionResult,
    to_identifier,
)
from .metrics import CallMetrics
from .proxies import AccessClient, CurrentAccessClient, LegacyAccessClient, open_client
from .router import QueryRange, Segment, locate, route, select_current
from .facade import AccessOrchestrator

__all__ = [
    "BeamSettings",
    "NodeDescriptor",
    "NodeDirectory",
    "BeamError",
    "BackendError",
    "ConfigurationError",
    "NoCoverageError",
    "AggregateResult",
    "Block",
    "BlockEventsRecord",
    "Collection",
    "EventRecord",
    "PointResult",
    "TransactionEvent",
    "TransactionResult",
    "to_identifier",
    "CallMetrics",
    "AccessClient",
    "CurrentAccessClient",
    "LegacyAccessClient",
    "open_client",
    "QueryRange",
    "Segment",
    "locate",
    "route",
    "select_current",
    "AccessOrchestrator",
]
