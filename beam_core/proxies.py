import functools
from typing import Callable, List, Optional, Protocol, Sequence

import grpc

from . import schema
from .config import DEFAULT_MAX_RECEIVE_BYTES, NodeDescriptor
from .errors import BackendError
from .models import (
    Block,
    BlockEventsRecord,
    Collection,
    EventRecord,
    TransactionEvent,
    TransactionResult,
    to_identifier,
)

ChannelFactory = Callable[..., grpc.Channel]

# gRPC keepalive options to ensure connection resilience
KEEPALIVE_OPTIONS = [
    ("grpc.keepalive_time_ms", 10000),
    ("grpc.keepalive_timeout_ms", 5000),
    ("grpc.keepalive_permit_without_calls", True),
    ("grpc.http2.min_time_between_pings_ms", 10000),
    ("grpc.http2.max_pings_without_data", 0),
]


class AccessClient(Protocol):
    """Capabilities every access node client offers, whatever its wire schema."""

    address: str

    def get_events_for_height_range(self, event_type: str, start: int, end: int) -> List[BlockEventsRecord]:
        ...

    def get_block_by_height(self, height: int) -> Block:
        ...

    def get_collection_by_id(self, collection_id: bytes) -> Collection:
        ...

    def get_transaction_result(self, transaction_id: bytes) -> TransactionResult:
        ...

    def get_latest_block_header(self) -> int:
        ...

    def execute_script(self, script: str, arguments: Sequence[bytes]) -> bytes:
        ...

    def close(self) -> None:
        ...

    def __enter__(self) -> "AccessClient":
        ...

    def __exit__(self, exc_type, exc, tb) -> None:
        ...


def rpc_operation(name: str):
    """Translate grpc.RpcError raised by a client method into BackendError."""

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except grpc.RpcError as exc:
                code = exc.code() if hasattr(exc, "code") and callable(exc.code) else None
                details = exc.details() if hasattr(exc, "details") and callable(exc.details) else None
                raise BackendError(
                    self.address,
                    name,
                    details or str(exc) or exc.__class__.__name__,
                    code=getattr(code, "name", None),
                ) from exc

        return wrapper

    return decorator


class _Channels:
    """Owns the connections to one access node.

    The default channel is opened immediately. The bulk channel, configured
    with a raised receive limit, is opened the first time a large-response
    call needs it.
    """

    def __init__(
        self,
        address: str,
        channel_factory: ChannelFactory,
        max_receive_bytes: int,
        debug: bool = False,
    ):
        self.address = address
        self._factory = channel_factory
        self._max_receive_bytes = max_receive_bytes
        self._debug = debug
        self._default = channel_factory(address, options=list(KEEPALIVE_OPTIONS))
        self._log(f"[AccessClient] opened channel to {address}")
        self._bulk: Optional[grpc.Channel] = None

    def _log(self, message: str) -> None:
        if self._debug:
            print(message, flush=True)

    def unary(self, method: str, request_cls, response_cls, bulk: bool = False):
        channel = self._bulk_channel() if bulk else self._default
        return channel.unary_unary(
            method,
            request_serializer=request_cls.SerializeToString,
            response_deserializer=response_cls.FromString,
        )

    def _bulk_channel(self) -> grpc.Channel:
        if self._bulk is None:
            options = list(KEEPALIVE_OPTIONS) + [("grpc.max_receive_message_length", self._max_receive_bytes)]
            self._bulk = self._factory(self.address, options=options)
            self._log(
                f"[AccessClient] opened bulk channel to {self.address} "
                f"(max_receive={self._max_receive_bytes})"
            )
        return self._bulk

    def close(self) -> None:
        channels = [self._default] + ([self._bulk] if self._bulk is not None else [])
        self._bulk = None
        for channel in channels:
            channel.close()
        self._log(f"[AccessClient] closed {len(channels)} channel(s) to {self.address}")


def _event_record(message) -> EventRecord:
    # Both generations carry the transaction id as raw bytes (a hash for legacy nodes).
    return EventRecord(
        type=message.type,
        transaction_id=to_identifier(message.transaction_id),
        transaction_index=message.transaction_index,
        event_index=message.event_index,
        payload=bytes(message.payload),
    )


def _transaction_events(messages) -> List[TransactionEvent]:
    return [
        TransactionEvent(
            transaction_index=event.transaction_index,
            event_index=event.event_index,
            type=event.type,
            payload=bytes(event.payload),
        )
        for event in messages
    ]


def _block(message) -> Block:
    return Block(
        id=to_identifier(message.id),
        height=message.height,
        timestamp=message.timestamp.seconds,
        collection_ids=[to_identifier(g.collection_id) for g in message.collection_guarantees],
    )


def _collection(message) -> Collection:
    return Collection(
        id=to_identifier(message.id),
        transaction_ids=[to_identifier(tx_id) for tx_id in message.transaction_ids],
    )


class CurrentAccessClient:
    """Client for access nodes speaking the current ``flow.access`` schema."""

    def __init__(
        self,
        address: str,
        channel_factory: ChannelFactory = grpc.insecure_channel,
        max_receive_bytes: int = DEFAULT_MAX_RECEIVE_BYTES,
        debug: bool = False,
    ):
        self.address = address
        self._channels = _Channels(address, channel_factory, max_receive_bytes, debug=debug)
        self._api = schema.current

    def __enter__(self) -> "CurrentAccessClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _call(self, rpc: str, request, bulk: bool = False):
        request_name, response_name = schema.RPCS[rpc]
        stub = self._channels.unary(
            self._api.method_path(rpc),
            getattr(self._api, request_name),
            getattr(self._api, response_name),
            bulk=bulk,
        )
        return stub(request)

    @rpc_operation("GetEventsForHeightRange")
    def get_events_for_height_range(self, event_type: str, start: int, end: int) -> List[BlockEventsRecord]:
        request = self._api.GetEventsForHeightRangeRequest(type=event_type, start_height=start, end_height=end)
        response = self._call("GetEventsForHeightRange", request, bulk=True)
        return [
            BlockEventsRecord(
                block_id=to_identifier(result.block_id),
                height=result.block_height,
                timestamp=result.block_timestamp.seconds,
                events=[_event_record(event) for event in result.events],
            )
            for result in response.results
        ]

    @rpc_operation("GetBlockByHeight")
    def get_block_by_height(self, height: int) -> Block:
        response = self._call("GetBlockByHeight", self._api.GetBlockByHeightRequest(height=height))
        return _block(response.block)

    @rpc_operation("GetCollectionByID")
    def get_collection_by_id(self, collection_id: bytes) -> Collection:
        response = self._call("GetCollectionByID", self._api.GetCollectionByIDRequest(id=collection_id))
        return _collection(response.collection)

    @rpc_operation("GetTransactionResult")
    def get_transaction_result(self, transaction_id: bytes) -> TransactionResult:
        response = self._call(
            "GetTransactionResult",
            self._api.GetTransactionRequest(id=transaction_id),
            bulk=True,
        )
        return TransactionResult(
            status=int(response.status),
            status_code=response.status_code,
            error_message=response.error_message,
            events=_transaction_events(response.events),
        )

    @rpc_operation("GetLatestBlockHeader")
    def get_latest_block_header(self) -> int:
        response = self._call("GetLatestBlockHeader", self._api.GetLatestBlockHeaderRequest(is_sealed=True))
        return response.block.height

    @rpc_operation("ExecuteScriptAtLatestBlock")
    def execute_script(self, script: str, arguments: Sequence[bytes]) -> bytes:
        request = self._api.ExecuteScriptAtLatestBlockRequest(
            script=script.encode("utf-8"),
            arguments=list(arguments),
        )
        response = self._call("ExecuteScriptAtLatestBlock", request)
        return bytes(response.value)

    def close(self) -> None:
        self._channels.close()


class LegacyAccessClient:
    """Client for pre-upgrade access nodes speaking ``flow.legacy.access``.

    Legacy event results carry no block timestamp, and event transaction ids
    arrive as raw hash bytes.
    """

    def __init__(
        self,
        address: str,
        channel_factory: ChannelFactory = grpc.insecure_channel,
        max_receive_bytes: int = DEFAULT_MAX_RECEIVE_BYTES,
        debug: bool = False,
    ):
        self.address = address
        self._channels = _Channels(address, channel_factory, max_receive_bytes, debug=debug)
        self._api = schema.legacy

    def __enter__(self) -> "LegacyAccessClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _call(self, rpc: str, request, bulk: bool = False):
        request_name, response_name = schema.RPCS[rpc]
        stub = self._channels.unary(
            self._api.method_path(rpc),
            getattr(self._api, request_name),
            getattr(self._api, response_name),
            bulk=bulk,
        )
        return stub(request)

    @rpc_operation("GetEventsForHeightRange")
    def get_events_for_height_range(self, event_type: str, start: int, end: int) -> List[BlockEventsRecord]:
        request = self._api.GetEventsForHeightRangeRequest(type=event_type, start_height=start, end_height=end)
        response = self._call("GetEventsForHeightRange", request, bulk=True)
        return [
            BlockEventsRecord(
                block_id=to_identifier(result.block_id),
                height=result.block_height,
                timestamp=0,
                events=[_event_record(event) for event in result.events],
            )
            for result in response.results
        ]

    @rpc_operation("GetBlockByHeight")
    def get_block_by_height(self, height: int) -> Block:
        response = self._call("GetBlockByHeight", self._api.GetBlockByHeightRequest(height=height))
        return _block(response.block)

    @rpc_operation("GetCollectionByID")
    def get_collection_by_id(self, collection_id: bytes) -> Collection:
        response = self._call("GetCollectionByID", self._api.GetCollectionByIDRequest(id=collection_id))
        return _collection(response.collection)

    @rpc_operation("GetTransactionResult")
    def get_transaction_result(self, transaction_id: bytes) -> TransactionResult:
        response = self._call(
            "GetTransactionResult",
            self._api.GetTransactionRequest(id=transaction_id),
            bulk=True,
        )
        return TransactionResult(
            status=int(response.status),
            status_code=response.status_code,
            error_message=response.error_message,
            events=_transaction_events(response.events),
        )

    @rpc_operation("GetLatestBlockHeader")
    def get_latest_block_header(self) -> int:
        response = self._call("GetLatestBlockHeader", self._api.GetLatestBlockHeaderRequest(is_sealed=True))
        return response.block.height

    @rpc_operation("ExecuteScriptAtLatestBlock")
    def execute_script(self, script: str, arguments: Sequence[bytes]) -> bytes:
        request = self._api.ExecuteScriptAtLatestBlockRequest(
            script=script.encode("utf-8"),
            arguments=list(arguments),
        )
        response = self._call("ExecuteScriptAtLatestBlock", request)
        return bytes(response.value)

    def close(self) -> None:
        self._channels.close()


def open_client(
    node: NodeDescriptor,
    channel_factory: ChannelFactory = grpc.insecure_channel,
    max_receive_bytes: int = DEFAULT_MAX_RECEIVE_BYTES,
    debug: bool = False,
) -> AccessClient:
    """Open the client variant matching the node's protocol generation."""
    client_cls = LegacyAccessClient if node.is_legacy else CurrentAccessClient
    return client_cls(
        node.address,
        channel_factory=channel_factory,
        max_receive_bytes=max_receive_bytes,
        debug=debug,
    )
