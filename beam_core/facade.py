import functools
import threading
import time
from collections import deque
from typing import Callable, List, Optional, Sequence

import grpc

from .config import BeamSettings, NodeDescriptor, NodeDirectory
from .errors import BackendError
from .metrics import CallMetrics
from .models import AggregateResult, Block, Collection, PointResult, TransactionResult
from .proxies import AccessClient, open_client
from .router import QueryRange, locate, route, select_current

ClientFactory = Callable[[NodeDescriptor], AccessClient]


class AccessOrchestrator:
    """
    Answers height-scoped queries across a chain of access nodes.
    Range queries are split per era and executed one segment at a time;
    point queries go to a single node.
    """

    def __init__(
        self,
        directory: NodeDirectory,
        settings: Optional[BeamSettings] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        self._directory = directory
        self._settings = settings or BeamSettings()
        self._client_factory = client_factory or functools.partial(
            open_client,
            max_receive_bytes=self._settings.max_receive_message_length,
            debug=self._settings.debug,
        )
        self._metrics = CallMetrics()
        self._log_buffer = deque(maxlen=50)  # Store last 50 log lines
        self._log_lock = threading.Lock()

    def collect_events(self, event_type: str, start: int, end: int) -> AggregateResult:
        segments = route(QueryRange(start, end), self._directory.load())
        result = AggregateResult()

        for segment in segments:
            node = segment.node
            self._emit(
                f"[Orchestrator] Requesting {event_type} events for {segment.start} - {segment.end} "
                f"from {node.address} (Legacy={int(node.is_legacy)})",
                debug=True,
            )
            try:
                client = self._open(node)
            except BackendError as exc:
                result.error = exc
                break

            result.api_calls += 1
            started = time.time()
            try:
                with client:
                    blocks = client.get_events_for_height_range(event_type, segment.start, segment.end)
            except BackendError as exc:
                self._metrics.record_call((time.time() - started) * 1000, failed=True)
                self._emit(
                    f"[Orchestrator] Error getting {event_type} events for "
                    f"{segment.start} - {segment.end}: {exc}"
                )
                result.error = exc
                break

            self._metrics.record_call((time.time() - started) * 1000)
            result.blocks.extend(blocks)

        self._emit(
            f"[Orchestrator] {event_type} [{start}, {end}]: {len(result.blocks)} blocks, "
            f"{len(segments)} segments, api_calls={result.api_calls}",
            debug=True,
        )
        return result

    def get_latest_block_height(self) -> PointResult[int]:
        return self._single("GetLatestBlockHeader", lambda client: client.get_latest_block_header())

    def execute_script(self, script: str, arguments: Sequence[bytes] = ()) -> PointResult[bytes]:
        return self._single(
            "ExecuteScriptAtLatestBlock",
            lambda client: client.execute_script(script, list(arguments)),
        )

    def get_block_by_height(self, height: int, at_height: Optional[int] = None) -> PointResult[Block]:
        return self._single(
            "GetBlockByHeight",
            lambda client: client.get_block_by_height(height),
            at_height=at_height,
        )

    def get_collection_by_id(
        self, collection_id: bytes, at_height: Optional[int] = None
    ) -> PointResult[Collection]:
        return self._single(
            "GetCollectionByID",
            lambda client: client.get_collection_by_id(collection_id),
            at_height=at_height,
        )

    def get_transaction_result(
        self, transaction_id: bytes, at_height: Optional[int] = None
    ) -> PointResult[TransactionResult]:
        return self._single(
            "GetTransactionResult",
            lambda client: client.get_transaction_result(transaction_id),
            at_height=at_height,
        )

    def _single(self, operation: str, call: Callable[[AccessClient], object], at_height: Optional[int] = None):
        nodes = self._directory.load()
        node = select_current(nodes) if at_height is None else locate(at_height, nodes)
        result: PointResult = PointResult()

        self._emit(f"[Orchestrator] {operation} via {node.address} (Legacy={int(node.is_legacy)})", debug=True)
        try:
            client = self._open(node)
        except BackendError as exc:
            result.error = exc
            return result

        result.api_calls = 1
        started = time.time()
        try:
            with client:
                result.value = call(client)
        except BackendError as exc:
            self._metrics.record_call((time.time() - started) * 1000, failed=True)
            self._emit(f"[Orchestrator] {operation} failed: {exc}")
            result.error = exc
            return result

        self._metrics.record_call((time.time() - started) * 1000)
        return result

    def _open(self, node: NodeDescriptor) -> AccessClient:
        try:
            return self._client_factory(node)
        except BackendError:
            raise
        except (grpc.RpcError, OSError, ValueError) as exc:
            error = BackendError(node.address, "connect", str(exc) or exc.__class__.__name__)
            self._emit(f"[Orchestrator] Cannot open client for {node.address}: {exc}")
            raise error from exc

    def _emit(self, message: str, debug: bool = False) -> None:
        if debug and not self._settings.debug:
            return
        print(message, flush=True)
        with self._log_lock:
            self._log_buffer.append(message)

    def recent_logs(self, max_lines: int = 10) -> List[str]:
        """Get recent log lines from buffer."""
        with self._log_lock:
            return list(self._log_buffer)[-max_lines:]

    def metrics(self):
        return self._metrics.snapshot()
