"""
Background graph maintenance.

A daemon thread wakes every ``cleanup_interval`` seconds and runs a sweep:
evict low-value nodes through the store's locked delete path (which cascades
to their relationships), enforce ``max_nodes``, refresh node freshness, and
update the maintenance counters. A sweep never runs concurrently with
itself; a tick that arrives while one is active is skipped.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from knowledge_engine.config import EngineConfig
from knowledge_engine.error_handler import ErrorHandler, get_error_handler
from knowledge_engine.exceptions import MaintenanceError
from knowledge_engine.graph.models import GraphOptimizationStats, KnowledgeNode
from knowledge_engine.graph.store import GraphStore
from knowledge_engine.logger import get_logger


logger = get_logger(__name__)

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"  # node already gone when its turn came


@dataclass
class MaintenanceAction:
    """One eviction attempted during a sweep."""

    node_id: str
    reason: str  # stale_low_importance, low_importance, capacity
    status: str = STATUS_COMPLETED
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "reason": self.reason,
            "status": self.status,
            "error": self.error,
        }


@dataclass
class SweepReport:
    """Outcome of one sweep."""

    started_at: float
    duration: float = 0.0
    nodes_before: int = 0
    nodes_after: int = 0
    actions: List[MaintenanceAction] = field(default_factory=list)

    @property
    def evicted(self) -> List[str]:
        return [a.node_id for a in self.actions if a.status == STATUS_COMPLETED]

    @property
    def failed(self) -> List[MaintenanceAction]:
        return [a for a in self.actions if a.status == STATUS_FAILED]

    @property
    def skipped(self) -> List[str]:
        return [a.node_id for a in self.actions if a.status == STATUS_SKIPPED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at,
            "duration": self.duration,
            "nodes_before": self.nodes_before,
            "nodes_after": self.nodes_after,
            "actions": [a.to_dict() for a in self.actions],
        }


class GraphMaintainer:
    """
    Periodic eviction sweep over the graph store.

    A node is evicted when either predicate holds:
    - older than ``retention_window`` and importance below
      ``stale_importance_threshold``
    - importance below ``importance_threshold`` whatever its age
    """

    def __init__(
        self,
        store: GraphStore,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], float] = time.time,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.store = store
        self.config = config or store.config
        self._clock = clock
        self.error_handler = error_handler or get_error_handler()

        self._sweep_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._stats = GraphOptimizationStats()
        self._sweep_count = 0
        self._last_report: Optional[SweepReport] = None

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    # ==================== Timer ====================

    def start(self) -> None:
        """Start the background sweep thread."""
        if self._thread and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop, daemon=True, name="knowledge-graph-maintainer"
        )
        self._thread.start()
        logger.info(
            "Started graph maintainer",
            cleanup_interval=self.config.graph_optimization.cleanup_interval,
        )

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the background sweep thread and wait for it to exit."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Stopped graph maintainer")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def is_sweeping(self) -> bool:
        return self._sweep_lock.locked()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self._stop_event.wait(timeout=self.config.graph_optimization.cleanup_interval)
            if self._stop_event.is_set():
                break
            try:
                self.sweep()
            except Exception as e:
                self.error_handler.handle_error(
                    MaintenanceError(f"Sweep failed: {e}"), {"operation": "sweep"}
                )

    # ==================== Sweep ====================

    def should_evict(self, node: KnowledgeNode, now: float) -> Optional[str]:
        """Return the eviction reason for ``node``, or None to keep it."""
        settings = self.config.graph_optimization
        importance = node.metadata.importance
        stale = now - node.created_at > settings.retention_window
        if stale and importance < settings.stale_importance_threshold:
            return "stale_low_importance"
        if importance < settings.importance_threshold:
            return "low_importance"
        return None

    def sweep(self) -> Optional[SweepReport]:
        """
        Run one sweep.

        Returns:
            The SweepReport, or None if another sweep was already running.
        """
        if not self._sweep_lock.acquire(blocking=False):
            logger.debug("Sweep already in progress; tick skipped")
            return None
        try:
            return self._sweep_locked()
        finally:
            self._sweep_lock.release()

    def _sweep_locked(self) -> SweepReport:
        settings = self.config.graph_optimization
        now = self._clock()
        started = time.perf_counter()
        nodes = self.store.get_all_nodes()
        report = SweepReport(started_at=now, nodes_before=len(nodes))

        survivors = []
        for node in nodes:
            reason = self.should_evict(node, now)
            if reason is None:
                survivors.append(node)
            else:
                report.actions.append(self._evict(node.node_id, reason))

        if settings.compression_enabled and len(survivors) > settings.max_nodes:
            # least important first, oldest first among equals
            survivors.sort(key=lambda n: (n.metadata.importance, n.created_at))
            excess = len(survivors) - settings.max_nodes
            for node in survivors[:excess]:
                report.actions.append(self._evict(node.node_id, "capacity"))

        try:
            self.store.refresh_freshness(now, settings.retention_window)
        except Exception as e:
            self.error_handler.handle_error(
                MaintenanceError(f"Freshness refresh failed: {e}"), {"operation": "sweep"}
            )

        report.nodes_after = self.store.node_count()
        report.duration = time.perf_counter() - started
        self._record(report)

        if report.actions:
            logger.info(
                "Graph sweep completed",
                evicted=len(report.evicted),
                failed=len(report.failed),
                skipped=len(report.skipped),
                nodes_after=report.nodes_after,
            )
        return report

    def _evict(self, node_id: str, reason: str) -> MaintenanceAction:
        action = MaintenanceAction(node_id=node_id, reason=reason)
        try:
            if not self.store.delete_node(node_id):
                action.status = STATUS_SKIPPED
        except Exception as e:
            action.status = STATUS_FAILED
            action.error = str(e)
            self.error_handler.handle_error(
                MaintenanceError(f"Eviction failed: {e}", node_id=node_id),
                {"operation": "sweep", "reason": reason},
            )
        return action

    def _record(self, report: SweepReport) -> None:
        completed = len(report.evicted)
        attempted = completed + len(report.failed)
        with self._stats_lock:
            self._stats.cleanup_count += completed
            self._stats.compression_ratio = (
                report.nodes_after / report.nodes_before if report.nodes_before else 1.0
            )
            self._stats.performance = completed / attempted if attempted else 1.0
            self._sweep_count += 1
            self._last_report = report

    # ==================== State ====================

    def get_stats(self) -> GraphOptimizationStats:
        with self._stats_lock:
            return GraphOptimizationStats(
                compression_ratio=self._stats.compression_ratio,
                cleanup_count=self._stats.cleanup_count,
                performance=self._stats.performance,
            )

    @property
    def sweep_count(self) -> int:
        return self._sweep_count

    @property
    def last_report(self) -> Optional[SweepReport]:
        return self._last_report
