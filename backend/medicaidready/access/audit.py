"""
Access audit sink.

Provides:
- AccessAuditEvent: structured outcome of one gate evaluation
- AccessAuditLogger: non-blocking writer into provider_access_audit

Audit is best-effort: a full queue or a failed insert is logged and the
event is dropped. Recording an event never raises into the request.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from queue import Queue, Empty, Full
from typing import Optional, Dict, Any, Callable

from sqlalchemy.orm import Session

from medicaidready.config.settings import get_audit_queue_size
from medicaidready.models.access_audit import ProviderAccessAudit

logger = logging.getLogger(__name__)

# Dedicated audit logger for structured logging
audit_logger = logging.getLogger("medicaidready.access.audit")


@dataclass
class AccessAuditEvent:
    """Structured event for a single access decision."""

    submission_id: str
    route: str
    method: str
    allowed: bool
    reason: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


class DatabaseAuditWriter:
    """Inserts audit events into provider_access_audit."""

    def __init__(self, db_session_factory: Callable[[], Session]):
        self._db_session_factory = db_session_factory

    def write(self, event: AccessAuditEvent) -> bool:
        session = None
        try:
            session = self._db_session_factory()
            session.add(
                ProviderAccessAudit(
                    id=event.event_id,
                    submission_id=event.submission_id,
                    route=event.route,
                    method=event.method,
                    allowed=event.allowed,
                    reason=event.reason,
                    ip=event.ip,
                    user_agent=event.user_agent,
                    created_at=event.timestamp,
                )
            )
            session.commit()
            return True
        except Exception as e:
            if session is not None:
                session.rollback()
            logger.error(
                "provider_access_audit insert failed",
                extra={
                    "submission_id": event.submission_id,
                    "route": event.route,
                    "allowed": event.allowed,
                    "reason": event.reason,
                    "error": str(e),
                },
            )
            return False
        finally:
            if session is not None:
                session.close()


class AccessAuditLogger:
    """
    Audit logger for gate decisions.

    In async mode (the default) events are queued and written by a daemon
    thread so the request path only pays for a put_nowait. Sync mode
    writes inline and is used by tests and scripts.
    """

    def __init__(
        self,
        writer: Optional[DatabaseAuditWriter] = None,
        async_mode: bool = True,
        max_queue_size: Optional[int] = None,
    ):
        self._writer = writer
        self._async_mode = async_mode
        self._queue: Queue = Queue(maxsize=max_queue_size or get_audit_queue_size())
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start the background writer thread."""
        with self._lock:
            if self._running or not self._async_mode:
                return
            self._running = True
            self._thread = threading.Thread(
                target=self._process_queue,
                name="access-audit-writer",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """Stop the background writer thread, draining what is queued."""
        with self._lock:
            self._running = False
            if self._thread:
                self._thread.join(timeout=5.0)
                self._thread = None

    def record(self, event: AccessAuditEvent) -> None:
        """Record an access decision. Never raises."""
        try:
            audit_logger.info(
                "access_decision",
                extra={"event_type": "access_decision", "audit_data": event.to_dict()},
            )

            if not self._async_mode:
                self._write(event)
                return

            if not self._running:
                self.start()
            try:
                self._queue.put_nowait(event)
            except Full:
                logger.warning(
                    "Access audit queue full, dropping event",
                    extra={"submission_id": event.submission_id, "event_id": event.event_id},
                )
        except Exception:
            logger.exception(
                "Access audit record failed",
                extra={"submission_id": event.submission_id},
            )

    def _process_queue(self) -> None:
        while self._running or not self._queue.empty():
            try:
                event = self._queue.get(timeout=1.0)
            except Empty:
                continue
            try:
                self._write(event)
            finally:
                self._queue.task_done()

    def _write(self, event: AccessAuditEvent) -> None:
        if self._writer is None:
            return
        self._writer.write(event)


_audit_logger: Optional[AccessAuditLogger] = None
_audit_logger_lock = threading.Lock()


def get_access_audit_logger() -> AccessAuditLogger:
    """Process-wide audit logger writing through the shared session factory."""
    global _audit_logger
    with _audit_logger_lock:
        if _audit_logger is None:
            from medicaidready.database.session import get_session_factory

            _audit_logger = AccessAuditLogger(
                writer=DatabaseAuditWriter(lambda: get_session_factory()()),
            )
        return _audit_logger


def shutdown_access_audit_logger() -> None:
    global _audit_logger
    with _audit_logger_lock:
        if _audit_logger is not None:
            _audit_logger.stop()
            _audit_logger = None
