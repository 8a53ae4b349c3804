"""Row-level change feed built on SQLAlchemy session events.

Changes to watched tables are collected during flush and published to
subscribers only once the transaction commits; a rollback discards them.
Delivery to subscribers mirrors a hosted realtime channel: callers must not
rely on ordering relative to their own writes, and the feed may be
disconnected, in which case events are dropped until ``reconnect()``.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from social_graph.config import WATCHED_TABLES
from social_graph.utils.logger import get_logger

logger = get_logger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

_PENDING_KEY = "change_feed_pending"

Subscriber = Callable[["ChangeEvent"], None]


@dataclass(frozen=True)
class ChangeEvent:
    event_type: str
    table: str
    row: Dict[str, Any]
    old_row: Optional[Dict[str, Any]] = field(default=None)

    @property
    def row_id(self) -> Optional[str]:
        return self.row.get("id")


def _snapshot(obj) -> Dict[str, Any]:
    if hasattr(obj, "to_row"):
        return obj.to_row()
    mapper = inspect(obj).mapper
    return {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}


def _previous_values(obj) -> Dict[str, Any]:
    """Row as it was before this flush, for the attributes that changed."""
    state = inspect(obj)
    previous = dict(_snapshot(obj))
    for attr in state.mapper.column_attrs:
        history = state.attrs[attr.key].history
        if history.deleted:
            previous[attr.key] = history.deleted[0]
    return previous


class ChangeFeed:
    """Publishes committed INSERT/UPDATE/DELETE events per table."""

    def __init__(self, tables: Iterable[str] = WATCHED_TABLES):
        self.tables = set(tables)
        self.connected = True
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._reconnect_listeners: List[Callable[[], None]] = []
        self._targets = []

    # --- wiring ---

    def attach(self, target) -> "ChangeFeed":
        """Listen to a ``sessionmaker``, ``Session`` class or session instance."""
        event.listen(target, "after_flush", self._collect)
        event.listen(target, "after_commit", self._publish)
        event.listen(target, "after_rollback", self._discard)
        self._targets.append(target)
        return self

    def detach(self) -> None:
        for target in self._targets:
            event.remove(target, "after_flush", self._collect)
            event.remove(target, "after_commit", self._publish)
            event.remove(target, "after_rollback", self._discard)
        self._targets = []

    def subscribe(self, table: str, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for one table (``"*"`` for all); returns an unsubscribe function."""
        self._subscribers.setdefault(table, []).append(callback)

        def unsubscribe():
            callbacks = self._subscribers.get(table, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def on_reconnect(self, listener: Callable[[], None]) -> None:
        self._reconnect_listeners.append(listener)

    # --- connection state ---

    def disconnect(self) -> None:
        if self.connected:
            logger.warning("Change feed disconnected; events will be dropped until reconnect")
        self.connected = False

    def reconnect(self) -> None:
        was_connected = self.connected
        self.connected = True
        if was_connected:
            return
        logger.info("Change feed reconnected; notifying %d listener(s)", len(self._reconnect_listeners))
        for listener in list(self._reconnect_listeners):
            try:
                listener()
            except Exception as e:
                logger.exception(f"Reconnect listener failed: {e}")

    # --- delivery ---

    def deliver(self, change: ChangeEvent) -> None:
        """Hand one event to the subscribers of its table."""
        if not self.connected:
            logger.debug("Dropping %s on %s while disconnected", change.event_type, change.table)
            return
        callbacks = self._subscribers.get(change.table, []) + self._subscribers.get("*", [])
        for callback in callbacks:
            try:
                callback(change)
            except Exception as e:
                logger.exception(f"Change feed subscriber failed for {change.event_type} on {change.table}: {e}")

    def _collect(self, session: Session, flush_context) -> None:
        pending = session.info.setdefault(_PENDING_KEY, [])
        for obj in session.new:
            table = getattr(obj, "__tablename__", None)
            if table in self.tables:
                pending.append(ChangeEvent(INSERT, table, _snapshot(obj)))
        for obj in session.dirty:
            table = getattr(obj, "__tablename__", None)
            if table in self.tables and session.is_modified(obj, include_collections=False):
                pending.append(ChangeEvent(UPDATE, table, _snapshot(obj), _previous_values(obj)))
        for obj in session.deleted:
            table = getattr(obj, "__tablename__", None)
            if table in self.tables:
                row = _snapshot(obj)
                pending.append(ChangeEvent(DELETE, table, row, row))

    def _publish(self, session: Session) -> None:
        pending = session.info.pop(_PENDING_KEY, [])
        for change in pending:
            self.deliver(change)

    def _discard(self, session: Session) -> None:
        session.info.pop(_PENDING_KEY, None)
