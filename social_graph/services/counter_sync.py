"""Reconciles optimistic engagement counters with the change feed.

For every entity the sync keeps the last authoritative (``confirmed``)
counter values plus a log of optimistic deltas that have been applied
locally but not yet matched by a notification. The displayed value is
always ``confirmed + outstanding deltas`` floored at zero, so consuming a
delta against its notification moves it from the log into ``confirmed``
without the display changing.

Notifications are de-duplicated on their row id, so at-least-once delivery
never counts a row twice.
"""
import time
import uuid
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Tuple

from social_graph.config import settings
from social_graph.realtime import DELETE, INSERT, UPDATE, ChangeEvent
from social_graph.utils.logger import get_logger

logger = get_logger(__name__)

TRADE_SETUP = "trade_setup"
COMMENT = "comment"

COMMENTS_COUNT = "comments_count"
LIKES_COUNT = "likes_count"
DISLIKES_COUNT = "dislikes_count"

COUNTER_NAMES = {
    TRADE_SETUP: (LIKES_COUNT, COMMENTS_COUNT),
    COMMENT: (LIKES_COUNT, DISLIKES_COUNT),
}

REACTION_COUNTERS = {"LIKE": LIKES_COUNT, "DISLIKE": DISLIKES_COUNT}

EntityKey = Tuple[str, str]


@dataclass
class CounterChange:
    """Counter movement implied by one notification (or one local write)."""
    entity: EntityKey
    operation: str
    changes: Dict[str, int]
    actor_id: Optional[str] = None


@dataclass
class PendingDelta:
    token: str
    entity: EntityKey
    operation: str
    changes: Dict[str, int]
    actor_id: Optional[str]
    created_at: float
    row_id: Optional[str] = None
    # Already reflected in ``confirmed`` by a resync; only waits to swallow its notification
    absorbed: bool = False


@dataclass
class EntityCounters:
    confirmed: Dict[str, int] = field(default_factory=dict)
    pending: Dict[str, Deque[PendingDelta]] = field(default_factory=dict)

    def outstanding(self) -> List[PendingDelta]:
        return [delta for deltas in self.pending.values() for delta in deltas]

    def displayed(self) -> Dict[str, int]:
        values = dict(self.confirmed)
        for delta in self.outstanding():
            if delta.absorbed:
                continue
            for name, amount in delta.changes.items():
                values[name] = values.get(name, 0) + amount
        return {name: max(0, value) for name, value in values.items()}


def counter_changes(change: ChangeEvent) -> List[CounterChange]:
    """Translate a row change into the counter movements it implies."""
    row = change.row or {}
    if change.table == "trade_setup_comments":
        entity = (TRADE_SETUP, row.get("trade_setup_id"))
        if change.event_type == INSERT:
            return [CounterChange(entity, "comment.insert", {COMMENTS_COUNT: 1}, row.get("user_id"))]
        if change.event_type == DELETE:
            return [CounterChange(entity, "comment.delete", {COMMENTS_COUNT: -1}, row.get("user_id"))]
        return []

    if change.table == "trade_setup_likes":
        entity = (TRADE_SETUP, row.get("trade_setup_id"))
        if change.event_type == INSERT:
            return [CounterChange(entity, "setup_like.insert", {LIKES_COUNT: 1}, row.get("user_id"))]
        if change.event_type == DELETE:
            return [CounterChange(entity, "setup_like.delete", {LIKES_COUNT: -1}, row.get("user_id"))]
        return []

    if change.table == "comment_reactions":
        entity = (COMMENT, row.get("comment_id"))
        reaction_type = row.get("reaction_type")
        counter = REACTION_COUNTERS.get(reaction_type)
        if counter is None:
            return []
        if change.event_type == INSERT:
            return [CounterChange(entity, f"{reaction_type}.insert", {counter: 1}, row.get("user_id"))]
        if change.event_type == DELETE:
            return [CounterChange(entity, f"{reaction_type}.delete", {counter: -1}, row.get("user_id"))]
        if change.event_type == UPDATE:
            previous_type = (change.old_row or {}).get("reaction_type")
            previous_counter = REACTION_COUNTERS.get(previous_type)
            if previous_counter is None or previous_type == reaction_type:
                return []
            return [CounterChange(
                entity,
                f"{previous_type}->{reaction_type}",
                {previous_counter: -1, counter: 1},
                row.get("user_id"),
            )]
    return []


def event_key(change: ChangeEvent) -> Tuple:
    """Idempotency key of a notification."""
    if change.event_type == UPDATE:
        return (change.table, change.event_type, change.row_id,
                change.row.get("reaction_type"), str(change.row.get("updated_at")))
    return (change.table, change.event_type, change.row_id)


class EngagementCounterSync:
    """In-memory counter cache shared by the facade and the change feed."""

    def __init__(self, staleness_seconds: float = None, consumed_cache_size: int = None,
                 clock: Callable[[], float] = time.monotonic):
        self.staleness_seconds = settings.COUNTER_STALENESS_SECONDS if staleness_seconds is None else staleness_seconds
        self.consumed_cache_size = consumed_cache_size or settings.CONSUMED_EVENT_CACHE_SIZE
        self.clock = clock
        self._entities: Dict[EntityKey, EntityCounters] = {}
        self._tokens: Dict[str, PendingDelta] = {}
        self._consumed: "OrderedDict[Tuple, None]" = OrderedDict()

    # --- reads ---

    def is_tracked(self, entity_kind: str, entity_id: str) -> bool:
        return (entity_kind, entity_id) in self._entities

    def get(self, entity_kind: str, entity_id: str) -> Optional[Dict[str, int]]:
        counters = self._entities.get((entity_kind, entity_id))
        if counters is None:
            return None
        return counters.displayed()

    def confirmed(self, entity_kind: str, entity_id: str) -> Optional[Dict[str, int]]:
        counters = self._entities.get((entity_kind, entity_id))
        return dict(counters.confirmed) if counters else None

    # --- authoritative values ---

    def seed(self, entity_kind: str, entity_id: str, counts: Dict[str, int]) -> Dict[str, int]:
        """Record authoritative counts read from storage."""
        counters = self._entities.setdefault((entity_kind, entity_id), EntityCounters())
        counters.confirmed = {name: max(0, int(counts.get(name) or 0)) for name in COUNTER_NAMES[entity_kind]}
        return counters.displayed()

    def forget(self, entity_kind: str, entity_id: str) -> None:
        counters = self._entities.pop((entity_kind, entity_id), None)
        if counters:
            for delta in counters.outstanding():
                self._tokens.pop(delta.token, None)

    # --- optimistic writes ---

    def apply_optimistic(self, entity_kind: str, entity_id: str, operation: str,
                         changes: Dict[str, int], actor_id: Optional[str] = None) -> str:
        """Apply a local delta immediately; returns a token for confirm/rollback."""
        entity = (entity_kind, entity_id)
        counters = self._entities.setdefault(entity, EntityCounters(
            confirmed={name: 0 for name in COUNTER_NAMES[entity_kind]}
        ))
        delta = PendingDelta(
            token=str(uuid.uuid4()),
            entity=entity,
            operation=operation,
            changes=dict(changes),
            actor_id=actor_id,
            created_at=self.clock(),
        )
        counters.pending.setdefault(operation, deque()).append(delta)
        self._tokens[delta.token] = delta
        logger.debug("Optimistic %s on %s:%s %s", operation, entity_kind, entity_id, changes)
        return delta.token

    def confirm(self, token: str, row_id: Optional[str]) -> None:
        """Attach the stored row id to a delta whose write succeeded."""
        delta = self._tokens.get(token)
        if delta is not None:
            delta.row_id = row_id

    def rollback(self, token: str) -> None:
        """Withdraw a delta whose write was rejected."""
        delta = self._tokens.pop(token, None)
        if delta is None:
            return
        self._remove_pending(delta)
        logger.debug("Rolled back optimistic %s on %s:%s", delta.operation, *delta.entity)

    # --- change feed ---

    def apply_event(self, change: ChangeEvent) -> bool:
        """Reconcile one notification; returns False for duplicates and irrelevant rows."""
        movements = counter_changes(change)
        if not movements:
            return False
        key = event_key(change)
        if key in self._consumed:
            logger.debug("Ignoring duplicate %s on %s row=%s", change.event_type, change.table, change.row_id)
            return False
        self._remember(key)

        for movement in movements:
            counters = self._entities.get(movement.entity)
            if counters is None:
                # Nobody is displaying this entity; the next read seeds it from storage
                continue
            delta = self._match_pending(counters, movement, change.row_id)
            if delta is not None:
                self._remove_pending(delta)
                self._tokens.pop(delta.token, None)
                if delta.absorbed:
                    continue
            for name, amount in movement.changes.items():
                counters.confirmed[name] = max(0, counters.confirmed.get(name, 0) + amount)
        return True

    def resync(self, fetch: Callable[[str, str], Optional[Dict[str, int]]]) -> None:
        """Re-derive every tracked entity from storage after the feed reconnects.

        Deltas older than the staleness window are dropped. Fresher deltas
        whose write already succeeded are assumed to be in the fresh read and
        only wait to swallow their notification; deltas still in flight stay
        on top of the new authoritative value.
        """
        now = self.clock()
        for (entity_kind, entity_id), counters in list(self._entities.items()):
            for delta in counters.outstanding():
                if now - delta.created_at > self.staleness_seconds:
                    self._remove_pending(delta)
                    self._tokens.pop(delta.token, None)
                elif delta.row_id is not None:
                    delta.absorbed = True
            counts = fetch(entity_kind, entity_id)
            if counts is None:
                self.forget(entity_kind, entity_id)
                continue
            self.seed(entity_kind, entity_id, counts)
        logger.info("Resynced %d engagement counter(s) after reconnect", len(self._entities))

    # --- internals ---

    def _match_pending(self, counters: EntityCounters, movement: CounterChange,
                       row_id: Optional[str]) -> Optional[PendingDelta]:
        deltas = counters.pending.get(movement.operation)
        if not deltas:
            return None
        for delta in deltas:
            if row_id is not None and delta.row_id == row_id:
                return delta
        for delta in deltas:
            if delta.row_id is None and (delta.actor_id is None or delta.actor_id == movement.actor_id):
                return delta
        return None

    def _remove_pending(self, delta: PendingDelta) -> None:
        counters = self._entities.get(delta.entity)
        if counters is None:
            return
        deltas = counters.pending.get(delta.operation)
        if deltas and delta in deltas:
            deltas.remove(delta)
            if not deltas:
                del counters.pending[delta.operation]

    def _remember(self, key: Tuple) -> None:
        self._consumed[key] = None
        while len(self._consumed) > self.consumed_cache_size:
            self._consumed.popitem(last=False)
