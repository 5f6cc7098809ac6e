"""
Mapping from live-update events to client cache query keys.

Clients receive ``<entity>:<action>`` events and refresh the cached queries
listed here. Bursts of events are coalesced by ``InvalidationDebouncer`` so
each key is refreshed once per window.
"""
import asyncio
import inspect
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

from personalsystem.utils import get_logger


log = get_logger(__name__)

QueryKey = Tuple[str, ...]

ENTITY_QUERY_KEYS: Dict[str, List[QueryKey]] = {
    "employee": [("employees",), ("employee",), ("dashboard",)],
    "absence": [("absences",), ("dashboard",)],
    "bonus": [("bonus",), ("bonusPayments",), ("dashboard",)],
    "sanction": [("sanctions",), ("dashboard",)],
    "task": [("tasks",), ("dashboard",)],
    "investigation": [("investigations",), ("dashboard",)],
    "case": [("cases",), ("dashboard",)],
    "application": [("applications",), ("dashboard",)],
    "training": [("trainings",), ("dashboard",)],
    "uprankRequest": [("uprankRequests",), ("dashboard",)],
    "announcement": [("announcements",), ("dashboard",)],
    "notification": [("notifications",)],
    "evidence": [("evidence",), ("dashboard",)],
    "robbery": [("robberies",), ("dashboard",)],
    "tuning": [("tuning",), ("dashboard",)],
    "calendar": [("calendar",), ("calendarUpcoming",), ("dashboard",)],
}

LIVE_ACTIONS = ("created", "updated", "deleted")


def parse_event(event: str) -> Optional[Tuple[str, str]]:
    """``"case:updated"`` -> ("case", "updated"); None for other events."""
    entity, sep, action = event.partition(":")
    if not sep or not entity or action not in LIVE_ACTIONS:
        return None
    return entity, action


def query_keys_for(event: str) -> List[QueryKey]:
    """Query keys to refresh for an entity event; unknown entities map to themselves."""
    parsed = parse_event(event)
    if parsed is None:
        return []
    entity = parsed[0]
    return list(ENTITY_QUERY_KEYS.get(entity, [(entity,)]))


Invalidate = Callable[[QueryKey], Union[Awaitable[None], None]]


class InvalidationDebouncer:
    """
    Collects query keys from events and invalidates them after ``delay``
    seconds of quiet. Each distinct key is invalidated once per flush.
    """

    def __init__(self, invalidate: Invalidate, delay: float = 0.1) -> None:
        self._invalidate = invalidate
        self._delay = delay
        self._pending: Dict[QueryKey, None] = {}
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> List[QueryKey]:
        return list(self._pending)

    def push(self, event: str) -> None:
        keys = query_keys_for(event)
        if not keys:
            return
        for key in keys:
            self._pending.setdefault(key, None)
        self._reschedule()

    def _reschedule(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        self._task = asyncio.ensure_future(self.flush())

    async def flush(self) -> List[QueryKey]:
        """Invalidate every pending key now and return them."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        keys, self._pending = list(self._pending), {}
        for key in keys:
            try:
                result = self._invalidate(key)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                log.exception("Invalidation of %s failed", key)
        return keys

    async def wait(self) -> None:
        """Wait for a scheduled flush to finish (used on shutdown and in tests)."""
        while self._timer is not None:
            await asyncio.sleep(self._delay)
        if self._task is not None:
            await self._task

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending.clear()
