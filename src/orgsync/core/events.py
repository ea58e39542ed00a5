import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from orgsync.state.session_state import Session


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthStateChange:
    session: Optional[Session]
    is_logged_in: bool
    profile: Optional[Dict[str, Any]]


Listener = Callable[[AuthStateChange], Any]


class AuthStateBroadcaster:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def publish(self, change: AuthStateChange) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("auth-state listener %r failed", listener)
