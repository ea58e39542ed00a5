import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List


logger = logging.getLogger(__name__)

SEVERITIES = ("info", "success", "warning", "error")


@dataclass(frozen=True)
class Notification:
    kind: str
    message: str
    severity: str = "info"


class Notifier:
    """Collects user-facing messages for whatever presentation layer drains them."""

    LOGIN_SUGGESTION = "login_suggestion"
    ORGANIZATION_PROMPT = "organization_prompt"
    MESSAGE = "message"

    def __init__(self, max_pending: int = 50) -> None:
        self._pending: Deque[Notification] = deque(maxlen=max_pending)

    def notify(self, message: str, severity: str = "info") -> None:
        if severity not in SEVERITIES:
            severity = "info"
        logger.info("notify severity=%s message=%s", severity, message)
        self._pending.append(Notification(self.MESSAGE, message, severity))

    def suggest_login(self) -> None:
        if self.has_pending(self.LOGIN_SUGGESTION):
            return
        logger.info("Suggesting login for cloud sync")
        self._pending.append(Notification(self.LOGIN_SUGGESTION, "Login for cloud sync"))

    def prompt_organization(self) -> None:
        if self.has_pending(self.ORGANIZATION_PROMPT):
            return
        logger.info("Prompting for organization selection")
        self._pending.append(Notification(self.ORGANIZATION_PROMPT, "Select an organization"))

    def has_pending(self, kind: str) -> bool:
        return any(n.kind == kind for n in self._pending)

    def drain(self) -> List[Notification]:
        items = list(self._pending)
        self._pending.clear()
        return items
