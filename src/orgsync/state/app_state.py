from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from orgsync.state.session_state import Session


class FallbackPhase(str, Enum):
    AVAILABLE = "available"
    SCHEDULED = "scheduled"
    ATTEMPTED = "attempted"
    DISABLED = "disabled"


@dataclass
class AppState:
    session: Optional[Session] = None
    fallback: FallbackPhase = FallbackPhase.AVAILABLE
    generation: int = 0
    record_ensured_for: Optional[str] = None

    @property
    def profile(self) -> Optional[Dict[str, Any]]:
        return self.session.to_mirror() if self.session else None

    def begin_delivery(self) -> int:
        self.generation += 1
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def claim_fallback(self) -> bool:
        # Leaves AVAILABLE before any attempt starts, so only one caller ever wins.
        if self.fallback is not FallbackPhase.AVAILABLE:
            return False
        self.fallback = FallbackPhase.SCHEDULED
        return True

    def clear(self) -> None:
        self.session = None
        self.record_ensured_for = None
