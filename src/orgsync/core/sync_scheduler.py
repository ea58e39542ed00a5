import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Optional, Set

from orgsync.services.storage import SELECTED_ORGANIZATION_KEY, LocalStore
from orgsync.state.session_state import Session


logger = logging.getLogger(__name__)


@dataclass
class SyncScheduleState:
    active: bool = False
    session_uid: Optional[str] = None
    interval_task: Optional[asyncio.Task] = None


class SyncScheduler:
    """Runs best-effort local-to-remote syncs while a registered user is signed in.

    Armed:    a periodic sync every ``interval`` seconds, one catch-up sync
              ``initial_delay`` seconds after arming, and one debounced sync
              each time the host reports it became visible again.
    Disarmed: nothing is scheduled. A sync already running is left to finish
              but nothing follows it.
    """

    def __init__(
        self,
        local_store: LocalStore,
        sync_collaborator: Any = None,
        interval: float = 60.0,
        initial_delay: float = 3.0,
        visibility_delay: float = 1.0,
    ) -> None:
        self.local_store = local_store
        self.sync_collaborator = sync_collaborator
        self.interval = interval
        self.initial_delay = initial_delay
        self.visibility_delay = visibility_delay
        self.state = SyncScheduleState()
        self._kickoff_task: Optional[asyncio.Task] = None
        self._visibility_task: Optional[asyncio.Task] = None
        self._syncs: Set[asyncio.Task] = set()
        self._in_flight = False

    @property
    def armed(self) -> bool:
        return self.state.active

    @property
    def armed_uid(self) -> Optional[str]:
        return self.state.session_uid

    def arm(self, session: Optional[Session]) -> bool:
        if session is None or session.is_anonymous:
            logger.info("Auto-sync disabled for anonymous or signed-out sessions")
            return False
        if self.state.active:
            if self.state.session_uid == session.uid:
                return True
            self.disarm()

        loop = asyncio.get_running_loop()
        self.state = SyncScheduleState(
            active=True,
            session_uid=session.uid,
            interval_task=loop.create_task(self._run_periodic()),
        )
        self._kickoff_task = loop.create_task(self._run_after(self.initial_delay))
        logger.info("Auto-sync started uid=%s interval=%ss", session.uid, self.interval)
        return True

    def disarm(self) -> None:
        was_active = self.state.active
        for task in (self.state.interval_task, self._kickoff_task, self._visibility_task):
            if task is not None and not task.done():
                task.cancel()
        self.state = SyncScheduleState()
        self._kickoff_task = None
        self._visibility_task = None
        if was_active:
            logger.info("Auto-sync stopped")

    def notify_visibility(self, visible: bool) -> None:
        if not visible or not self.state.active:
            return
        if self._visibility_task is not None and not self._visibility_task.done():
            self._visibility_task.cancel()
        self._visibility_task = asyncio.get_running_loop().create_task(self._run_after(self.visibility_delay))

    async def sync_action(self) -> bool:
        if not self.state.active:
            return False
        if self.sync_collaborator is None:
            logger.debug("Skipping sync: no sync collaborator")
            return False
        if self._in_flight:
            logger.debug("Skipping sync: previous sync still running")
            return False

        self._in_flight = True
        try:
            if not self.local_store.get_item(SELECTED_ORGANIZATION_KEY):
                logger.debug("Skipping sync: no organization selected")
                return False
            result = self.sync_collaborator.sync_all_local_data()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Auto-sync error")
            return False
        finally:
            self._in_flight = False
        logger.debug("Auto-sync finished")
        return True

    async def wait_idle(self) -> None:
        if self._syncs:
            await asyncio.gather(*list(self._syncs), return_exceptions=True)

    def _spawn_sync(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.sync_action())
        self._syncs.add(task)
        task.add_done_callback(self._syncs.discard)
        return task

    async def _run_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await asyncio.shield(self._spawn_sync())

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await asyncio.shield(self._spawn_sync())
