import asyncio
import logging
from typing import Any, Callable, Coroutine, Dict, Optional, Set

from orgsync.core.errors import MESSAGES, AuthErrorKind, AuthFailure, AuthResult, describe_error
from orgsync.core.events import AuthStateBroadcaster, AuthStateChange, Listener
from orgsync.core.sync_scheduler import SyncScheduler
from orgsync.services.notifier import Notifier
from orgsync.services.storage import FIREBASE_USER_KEY, SELECTED_ORGANIZATION_KEY, LocalStore
from orgsync.state.app_state import AppState, FallbackPhase
from orgsync.state.session_state import Session, derive_display_name


logger = logging.getLogger(__name__)


class SessionManager:
    """Reconciles provider auth state with the local mirror, fallback login and auto-sync.

    The provider's state-change callback is the single source of truth: it
    is the only place the current session is replaced or cleared. Each
    delivery bumps a generation counter, and a delivery that resumes after
    a newer one has arrived stops without applying further effects.
    """

    def __init__(
        self,
        provider: Any,
        local_store: LocalStore,
        scheduler: SyncScheduler,
        notifier: Notifier,
        document_store: Any = None,
        broadcaster: Optional[AuthStateBroadcaster] = None,
        fallback_delay: float = 2.0,
        organization_prompt_delay: float = 0.5,
    ) -> None:
        self.provider = provider
        self.local_store = local_store
        self.scheduler = scheduler
        self.notifier = notifier
        self.document_store = document_store
        self.broadcaster = broadcaster or AuthStateBroadcaster()
        self.fallback_delay = fallback_delay
        self.organization_prompt_delay = organization_prompt_delay
        self.state = AppState()
        self.cached_session: Optional[Session] = None
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def current_session(self) -> Optional[Session]:
        return self.state.session

    @property
    def profile(self) -> Optional[Dict[str, Any]]:
        return self.state.profile

    @property
    def is_logged_in(self) -> bool:
        return self.state.session is not None

    @property
    def is_anonymous(self) -> bool:
        return bool(self.state.session and self.state.session.is_anonymous)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.broadcaster.subscribe(listener)

    async def start(self) -> None:
        self.cached_session = self._check_saved_user()
        if self._unsubscribe is None:
            self._unsubscribe = self.provider.on_state_change(self.on_provider_state_change)
        logger.info("Session manager started")

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.scheduler.disarm()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def on_provider_state_change(self, user: Any) -> None:
        generation = self.state.begin_delivery()

        if user is not None:
            session = Session.from_user(user)
            logger.info("User logged in: %s", session.email or session.uid)
            if not await self._apply_signed_in(session, generation):
                logger.debug("Dropping stale state delivery uid=%s", session.uid)
                return
        else:
            logger.info("User logged out")
            self._apply_signed_out()

        await self.broadcaster.publish(
            AuthStateChange(
                session=self.state.session,
                is_logged_in=self.state.session is not None,
                profile=self.state.profile,
            )
        )

    async def attempt_anonymous_fallback(self) -> AuthResult:
        if self.state.fallback is FallbackPhase.DISABLED:
            logger.info("Anonymous auth is disabled; not asking the provider again")
            kind = AuthErrorKind.ANONYMOUS_DISABLED
            return AuthResult.failed(AuthFailure(kind, MESSAGES[kind]))

        self.state.fallback = FallbackPhase.ATTEMPTED
        try:
            user = await self.provider.sign_in_anonymously()
        except Exception as exc:
            failure = describe_error(exc)
            logger.error("Anonymous login error: %s", failure.message)
            if failure.kind is AuthErrorKind.ANONYMOUS_DISABLED:
                logger.info("Anonymous auth is disabled. Using local storage only.")
                self.state.fallback = FallbackPhase.DISABLED
                self.notifier.suggest_login()
            return AuthResult.failed(failure)

        session = Session.guest(str(user.uid))
        current = self.state.session
        if current is None or current.uid != session.uid:
            logger.info("Anonymous login finished after the session changed; not applying it")
            return AuthResult.ok(session)

        logger.info("Anonymous login successful")
        self.state.session = session
        self.local_store.set_json(FIREBASE_USER_KEY, session.to_mirror())
        self.notifier.notify("Logged in as guest. Some features may be limited.", "info")
        return AuthResult.ok(session)

    async def login(self, email: str, password: str) -> AuthResult:
        try:
            user = await self.provider.sign_in_with_password(email, password)
        except Exception as exc:
            failure = describe_error(exc)
            logger.error("Login error: %s", failure.message)
            return AuthResult.failed(failure)

        logger.info("Login successful: %s", user.email)
        return AuthResult.ok(Session.from_user(user))

    async def register(self, email: str, password: str, display_name: Optional[str] = None) -> AuthResult:
        name = (display_name or "").strip() or derive_display_name(None, email)
        try:
            await self.provider.create_account(email, password)
            user = await self.provider.update_display_name(name)
        except Exception as exc:
            failure = describe_error(exc)
            logger.error("Registration error: %s", failure.message)
            return AuthResult.failed(failure)

        logger.info("Registration successful: %s", user.email)
        return AuthResult.ok(Session.from_user(user))

    async def logout(self) -> AuthResult:
        try:
            await self.provider.sign_out()
        except Exception as exc:
            failure = describe_error(exc)
            logger.error("Logout error: %s", failure.message)
            return AuthResult.failed(failure)

        self.scheduler.disarm()
        logger.info("Logout successful")
        return AuthResult.ok()

    def handle_visibility_change(self, visible: bool) -> None:
        self.scheduler.notify_visibility(visible)

    async def _apply_signed_in(self, session: Session, generation: int) -> bool:
        self.state.session = session
        if self.state.record_ensured_for not in (None, session.uid):
            self.state.record_ensured_for = None
        self.local_store.set_json(FIREBASE_USER_KEY, session.to_mirror())

        await self._ensure_record(session)
        if not self.state.is_current(generation):
            return False

        if not self.local_store.get_item(SELECTED_ORGANIZATION_KEY):
            self._spawn(self._prompt_organization_later(generation))

        if session.is_anonymous:
            self.scheduler.disarm()
        else:
            self.scheduler.arm(session)

        self.notifier.notify(f"Welcome {session.display_name}!", "success")
        return True

    def _apply_signed_out(self) -> None:
        self.state.clear()
        self.local_store.remove_item(FIREBASE_USER_KEY)
        self.scheduler.disarm()

        if self.state.claim_fallback():
            self._spawn(self._fallback_later())
        else:
            self.notifier.suggest_login()

    async def _ensure_record(self, session: Session) -> None:
        if self.document_store is None or session.is_anonymous:
            return
        if self.state.record_ensured_for == session.uid:
            return
        self.state.record_ensured_for = session.uid
        try:
            created = await self.document_store.ensure_user_profile(session.uid, session.email, session.display_name)
        except Exception:
            logger.exception("Error initializing user data uid=%s", session.uid)
            return
        if created:
            logger.info("New user created in Firestore uid=%s", session.uid)

    async def _fallback_later(self) -> None:
        await asyncio.sleep(self.fallback_delay)
        if self.state.session is not None:
            logger.info("Session established before fallback login; skipping it")
            self.state.fallback = FallbackPhase.ATTEMPTED
            return
        await self.attempt_anonymous_fallback()

    async def _prompt_organization_later(self, generation: int) -> None:
        await asyncio.sleep(self.organization_prompt_delay)
        if not self.state.is_current(generation) or self.state.session is None:
            return
        if self.local_store.get_item(SELECTED_ORGANIZATION_KEY):
            return
        self.notifier.prompt_organization()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _check_saved_user(self) -> Optional[Session]:
        session = Session.from_mirror(self.local_store.get_json(FIREBASE_USER_KEY))
        if session is not None:
            logger.info("Found saved user: %s", session.email or session.uid)
        else:
            logger.debug("No valid saved user found")
        return session
