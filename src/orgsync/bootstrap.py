import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from orgsync.config.settings import Settings, settings as default_settings
from orgsync.core.events import AuthStateBroadcaster
from orgsync.core.session_manager import SessionManager
from orgsync.core.sync_scheduler import SyncScheduler
from orgsync.services.auth_service import AuthServiceError, FirebaseAuthService
from orgsync.services.firestore_service import FirestoreService, FirestoreServiceError
from orgsync.services.notifier import Notifier
from orgsync.services.storage import LocalStore


logger = logging.getLogger(__name__)


class ProviderUnavailableError(Exception):
    pass


async def wait_for_provider(
    factory: Callable[[], Any],
    attempts: int = 10,
    initial_delay: float = 0.1,
    max_delay: float = 2.0,
) -> Any:
    """Await the identity provider once, backing off between attempts.

    ``factory`` may return the provider, ``None`` while it is not ready yet,
    or raise ``AuthServiceError``. Raises ``ProviderUnavailableError`` once
    ``attempts`` are used up.
    """
    delay = initial_delay
    last_error: Optional[BaseException] = None
    for attempt in range(1, max(attempts, 1) + 1):
        try:
            provider = factory()
            if inspect.isawaitable(provider):
                provider = await provider
        except AuthServiceError as exc:
            provider = None
            last_error = exc
            logger.warning("Identity provider not ready (attempt %s/%s): %s", attempt, attempts, exc)
        if provider is not None:
            return provider
        if attempt < attempts:
            await asyncio.sleep(delay)
            delay = min(delay * 2, max_delay)

    raise ProviderUnavailableError(f"Identity provider unavailable after {attempts} attempts") from last_error


def _document_store(cfg: Settings) -> Any:
    # Profile bootstrap is optional; the session works without it.
    try:
        return FirestoreService.from_settings(cfg)
    except FirestoreServiceError as exc:
        logger.warning("Firestore disabled: %s", exc)
    except Exception:
        logger.exception("Could not create Firestore client")
    return None


async def build_session_manager(
    cfg: Optional[Settings] = None,
    *,
    provider_factory: Optional[Callable[[], Any]] = None,
    document_store: Any = None,
    local_store: Optional[LocalStore] = None,
    notifier: Optional[Notifier] = None,
    sync_collaborator: Any = None,
    broadcaster: Optional[AuthStateBroadcaster] = None,
    start: bool = True,
) -> SessionManager:
    cfg = cfg or default_settings
    if provider_factory is None:
        def provider_factory() -> FirebaseAuthService:
            return FirebaseAuthService.from_settings(cfg)

    provider = await wait_for_provider(
        provider_factory,
        attempts=cfg.provider_ready_attempts,
        initial_delay=cfg.provider_ready_initial_delay_seconds,
        max_delay=cfg.provider_ready_max_delay_seconds,
    )

    if document_store is None:
        document_store = _document_store(cfg)
    if document_store is not None and cfg.firestore_connection_check:
        try:
            await document_store.check_connection()
            logger.info("Firestore test write successful")
        except Exception:
            logger.exception("Firestore test write failed")

    local_store = local_store or LocalStore(cfg.local_store_path)
    scheduler = SyncScheduler(
        local_store,
        sync_collaborator=sync_collaborator,
        interval=cfg.sync_interval_seconds,
        initial_delay=cfg.initial_sync_delay_seconds,
        visibility_delay=cfg.visibility_sync_delay_seconds,
    )
    manager = SessionManager(
        provider,
        local_store,
        scheduler,
        notifier or Notifier(),
        document_store=document_store,
        broadcaster=broadcaster,
        fallback_delay=cfg.fallback_login_delay_seconds,
        organization_prompt_delay=cfg.organization_prompt_delay_seconds,
    )
    if start:
        await manager.start()
    return manager
