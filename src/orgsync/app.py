from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from orgsync.bootstrap import ProviderUnavailableError, build_session_manager
from orgsync.config.settings import settings
from orgsync.core.errors import AuthResult
from orgsync.core.session_manager import SessionManager
from orgsync.logging_setup import configure_logging
from orgsync.services.storage import SELECTED_ORGANIZATION_KEY


MIN_PASSWORD_LENGTH = 6

ManagerFactory = Callable[[], Awaitable[SessionManager]]


class AuthPayload(BaseModel):
    email: str = ""
    password: str = ""


class RegisterPayload(AuthPayload):
    display_name: Optional[str] = None


class VisibilityPayload(BaseModel):
    visible: bool


class OrganizationPayload(BaseModel):
    organization: str


def _session_body(manager: SessionManager) -> Dict[str, Any]:
    cached = manager.cached_session
    return {
        "is_logged_in": manager.is_logged_in,
        "is_anonymous": manager.is_anonymous,
        "profile": manager.profile,
        "cached_profile": cached.to_mirror() if cached else None,
    }


def _result_body(result: AuthResult) -> Dict[str, Any]:
    return {
        "success": result.success,
        "profile": result.session.to_mirror() if result.session else None,
    }


def _credentials(payload: AuthPayload) -> tuple[str, str]:
    email = payload.email.strip()
    password = payload.password.strip()
    if not email or not password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Please enter email and password")
    return email, password


def create_app(manager_factory: Optional[ManagerFactory] = None) -> FastAPI:
    factory = manager_factory or build_session_manager

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        try:
            manager = await factory()
        except ProviderUnavailableError as exc:
            raise RuntimeError(f"Cannot start without an identity provider: {exc}") from exc
        app.state.manager = manager
        try:
            yield
        finally:
            await manager.close()

    app = FastAPI(title="orgsync", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _manager(request: Request) -> SessionManager:
        manager = getattr(request.app.state, "manager", None)
        if manager is None:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Session manager not ready")
        return manager

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/session")
    def get_session(request: Request) -> Dict:
        return _session_body(_manager(request))

    @app.post("/auth/login")
    async def login(payload: AuthPayload, request: Request) -> Dict:
        email, password = _credentials(payload)
        result = await _manager(request).login(email, password)
        if not result.success:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=result.error)
        return _result_body(result)

    @app.post("/auth/register")
    async def register(payload: RegisterPayload, request: Request) -> Dict:
        email, password = _credentials(payload)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            )
        result = await _manager(request).register(email, password, payload.display_name)
        if not result.success:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
        return _result_body(result)

    @app.post("/auth/logout")
    async def logout(request: Request) -> Dict[str, str]:
        result = await _manager(request).logout()
        if not result.success:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
        return {"status": "logged_out"}

    @app.post("/visibility")
    async def visibility(payload: VisibilityPayload, request: Request) -> Dict[str, bool]:
        manager = _manager(request)
        manager.handle_visibility_change(payload.visible)
        return {"sync_armed": manager.scheduler.armed}

    @app.put("/organization")
    def select_organization(payload: OrganizationPayload, request: Request) -> Dict[str, str]:
        organization = payload.organization.strip()
        if not organization:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Organization is required")
        _manager(request).local_store.set_item(SELECTED_ORGANIZATION_KEY, organization)
        return {"organization": organization}

    @app.get("/notifications")
    def notifications(request: Request) -> List[Dict[str, str]]:
        return [
            {"kind": n.kind, "message": n.message, "severity": n.severity}
            for n in _manager(request).notifier.drain()
        ]

    return app


app = create_app()
