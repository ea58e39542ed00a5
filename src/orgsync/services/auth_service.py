import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

import requests
from requests import RequestException

from orgsync.config.settings import Settings, settings


logger = logging.getLogger(__name__)

StateListener = Callable[[Optional["FirebaseUser"]], Awaitable[None]]


class AuthServiceError(Exception):
    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code
        self.message = message or code


# Identity Toolkit REST error strings -> the client SDK's auth/* codes.
REST_ERROR_CODES = {
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_EMAIL": "auth/invalid-email",
    "WEAK_PASSWORD": "auth/weak-password",
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "USER_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "USER_DISABLED": "auth/user-disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "ADMIN_ONLY_OPERATION": "auth/admin-restricted-operation",
    "OPERATION_NOT_ALLOWED": "auth/admin-restricted-operation",
    "INVALID_ID_TOKEN": "auth/invalid-user-token",
    "TOKEN_EXPIRED": "auth/user-token-expired",
}


@dataclass(frozen=True)
class FirebaseUser:
    uid: str
    email: Optional[str]
    display_name: Optional[str]
    is_anonymous: bool
    id_token: str
    refresh_token: str


class FirebaseAuthService:
    SIGN_UP_PATH = "/accounts:signUp"
    LOGIN_PATH = "/accounts:signInWithPassword"
    UPDATE_PATH = "/accounts:update"

    def __init__(self, api_key: str, base_url: str, timeout: float = 15) -> None:
        if not api_key:
            raise AuthServiceError("auth/invalid-api-key", "Missing FIREBASE_API_KEY in environment")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._current: Optional[FirebaseUser] = None
        self._listeners: List[StateListener] = []
        self._deliveries: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None) -> "FirebaseAuthService":
        cfg = cfg or settings
        return cls(cfg.firebase_api_key, cfg.identity_toolkit_url, cfg.request_timeout_seconds)

    @property
    def current_user(self) -> Optional[FirebaseUser]:
        return self._current

    def on_state_change(self, callback: StateListener) -> Callable[[], None]:
        """Register a listener; the current state is delivered to it on the next loop turn."""
        self._listeners.append(callback)
        task = asyncio.get_running_loop().create_task(callback(self._current))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    async def sign_in_anonymously(self) -> FirebaseUser:
        data = await self._call(self.SIGN_UP_PATH, {"returnSecureToken": True})
        user = self._to_user(data, anonymous=True)
        await self._set_current(user)
        return user

    async def sign_in_with_password(self, email: str, password: str) -> FirebaseUser:
        payload = {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        }
        data = await self._call(self.LOGIN_PATH, payload)
        user = self._to_user(data, anonymous=False)
        await self._set_current(user)
        return user

    async def create_account(self, email: str, password: str) -> FirebaseUser:
        payload = {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        }
        data = await self._call(self.SIGN_UP_PATH, payload)
        user = self._to_user(data, anonymous=False)
        await self._set_current(user)
        return user

    async def update_display_name(self, name: str) -> FirebaseUser:
        current = self._current
        if current is None:
            raise AuthServiceError("auth/no-current-user", "No user is signed in")
        payload = {
            "idToken": current.id_token,
            "displayName": name,
            "returnSecureToken": False,
        }
        data = await self._call(self.UPDATE_PATH, payload)
        updated = replace(current, display_name=str(data.get("displayName") or name))
        # Profile updates do not count as an auth state change.
        if self._current is current:
            self._current = updated
        return updated

    async def sign_out(self) -> None:
        await self._set_current(None)

    async def _set_current(self, user: Optional[FirebaseUser]) -> None:
        self._current = user
        for listener in list(self._listeners):
            await listener(user)

    async def _call(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await asyncio.to_thread(self._post, path, payload)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        try:
            res = requests.post(url, params={"key": self.api_key}, headers=headers, json=payload, timeout=self.timeout)
        except RequestException as exc:
            raise AuthServiceError("auth/network-request-failed", str(exc)) from exc
        try:
            data = res.json()
        except ValueError:
            raise AuthServiceError("auth/internal-error", f"Unexpected response ({res.status_code})")

        if res.status_code >= 400:
            raise self._to_error(data)

        return data

    @staticmethod
    def _to_error(data: Dict[str, Any]) -> AuthServiceError:
        error = data.get("error") if isinstance(data, dict) else None
        raw = str((error or {}).get("message") or "AUTH_ERROR")
        # e.g. "WEAK_PASSWORD : Password should be at least 6 characters"
        key, _, detail = raw.partition(" : ")
        key = key.strip()
        code = REST_ERROR_CODES.get(key, "auth/" + key.lower().replace("_", "-"))
        message = detail.strip() or key.replace("_", " ").capitalize()
        return AuthServiceError(code, message)

    @staticmethod
    def _to_user(data: Dict[str, Any], anonymous: bool) -> FirebaseUser:
        uid = str(data.get("localId") or "")
        if not uid:
            raise AuthServiceError("auth/internal-error", "Response did not include a user id")
        return FirebaseUser(
            uid=uid,
            email=data.get("email") or None,
            display_name=data.get("displayName") or None,
            is_anonymous=anonymous,
            id_token=str(data.get("idToken") or ""),
            refresh_token=str(data.get("refreshToken") or ""),
        )
