from dataclasses import dataclass
from enum import Enum
from typing import Optional

from orgsync.state.session_state import Session


class AuthErrorKind(str, Enum):
    EMAIL_IN_USE = "email_in_use"
    INVALID_EMAIL = "invalid_email"
    WEAK_PASSWORD = "weak_password"
    USER_NOT_FOUND = "user_not_found"
    WRONG_PASSWORD = "wrong_password"
    RATE_LIMITED = "rate_limited"
    ANONYMOUS_DISABLED = "anonymous_disabled"
    NETWORK_FAILURE = "network_failure"
    UNKNOWN = "unknown"


KIND_BY_CODE = {
    "auth/email-already-in-use": AuthErrorKind.EMAIL_IN_USE,
    "auth/invalid-email": AuthErrorKind.INVALID_EMAIL,
    "auth/weak-password": AuthErrorKind.WEAK_PASSWORD,
    "auth/user-not-found": AuthErrorKind.USER_NOT_FOUND,
    "auth/wrong-password": AuthErrorKind.WRONG_PASSWORD,
    "auth/too-many-requests": AuthErrorKind.RATE_LIMITED,
    "auth/admin-restricted-operation": AuthErrorKind.ANONYMOUS_DISABLED,
    "auth/network-request-failed": AuthErrorKind.NETWORK_FAILURE,
}

MESSAGES = {
    AuthErrorKind.EMAIL_IN_USE: "Email already in use",
    AuthErrorKind.INVALID_EMAIL: "Invalid email format",
    AuthErrorKind.WEAK_PASSWORD: "Password too weak (min 6 characters)",
    AuthErrorKind.USER_NOT_FOUND: "User not found",
    AuthErrorKind.WRONG_PASSWORD: "Wrong password",
    AuthErrorKind.RATE_LIMITED: "Too many attempts. Try again later",
    AuthErrorKind.ANONYMOUS_DISABLED: "Anonymous login is disabled",
    AuthErrorKind.NETWORK_FAILURE: "Network error. Check your connection",
}


@dataclass(frozen=True)
class AuthFailure:
    kind: AuthErrorKind
    message: str


@dataclass(frozen=True)
class AuthResult:
    success: bool
    session: Optional[Session] = None
    error: Optional[str] = None
    kind: Optional[AuthErrorKind] = None

    @classmethod
    def ok(cls, session: Optional[Session] = None) -> "AuthResult":
        return cls(success=True, session=session)

    @classmethod
    def failed(cls, failure: AuthFailure) -> "AuthResult":
        return cls(success=False, error=failure.message, kind=failure.kind)


def classify(code: Optional[str]) -> AuthErrorKind:
    return KIND_BY_CODE.get(code or "", AuthErrorKind.UNKNOWN)


def describe_error(exc: BaseException) -> AuthFailure:
    """Map any provider exception onto the stable taxonomy."""
    kind = classify(getattr(exc, "code", None))
    if kind is AuthErrorKind.UNKNOWN:
        message = str(getattr(exc, "message", None) or exc or "Unknown error")
        return AuthFailure(kind, message.replace("Firebase: ", "").strip() or "Unknown error")
    return AuthFailure(kind, MESSAGES[kind])
