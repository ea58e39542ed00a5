from dataclasses import dataclass
from typing import Any, Dict, Optional


ANONYMOUS_DISPLAY_NAME = "Guest User"
DEFAULT_DISPLAY_NAME = "User"


def derive_display_name(display_name: Optional[str], email: Optional[str]) -> str:
    """Provider display name, then the local part of the email, then "User"."""
    if display_name and display_name.strip():
        return display_name.strip()
    if email:
        local_part = email.split("@")[0].strip()
        if local_part:
            return local_part
    return DEFAULT_DISPLAY_NAME


@dataclass(frozen=True)
class Session:
    uid: str
    email: Optional[str] = None
    display_name: str = DEFAULT_DISPLAY_NAME
    is_anonymous: bool = False

    @classmethod
    def from_user(cls, user: Any) -> "Session":
        email = getattr(user, "email", None) or None
        return cls(
            uid=str(user.uid),
            email=email,
            display_name=derive_display_name(getattr(user, "display_name", None), email),
            is_anonymous=bool(getattr(user, "is_anonymous", False)),
        )

    @classmethod
    def guest(cls, uid: str) -> "Session":
        return cls(uid=uid, email=None, display_name=ANONYMOUS_DISPLAY_NAME, is_anonymous=True)

    def to_mirror(self) -> Dict[str, Any]:
        return {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "isAnonymous": self.is_anonymous,
        }

    @classmethod
    def from_mirror(cls, data: Any) -> Optional["Session"]:
        if not isinstance(data, dict) or not data.get("uid"):
            return None
        return cls(
            uid=str(data["uid"]),
            email=data.get("email") or None,
            display_name=str(data.get("displayName") or DEFAULT_DISPLAY_NAME),
            is_anonymous=bool(data.get("isAnonymous", False)),
        )
