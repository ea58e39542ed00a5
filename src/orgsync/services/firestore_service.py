from datetime import datetime, timezone
from typing import Any, Dict, Optional

try:
    from google.cloud import firestore
except ModuleNotFoundError as exc:
    raise ModuleNotFoundError(
        "Missing dependency 'google-cloud-firestore'. Install the project with pip install -e ."
    ) from exc

from orgsync.config.settings import Settings, settings


class FirestoreServiceError(Exception):
    pass


class FirestoreService:
    def __init__(self, project_id: str, users_collection: str = "users", client: Any = None) -> None:
        if client is None:
            if not project_id:
                raise FirestoreServiceError("Missing FIREBASE_PROJECT_ID in environment")
            client = firestore.AsyncClient(project=project_id)
        self.db = client
        self.users_collection = users_collection

    @classmethod
    def from_settings(cls, cfg: Optional[Settings] = None, client: Any = None) -> "FirestoreService":
        cfg = cfg or settings
        return cls(cfg.firebase_project_id, cfg.firestore_users_collection, client=client)

    async def get_record(self, collection: str, record_id: str) -> Optional[Dict]:
        snap = await self.db.collection(collection).document(record_id).get()
        if not snap.exists:
            return None
        return snap.to_dict() or {}

    async def set_record(self, collection: str, record_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        await self.db.collection(collection).document(record_id).set(data, merge=merge)

    async def update_record(self, collection: str, record_id: str, data: Dict[str, Any]) -> None:
        await self.db.collection(collection).document(record_id).update(data)

    async def ensure_user_profile(self, uid: str, email: Optional[str], display_name: str) -> bool:
        """Create the user's backing record, or touch lastLogin. True when it was created."""
        existing = await self.get_record(self.users_collection, uid)
        if existing is None:
            await self.set_record(
                self.users_collection,
                uid,
                {
                    "email": email,
                    "displayName": display_name,
                    "createdAt": firestore.SERVER_TIMESTAMP,
                    "lastLogin": firestore.SERVER_TIMESTAMP,
                    "organizations": [],
                },
            )
            return True

        await self.update_record(self.users_collection, uid, {"lastLogin": firestore.SERVER_TIMESTAMP})
        return False

    async def check_connection(self) -> None:
        await self.set_record(
            "test",
            "connection",
            {
                "test": True,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "message": "Firestore connected",
            },
            merge=True,
        )
