"""Profile Repository - User profiles"""
from typing import Dict, Iterable, Optional

from .base import BaseRepository
from .mongo_client import PROFILES, store_operation, strip_id
from ..domain.models import Profile


class ProfileRepository(BaseRepository):
    """Read-only access to profiles"""

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with store_operation("cargar perfil"):
            doc = self._collection(PROFILES).find_one({"id": user_id})
        return Profile.model_validate(strip_id(doc)) if doc else None

    def get_profiles(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        with store_operation("cargar perfiles"):
            cursor = self._collection(PROFILES).find({"id": {"$in": ids}})
            return {doc["id"]: Profile.model_validate(strip_id(doc)) for doc in cursor}
