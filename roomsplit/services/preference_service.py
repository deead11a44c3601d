import logging
import threading
from typing import Callable, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from roomsplit.models.preferences import UserPreference

logger = logging.getLogger(__name__)


class PreferencesProvider(Protocol):
    """Cached form defaults, keyed per profile"""

    def get_default_upi_id(self, profile_key: str) -> Optional[str]:
        ...

    def remember_upi_id(self, profile_key: str, upi_id: str) -> None:
        ...


class SqlPreferencesProvider:
    """Preferences persisted in the local user_preferences table"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get_default_upi_id(self, profile_key: str) -> Optional[str]:
        db = self.session_factory()
        try:
            preference = db.query(UserPreference).filter(UserPreference.profile_key == profile_key).first()
            return preference.upi_id if preference else None
        finally:
            db.close()

    def remember_upi_id(self, profile_key: str, upi_id: str) -> None:
        db = self.session_factory()
        try:
            preference = db.query(UserPreference).filter(UserPreference.profile_key == profile_key).first()
            if preference is None:
                preference = UserPreference(profile_key=profile_key, upi_id=upi_id)
                db.add(preference)
            else:
                preference.upi_id = upi_id
            db.commit()
            logger.info(f"Saved default UPI id for profile {profile_key}")
        finally:
            db.close()


class InMemoryPreferencesProvider:
    """Process-local preferences, for tests and throwaway sessions"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_default_upi_id(self, profile_key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(profile_key)

    def remember_upi_id(self, profile_key: str, upi_id: str) -> None:
        with self._lock:
            self._values[profile_key] = upi_id
