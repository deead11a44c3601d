from fastapi import Depends, Header, HTTPException
from roomsplit.clients.backend_client import BackendClient
from roomsplit.db.database import SessionLocal
from roomsplit.services.auth.jwt_handler import get_current_user
from roomsplit.services.preference_service import PreferencesProvider, SqlPreferencesProvider
from roomsplit.services.reminder_service import ReminderDispatcher, get_reminder_dispatcher


def get_access_token(access_token: str = Header(..., description="Access token (without Bearer)")) -> str:
    if access_token.startswith("Bearer "):
        access_token = access_token.replace("Bearer ", "")
    return access_token


def get_current_user_id(access_token: str = Depends(get_access_token)) -> str:
    """Extract current user ID from JWT token"""
    user_id = get_current_user(access_token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


def get_backend_client(access_token: str = Depends(get_access_token)) -> BackendClient:
    """Backend client acting on behalf of the caller"""
    return BackendClient(token=access_token)


def get_preferences() -> PreferencesProvider:
    return SqlPreferencesProvider(SessionLocal)


def get_dispatcher(backend: BackendClient = Depends(get_backend_client)) -> ReminderDispatcher:
    return get_reminder_dispatcher(backend)
