import jwt
from typing import Optional
from roomsplit.core.config import settings


def decode_access_token(token: str):
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def get_current_user(token: str) -> Optional[str]:
    """Extract the viewer's user id from the JWT; accepts user_id, userId or id claims"""
    payload = decode_access_token(token)
    if not payload:
        return None
    return payload.get("user_id") or payload.get("userId") or payload.get("id")

