from typing import Any, Dict, Iterable, List


def extract_id(value: Any) -> str:
    """
    Normalize a participant reference to a plain identifier string.

    The backend sends people either as a bare id or as an embedded document
    (``{"_id": ...}``, ``{"id": ...}`` or a tenant record with ``userId``).
    Every comparison in the ledger goes through this function.

    Example:
        >>> extract_id("u1")
        'u1'
        >>> extract_id({"_id": "u1", "name": "Asha"})
        'u1'
        >>> extract_id({"userId": {"_id": "u1"}})
        'u1'
        >>> extract_id(None)
        ''
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ("_id", "id", "user_id", "userId"):
            if value.get(key):
                return extract_id(value[key])
        return ""
    return str(value)


def unique_ids(values: Iterable[Any]) -> List[str]:
    """Extract ids, dropping blanks and duplicates while keeping first-seen order"""
    seen = set()
    result = []
    for value in values:
        uid = extract_id(value)
        if uid and uid not in seen:
            seen.add(uid)
            result.append(uid)
    return result


def dedupe_roommates(tenants: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    De-duplicate tenant records by user id.

    A person can hold more than one tenancy record for the same room; only the
    first record seen for each user is kept. Records without a user id are dropped.
    """
    seen = set()
    unique = []
    for tenant in tenants:
        uid = extract_id(tenant.get("userId") if isinstance(tenant, dict) else tenant)
        if uid and uid not in seen:
            seen.add(uid)
            unique.append(tenant)
    return unique


def peers_of(people: Iterable[Any], viewer_id: str) -> List[Any]:
    """Everyone except the viewer, for the participant picker"""
    viewer = extract_id(viewer_id)
    return [person for person in people if _person_id(person) != viewer]


def _person_id(person: Any) -> str:
    user_id = getattr(person, "user_id", None)
    if user_id is not None:
        return extract_id(user_id)
    if isinstance(person, dict) and "userId" in person:
        return extract_id(person["userId"])
    return extract_id(person)
