from fastapi import APIRouter, Depends
from roomsplit.api.deps import get_current_user_id, get_preferences
from roomsplit.schemas.preference_schema import UpiPreferenceIn, UpiPreferenceOut
from roomsplit.services.preference_service import PreferencesProvider

router = APIRouter(prefix="/ledger/preferences", tags=["preferences"])


@router.get("/upi", response_model=UpiPreferenceOut)
def get_default_upi(
    user_id: str = Depends(get_current_user_id),
    preferences: PreferencesProvider = Depends(get_preferences),
):
    """UPI id pre-filled into the next expense form"""
    return UpiPreferenceOut(profile_key=user_id, upi_id=preferences.get_default_upi_id(user_id))


@router.put("/upi", response_model=UpiPreferenceOut)
def set_default_upi(
    preference: UpiPreferenceIn,
    user_id: str = Depends(get_current_user_id),
    preferences: PreferencesProvider = Depends(get_preferences),
):
    """Change the default; expenses that already exist keep their own UPI id"""
    preferences.remember_upi_id(user_id, preference.upi_id.strip())
    return UpiPreferenceOut(profile_key=user_id, upi_id=preference.upi_id.strip())
