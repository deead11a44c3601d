from pydantic import BaseModel, Field
from typing import Optional


class UpiPreferenceIn(BaseModel):
    upi_id: str = Field(..., min_length=1, max_length=100)


class UpiPreferenceOut(BaseModel):
    profile_key: str
    upi_id: Optional[str] = None
