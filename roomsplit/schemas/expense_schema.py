from pydantic import BaseModel, Field, ConfigDict, AliasChoices, field_validator, model_validator
from typing import Any, Dict, List, Optional
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from roomsplit.utils.identifiers import extract_id


class ExpenseCategory(str, Enum):
    groceries = "groceries"
    utilities = "utilities"
    food_delivery = "food delivery"
    cleaning_supplies = "cleaning supplies"
    internet = "internet"
    maintenance = "maintenance"
    other = "other"

    @classmethod
    def _missing_(cls, value):
        # Accept display labels ("Food Delivery") and snake_case names
        if isinstance(value, str):
            normalized = value.strip().lower().replace("_", " ")
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.other


def coerce_category(value: Any) -> ExpenseCategory:
    if value is None or value == "":
        return ExpenseCategory.other
    return ExpenseCategory(value)


class ShareStatus(str, Enum):
    pending = "pending"
    settled = "settled"


class Person(BaseModel):
    """A roommate / tenant as returned by the backend"""
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    upi_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_reference(cls, data: Any) -> Any:
        # People arrive as a bare id, an embedded user document, or a tenant
        # record whose userId may itself be an embedded document.
        if data is None or isinstance(data, Person):
            return data
        if not isinstance(data, dict):
            return {"user_id": extract_id(data)}

        nested = data.get("userId") if isinstance(data.get("userId"), dict) else {}
        if "user_id" in data:
            user_id = extract_id(data["user_id"])
        elif "userId" in data:
            user_id = extract_id(data["userId"])
        else:
            user_id = extract_id(data)

        def pick(*keys):
            for source in (data, nested):
                for key in keys:
                    if source.get(key):
                        return source[key]
            return None

        return {
            "user_id": user_id,
            "name": pick("name", "userName"),
            "email": pick("email"),
            "phone": pick("phone"),
            "profile_picture": pick("profile_picture", "profilePicture"),
            "upi_id": pick("upi_id", "upiId"),
        }

    @property
    def display_name(self) -> str:
        return self.name or "Roommate"


class Share(BaseModel):
    id: Optional[str] = Field(None, validation_alias=AliasChoices("id", "_id"))
    user: Person
    amount: Decimal = Field(..., ge=0)
    status: ShareStatus = ShareStatus.pending
    settled_at: Optional[datetime] = Field(None, validation_alias=AliasChoices("settled_at", "settledAt"))

    @property
    def user_id(self) -> str:
        return self.user.user_id

    @property
    def is_settled(self) -> bool:
        return self.status == ShareStatus.settled


class Expense(BaseModel):
    """A shared expense with one share per participant, payer included"""
    id: str = Field(..., validation_alias=AliasChoices("id", "_id"))
    description: str
    total_amount: Decimal = Field(..., gt=0, validation_alias=AliasChoices("total_amount", "totalAmount"))
    category: ExpenseCategory = ExpenseCategory.other
    created_at: datetime = Field(..., validation_alias=AliasChoices("created_at", "createdAt"))
    updated_at: Optional[datetime] = Field(None, validation_alias=AliasChoices("updated_at", "updatedAt"))
    paid_by: Person = Field(..., validation_alias=AliasChoices("paid_by", "paidBy"))
    target_upi_id: Optional[str] = Field(None, validation_alias=AliasChoices("target_upi_id", "targetUpiId"))
    splits: List[Share] = []
    date: date

    @field_validator("category", mode="before")
    @classmethod
    def known_category(cls, value: Any) -> Any:
        return coerce_category(value)

    @field_validator("date", mode="before")
    @classmethod
    def calendar_day(cls, value: Any) -> Any:
        # The backend stores the day as a midnight timestamp
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value

    @property
    def payer_id(self) -> str:
        return self.paid_by.user_id

    def share_for(self, user_id: str) -> Optional[Share]:
        uid = extract_id(user_id)
        for share in self.splits:
            if share.user_id == uid:
                return share
        return None

    def debtor_shares(self) -> List[Share]:
        """Shares of everyone but the payer; the payer's own share is never a debt"""
        return [share for share in self.splits if share.user_id != self.payer_id]

    def pending_debtor_shares(self) -> List[Share]:
        return [share for share in self.debtor_shares() if not share.is_settled]


DESCRIPTION_MAX_LENGTH = 200


class ShareCreate(BaseModel):
    user_id: str
    amount: Decimal = Field(..., ge=0)


class ExpenseCreate(BaseModel):
    """Outbound creation payload"""
    description: str = Field(..., min_length=1, max_length=DESCRIPTION_MAX_LENGTH)
    total_amount: Decimal = Field(..., gt=0)
    category: ExpenseCategory
    expense_date: date
    target_upi_id: str = Field(..., min_length=1)
    splits: List[ShareCreate]

    def to_payload(self) -> Dict[str, Any]:
        """Wire format of the backend's create-expense endpoint"""
        return {
            "description": self.description,
            "totalAmount": float(self.total_amount),
            "category": self.category.value,
            "date": self.expense_date.isoformat(),
            "targetUpiId": self.target_upi_id,
            "splits": [{"user": share.user_id, "amount": float(share.amount)} for share in self.splits],
        }


class ExpenseDraft(BaseModel):
    """State of the add-expense form"""
    description: str = ""
    total_amount: Optional[Decimal] = None
    category: ExpenseCategory = ExpenseCategory.groceries
    target_upi_id: str = ""
    split_with: List[str] = []
    expense_date: Optional[date] = Field(None, validation_alias=AliasChoices("expense_date", "date"))

    @field_validator("category", mode="before")
    @classmethod
    def known_category(cls, value: Any) -> Any:
        return coerce_category(value)


class LedgerRole(str, Enum):
    payer = "payer"
    debtor = "debtor"


class LedgerEntry(BaseModel):
    """One expense as seen by one viewer"""
    expense: Expense
    role: LedgerRole
    # Pending amount for the open views, settled amount for history
    amount: Decimal
    outstanding: List[Share] = []
    settled_at: Optional[datetime] = None

    @property
    def expense_id(self) -> str:
        return self.expense.id


class LedgerTotals(BaseModel):
    total_you_owe: Decimal = Decimal("0")
    total_owed_to_you: Decimal = Decimal("0")
    total_sent: Decimal = Decimal("0")
    total_received: Decimal = Decimal("0")


class HistoryWindow(str, Enum):
    all = "all"
    week = "7d"
    month = "30d"
    year = "365d"


class LedgerViews(BaseModel):
    money_i_owe: List[LedgerEntry] = []
    money_owed_to_me: List[LedgerEntry] = []
    history: List[LedgerEntry] = []
    totals: LedgerTotals = Field(default_factory=LedgerTotals)


class RoommateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    profile_picture: Optional[str] = None


class ExpenseCreatedOut(BaseModel):
    expense: Optional[Expense] = None
    next_draft: ExpenseDraft
    message: str = "Expense added successfully"


class UpiLinkOut(BaseModel):
    expense_id: str
    amount: Decimal
    link: str


class SharePreviewOut(BaseModel):
    total_amount: Optional[Decimal] = None
    participants: int
    per_person: Decimal
