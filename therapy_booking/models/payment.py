"""
Payment-related data models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


class PaymentStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class PaymentInstrument(BaseModel):
    """
    Card details entered by the client.

    Only grouping characters are normalized here; length checks belong to
    the payment simulator so they can be reported as a rejected payment.
    """

    payment_method: Literal["credit", "debit"] = Field(
        default="credit", description="Card type"
    )
    card_number: str = Field(description="Card number, digits only once normalized")
    cvv: str = Field(description="Card verification value")
    expiry_date: Optional[str] = Field(default=None, description="Expiry as MM/YY")

    @field_validator("card_number", mode="before")
    @classmethod
    def strip_grouping(cls, v: Optional[str]) -> Optional[str]:
        """Remove spaces and dashes used to group digits."""
        if v is None:
            return None
        return str(v).replace(" ", "").replace("-", "")

    @field_validator("cvv", mode="before")
    @classmethod
    def strip_cvv(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return str(v).strip()

    @property
    def last4(self) -> str:
        return self.card_number[-4:]


class PaymentRecord(BaseModel):
    """
    Transaction record produced by a settled payment.
    """

    transaction_id: str = Field(description="Opaque unique transaction identifier")
    amount: int = Field(description="Amount charged, in whole currency units")
    currency: str = Field(description="ISO currency code")
    status: PaymentStatus = Field(description="Settlement outcome")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Settlement time (UTC)",
    )
    payment_method: str = Field(description="credit or debit")
    last4: str = Field(description="Last four digits of the card")

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatus.SUCCESS

    @property
    def formatted_amount(self) -> str:
        """Amount as displayed on receipts, e.g. "$150.00"."""
        symbol = "$" if self.currency == "USD" else f"{self.currency} "
        return f"{symbol}{self.amount}.00"

    @property
    def card_description(self) -> str:
        return f"{self.payment_method.upper()} ending in {self.last4}"

    model_config = {"frozen": True}
