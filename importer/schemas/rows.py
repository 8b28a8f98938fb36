"""Typed, normalized row records per import kind."""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class DealerRecord(BaseModel):
    """A dealer row that passed structural validation."""

    dealer_code: str
    dealer_name: str
    gst_number: str = Field(..., min_length=15, max_length=15)
    pan_number: str = Field(..., min_length=10, max_length=10)
    state: str
    email: str
    mobile: str = Field(..., min_length=10, max_length=10)
    address: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    branch: Optional[str] = None

    def natural_keys(self) -> dict[str, str]:
        return {
            "dealer_code": self.dealer_code,
            "gst_number": self.gst_number,
            "pan_number": self.pan_number,
        }


class PayoutRecord(BaseModel):
    """A payout row that passed structural validation."""

    dealer_code: str
    payout_type: str
    base_amount: Decimal = Field(..., ge=0)
    incentive_amount: Decimal = Field(..., ge=0)
    deduction_amount: Decimal = Field(Decimal("0"), ge=0)
    recovery_amount: Decimal = Field(Decimal("0"), ge=0)
