"""Row validation for dealer and payout imports.

Every predicate for a row is evaluated, so a rejected row reports all of its
violations at once rather than the first one found.
"""
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional, Union

from importer.models.import_job import JobKind
from importer.schemas.rows import DealerRecord, PayoutRecord

logger = logging.getLogger(__name__)

GST_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")
PAN_PATTERN = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MOBILE_PATTERN = re.compile(r"^[0-9]{10}$")

DEALER_REQUIRED_COLUMNS = (
    "dealer_code",
    "dealer_name",
    "gst_number",
    "pan_number",
    "state",
    "email",
    "mobile",
)
DEALER_OPTIONAL_COLUMNS = (
    "address",
    "city",
    "pincode",
    "bank_name",
    "account_number",
    "ifsc_code",
    "branch",
)
PAYOUT_OPTIONAL_AMOUNT_COLUMNS = ("deduction_amount", "recovery_amount")

Record = Union[DealerRecord, PayoutRecord]


@dataclass
class ValidationResult:
    """Either a normalized record or the reasons the row was rejected."""

    record: Optional[Record] = None
    reasons: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.record is not None and not self.reasons


def _clean(raw: Mapping[str, Optional[str]], column: str) -> str:
    value = raw.get(column)
    return value.strip() if isinstance(value, str) else ""


def _label(column: str) -> str:
    return column.replace("_", " ").capitalize()


def is_valid_gst(value: str) -> bool:
    return bool(GST_PATTERN.match(value))


def is_valid_pan(value: str) -> bool:
    return bool(PAN_PATTERN.match(value))


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


def is_valid_mobile(value: str) -> bool:
    return bool(MOBILE_PATTERN.match(value))


def parse_amount(value: str) -> Optional[Decimal]:
    """Parse a non-negative, finite decimal amount. Returns None if it is not one."""
    try:
        amount = Decimal(value.replace(",", ""))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def validate_dealer_row(raw: Mapping[str, Optional[str]]) -> ValidationResult:
    """
    Validate a dealer row.

    GST and PAN are upper-cased before matching; all values are stripped.

    Args:
        raw: Column name to raw cell value

    Returns:
        ValidationResult with a DealerRecord or the rejection reasons
    """
    values = {column: _clean(raw, column) for column in DEALER_REQUIRED_COLUMNS}
    values["gst_number"] = values["gst_number"].upper()
    values["pan_number"] = values["pan_number"].upper()

    reasons = []
    if not values["dealer_code"]:
        reasons.append("Dealer code is required")
    if not values["dealer_name"]:
        reasons.append("Dealer name is required")
    if not values["gst_number"]:
        reasons.append("GST number is required")
    elif not is_valid_gst(values["gst_number"]):
        reasons.append(f"Invalid GST format: {values['gst_number']}")
    if not values["pan_number"]:
        reasons.append("PAN number is required")
    elif not is_valid_pan(values["pan_number"]):
        reasons.append(f"Invalid PAN format: {values['pan_number']}")
    if not values["state"]:
        reasons.append("State is required")
    if not values["email"]:
        reasons.append("Email is required")
    elif not is_valid_email(values["email"]):
        reasons.append(f"Invalid email format: {values['email']}")
    if not values["mobile"]:
        reasons.append("Mobile number is required")
    elif not is_valid_mobile(values["mobile"]):
        reasons.append(f"Invalid mobile number: {values['mobile']}")

    if reasons:
        return ValidationResult(reasons=reasons)

    optional = {column: _clean(raw, column) or None for column in DEALER_OPTIONAL_COLUMNS}
    return ValidationResult(record=DealerRecord(**values, **optional))


def validate_payout_row(
    raw: Mapping[str, Optional[str]], strict_optional_amounts: bool = False
) -> ValidationResult:
    """
    Validate a payout row.

    Required amounts must be non-negative decimals. Deduction and recovery
    default to zero when absent. When present but malformed they are zeroed
    with a warning, or rejected if strict_optional_amounts is set.

    Args:
        raw: Column name to raw cell value
        strict_optional_amounts: Reject malformed optional amounts instead of zeroing them

    Returns:
        ValidationResult with a PayoutRecord or the rejection reasons
    """
    reasons = []
    dealer_code = _clean(raw, "dealer_code")
    payout_type = _clean(raw, "payout_type")
    if not dealer_code:
        reasons.append("Dealer code is required")
    if not payout_type:
        reasons.append("Payout type is required")

    amounts = {}
    for column in ("base_amount", "incentive_amount"):
        value = _clean(raw, column)
        if not value:
            reasons.append(f"{_label(column)} is required")
            continue
        amount = parse_amount(value)
        if amount is None:
            reasons.append(f"{_label(column)} must be a non-negative number: {value}")
            continue
        amounts[column] = amount

    for column in PAYOUT_OPTIONAL_AMOUNT_COLUMNS:
        value = _clean(raw, column)
        if not value:
            amounts[column] = Decimal("0")
            continue
        amount = parse_amount(value)
        if amount is not None:
            amounts[column] = amount
        elif strict_optional_amounts:
            reasons.append(f"{_label(column)} must be a non-negative number: {value}")
        else:
            logger.warning(f"⚠️ Unparsable {column} '{value}' defaulted to 0")
            amounts[column] = Decimal("0")

    if reasons:
        return ValidationResult(reasons=reasons)

    return ValidationResult(
        record=PayoutRecord(dealer_code=dealer_code, payout_type=payout_type, **amounts)
    )


def validate_row(
    kind: JobKind,
    raw: Mapping[str, Optional[str]],
    strict_optional_amounts: bool = False,
) -> ValidationResult:
    """Validate a raw row for the given job kind."""
    if kind == JobKind.DEALER_IMPORT:
        return validate_dealer_row(raw)
    if kind == JobKind.PAYOUT_IMPORT:
        return validate_payout_row(raw, strict_optional_amounts=strict_optional_amounts)
    raise ValueError(f"Unsupported job kind: {kind}")
