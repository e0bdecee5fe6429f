"""
Treatment fee calculation: VAT split and doctor/assistant fee amounts.
"""

import json
import math
from typing import Optional

from clinicapi.config import VAT_RATE_PERCENT
from clinicapi.errors import ValidationError
from clinicapi.models import FeeCalculation, FeeSpec, FeeType


def round2(value) -> float:
    """Round to two decimals, halves up, on the binary value (so 1.005 -> 1.0)."""
    return math.floor(value * 100 + 0.5) / 100


def fee_amount(fee: Optional[FeeSpec], price_excluding_vat: float) -> float:
    """Monetary amount of one fee; an absent fee costs nothing."""
    if fee is None:
        return 0
    if fee.type == FeeType.PERCENTAGE:
        return round2(price_excluding_vat * fee.amount / 100)
    return fee.amount


def compute_fees(
    price: float,
    include_vat: bool,
    doctor_fee: Optional[FeeSpec] = None,
    assistant_fee: Optional[FeeSpec] = None,
) -> FeeCalculation:
    """
    Derive VAT and fee figures from a treatment's price.

    When *include_vat* is true the price is taken to already contain VAT at
    VAT_RATE_PERCENT. Inputs are trusted; see validate_fee().
    """
    gross = 100 + VAT_RATE_PERCENT
    if include_vat:
        price_excluding_vat = round2(price * 100 / gross)
        vat_amount = round2(price * VAT_RATE_PERCENT / gross)
    else:
        price_excluding_vat = price
        vat_amount = 0

    return FeeCalculation(
        vat_amount=vat_amount,
        price_excluding_vat=price_excluding_vat,
        doctor_fee_amount=fee_amount(doctor_fee, price_excluding_vat),
        assistant_fee_amount=fee_amount(assistant_fee, price_excluding_vat),
        # Base price only; fees are reported separately.
        total_price=round2(price),
    )


# ── Validation / parsing ─────────────────────────────────────────────

def validate_fee(fee: Optional[FeeSpec], field_name: str) -> None:
    """Raise ValidationError unless *fee* is absent or well-formed."""
    if fee is None:
        return
    if not isinstance(fee.type, FeeType):
        raise ValidationError(f"{field_name}: invalid fee type")
    if not math.isfinite(fee.amount):
        raise ValidationError(f"{field_name}: amount must be a finite number")
    if fee.amount < 0:
        raise ValidationError(f"{field_name}: amount must not be negative")
    if fee.type == FeeType.PERCENTAGE and fee.amount > 100:
        raise ValidationError(f"{field_name}: percentage must not exceed 100")


def parse_fee(data, field_name: str) -> Optional[FeeSpec]:
    """Build a validated FeeSpec from a mapping or its JSON string form."""
    if data is None or isinstance(data, FeeSpec):
        validate_fee(data, field_name)
        return data

    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError:
            raise ValidationError(f"Invalid {field_name} format, must be a valid JSON object")

    if not isinstance(data, dict):
        raise ValidationError(f"{field_name} must be an object")
    if "amount" not in data or "type" not in data:
        raise ValidationError(f"{field_name}: amount and type are required")

    try:
        amount = float(data["amount"])
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name}: amount must be a number")
    try:
        fee_type = FeeType(data["type"])
    except ValueError:
        raise ValidationError(f"{field_name}: invalid fee type")

    fee = FeeSpec(amount=amount, type=fee_type)
    validate_fee(fee, field_name)
    return fee
