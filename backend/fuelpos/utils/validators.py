"""
Validators — Input rules for PINs, PromptPay identifiers and money values.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENTS = Decimal("0.01")


def validate_pin(pin: str | None) -> bool:
    """Employee PINs are 4 to 8 digits."""
    if not pin:
        return False
    return bool(re.match(r"^\d{4,8}$", pin.strip()))


def normalize_promptpay_id(promptpay_id: str) -> str:
    """Normalize a PromptPay proxy id.

    Mobile numbers (10 digits, leading 0) become the 13-digit ``0066`` form;
    13-digit tax / national ids are returned unchanged.
    """
    digits = re.sub(r"[\s-]", "", promptpay_id or "")
    if re.match(r"^0\d{9}$", digits):
        return "0066" + digits[1:]
    if re.match(r"^\d{13}$", digits):
        return digits
    raise ValueError(f"Invalid PromptPay id: {promptpay_id!r}")


def to_money(value) -> Decimal:
    """Coerce a number to a 2-decimal Decimal (half-up). Raises ValueError when not finite."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"Not a number: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
