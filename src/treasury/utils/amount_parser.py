"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re

_CENTS = Decimal("0.01")


def parse_amount(amount_str: str) -> Decimal:
    """Parse a positive money amount into a Decimal rounded to cents.

    Handles various formats:
    - "1500"
    - "$1,500.00"
    - "1.500,00" (comma as decimal separator)
    - "R$ 99,90"

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount greater than zero

    Raises:
        ValueError: If the string is not a positive amount
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    cleaned = re.sub(r"[^\d.,\-]", "", amount_str.strip())

    # A trailing comma with one or two digits after it is a decimal comma
    if re.search(r",\d{1,2}$", cleaned):
        cleaned = cleaned.replace(".", "").replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    try:
        amount = Decimal(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}'") from e

    if amount <= 0:
        raise ValueError(f"Amount must be greater than zero, got '{amount_str}'")
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)
