import re
from typing import Optional

from app.core.errors import ValidationError


ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
ZERO_ADDRESS = "0x" + "0" * 40


def normalize_address(address: Optional[str], field: str = "address") -> str:
    """
    Case-folds a wallet address for storage and comparison.

    Every service calls this exactly once, at its boundary, so stored and
    compared addresses are always lower-case hex.
    """
    if not address or not isinstance(address, str):
        raise ValidationError(f"{field} is required.")

    candidate = address.strip()
    if not ADDRESS_PATTERN.match(candidate):
        raise ValidationError(f"{field} is not a valid wallet address.")

    return candidate.lower()


def is_zero_address(address: str) -> bool:
    return address.lower() == ZERO_ADDRESS
