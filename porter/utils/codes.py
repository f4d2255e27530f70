"""Human-facing code generation and token normalisation helpers."""

import re
import secrets
import string
import time

ORDER_CODE_PREFIX = "ORD"
DRIVER_CODE_PREFIX = "DRV"
VEHICLE_CODE_PREFIX = "VEH"

_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase
_NON_DIGITS = re.compile(r"\D+")
_WHITESPACE = re.compile(r"\s+")


def generate_code(prefix: str) -> str:
    """Build a display code such as ``ORD-1718000000000-K3ZQ``."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(4))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def digits_only(value: str) -> str:
    return _NON_DIGITS.sub("", value or "")


def normalize_registration(value: str) -> str:
    """Registration plates compare without whitespace, upper-cased."""
    return _WHITESPACE.sub("", value or "").upper()


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()
