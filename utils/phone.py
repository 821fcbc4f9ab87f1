"""
E.164 normalization for dialed and owned numbers.

Recognized shapes, for a national number length N and default country code C:
  - "+<digits>"        → "+" + digits (separators stripped)
  - N digits           → "+" + C + digits
  - len(C)+N digits starting with C → "+" + digits
Anything else falls back to prefixing C, unless PhoneConfig.strict is set,
in which case it is rejected.
"""
from __future__ import annotations

import re
from typing import Any, Optional

from config.settings import PhoneConfig, get_settings
from models.errors import InvalidNumberError

_NON_DIGITS = re.compile(r"\D")


def digits_only(raw: Any) -> str:
    return _NON_DIGITS.sub("", str(raw or ""))


def normalize_e164(raw: Any, config: Optional[PhoneConfig] = None) -> str:
    """Normalize a user- or backend-supplied number to E.164.

    Raises:
        InvalidNumberError: empty input, no digits, or (strict mode) an
            unrecognized shape.
    """
    config = config or get_settings().phone
    text = str(raw).strip() if raw is not None else ""
    if not text:
        raise InvalidNumberError(raw, "empty")

    digits = digits_only(text)
    if not digits:
        raise InvalidNumberError(raw, "no digits")

    if text.startswith("+"):
        return f"+{digits}"

    cc = config.default_country_code
    national = config.national_number_length
    if len(digits) == national:
        return f"+{cc}{digits}"
    if len(digits) == national + len(cc) and digits.startswith(cc):
        return f"+{digits}"

    if config.strict:
        raise InvalidNumberError(raw, f"expected {national} digits or +<country><number>")
    return f"+{cc}{digits}"


def is_valid_e164(value: str) -> bool:
    return bool(re.fullmatch(r"\+[1-9]\d{6,14}", value or ""))


def same_number(a: Any, b: Any, config: Optional[PhoneConfig] = None) -> bool:
    """True when both inputs normalize to the same E.164 string."""
    try:
        return normalize_e164(a, config) == normalize_e164(b, config)
    except InvalidNumberError:
        return False
