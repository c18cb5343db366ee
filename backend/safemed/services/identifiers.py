"""Patient identifier normalization.

Patients type their identifier in many shapes ("p9", "P009", " p0009 ").
All of them resolve to the canonical key stored in the identity store
("P0009"): an uppercase letter prefix followed by a zero-padded number.
"""

import re

from safemed.services.exceptions import AccessValidationError

DEFAULT_WIDTH = 4

_PREFIXED_NUMBER = re.compile(r"^([A-Z]*)(\d+)$")
_ALPHANUMERIC = re.compile(r"^[A-Z0-9]+$")


def normalize_patient_id(raw: str, width: int = DEFAULT_WIDTH) -> str:
    """Return the canonical form of a user-entered patient identifier.

    Input without a trailing number is only trimmed and uppercased.
    Numbers already wider than ``width`` are kept as they are.
    """
    value = raw.strip().upper()
    match = _PREFIXED_NUMBER.match(value)
    if not match:
        return value
    prefix, digits = match.groups()
    return prefix + digits.zfill(width)


def parse_patient_id(raw: str | None, width: int = DEFAULT_WIDTH) -> str:
    """Normalize free-text input, rejecting blank or malformed identifiers."""
    if raw is None or not raw.strip():
        raise AccessValidationError("Patient ID is required")
    value = normalize_patient_id(raw, width)
    if not _ALPHANUMERIC.match(value):
        raise AccessValidationError(
            "Patient ID may only contain letters and digits"
        )
    return value
