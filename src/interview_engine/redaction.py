"""PHI redaction for evidence snippets.

Document text routinely carries identifiers next to the conditions we care
about.  Snippets shown back to the applicant (and stored as ``snippet`` on
a candidate's evidence) pass through :func:`redact_phi`; the untouched text
is kept separately as ``raw_snippet`` for audit.

Patterns are UK-centric: NHS numbers, dates, postcodes and street
addresses.  E-mail masking is opt-in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

NHS_NUMBER_MASK = "••• ••• ••••"
DATE_MASK = "••/••/••••"
POSTCODE_MASK = "•••••••"
ADDRESS_MASK = "•••• •••• ••••"
EMAIL_MASK = "•••••@•••••.com"

NHS_NUMBER_PATTERN = re.compile(r"\b\d{3}\s?\d{3}\s?\d{4}\b")
DATE_PATTERN = re.compile(r"\b\d{1,2}[/.-]\d{1,2}[/.-]\d{4}\b")
POSTCODE_PATTERN = re.compile(r"\b[A-Z]{1,2}\d{1,2}[A-Z]?\s?\d[A-Z]{2}\b", re.IGNORECASE)
ADDRESS_PATTERN = re.compile(
    r"\b\d+[A-Za-z]?\s+[A-Za-z]+(?:\s+[A-Za-z]+)*\s+"
    r"(?:Street|Road|Avenue|Lane|Drive|Close|Way|Gardens|Crescent|Place|Square|Terrace)\b",
    re.IGNORECASE,
)
EMAIL_PATTERN = re.compile(r"\b[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}\b")


@dataclass(frozen=True)
class RedactionOptions:
    nhs_numbers: bool = True
    dates: bool = True
    postcodes: bool = True
    addresses: bool = True
    emails: bool = False


DEFAULT_OPTIONS = RedactionOptions()


def redact_phi(text: str, options: RedactionOptions = DEFAULT_OPTIONS) -> str:
    """Return ``text`` with identifiers replaced by fixed-width masks.

    NHS numbers are masked before dates so a ten-digit run is never half
    consumed by the date pattern.
    """
    if not text:
        return text

    redacted = text
    if options.nhs_numbers:
        redacted = NHS_NUMBER_PATTERN.sub(NHS_NUMBER_MASK, redacted)
    if options.dates:
        redacted = DATE_PATTERN.sub(DATE_MASK, redacted)
    if options.postcodes:
        redacted = POSTCODE_PATTERN.sub(POSTCODE_MASK, redacted)
    if options.addresses:
        redacted = ADDRESS_PATTERN.sub(ADDRESS_MASK, redacted)
    if options.emails:
        redacted = EMAIL_PATTERN.sub(EMAIL_MASK, redacted)
    return redacted


def contains_phi(text: str) -> bool:
    """True if ``text`` matches any of the always-on identifier patterns."""
    if not text:
        return False
    return any(
        pattern.search(text)
        for pattern in (NHS_NUMBER_PATTERN, DATE_PATTERN, POSTCODE_PATTERN, ADDRESS_PATTERN)
    )
