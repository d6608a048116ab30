from __future__ import annotations

import re
from typing import Optional

OCR_NOISE_PATTERN = re.compile(r"[^A-Z0-9\s\-]")
STANDARD_PLATE_PATTERN = re.compile(r"([A-Z]{2})[\s\-]*(\d{3})[\s\-]*([A-Z]{2})")

MIN_LOOSE_PLATE_LENGTH = 5
MAX_LOOSE_PLATE_LENGTH = 8


def format_plate(letters: str, digits: str, suffix: str) -> str:
    return f"{letters}-{digits}-{suffix}"


def extract_plate_from_ocr(ocr_text: Optional[str]) -> Optional[str]:
    """Pull a plate number out of noisy OCR output.

    Standard plates are ``XX-123-XX``; they are returned in dashed form. Other
    plate-looking tokens (5-8 alphanumerics mixing letters and digits) are
    returned compacted. Returns ``None`` when nothing plausible is found.
    """

    if not ocr_text:
        return None

    cleaned = OCR_NOISE_PATTERN.sub("", str(ocr_text).upper()).strip()
    if not cleaned:
        return None

    match = STANDARD_PLATE_PATTERN.search(cleaned)
    if match:
        return format_plate(match.group(1), match.group(2), match.group(3))

    for token in cleaned.split():
        alphanumeric = re.sub(r"[^A-Z0-9]", "", token)
        if not MIN_LOOSE_PLATE_LENGTH <= len(alphanumeric) <= MAX_LOOSE_PLATE_LENGTH:
            continue
        if re.search(r"[A-Z]", alphanumeric) and re.search(r"\d", alphanumeric):
            return alphanumeric

    return None
