"""
QR Codec
Decodes booklet QR text into an identity and builds payloads for provisioning

Wire format:
    T4|BM|<year:4>|<classCode>|<studentNumber:3>|<materialCode>[|<crc:2hex>]
"""

import logging
import re
from typing import Optional
from pydantic import BaseModel

from scanboard.config import QR_PREFIX, QR_MIN_FIELDS
from scanboard.submissions.errors import MalformedPayload

logger = logging.getLogger(__name__)

MATERIAL_CODE_PATTERN = re.compile(r"[A-Z0-9]+")
DIGITS_PATTERN = re.compile(r"[0-9]+")
TRAILING_LINE_BREAKS = re.compile(r"[\r\n]+$")

MISSING_CHECKSUM_WARNING = "missing checksum, continuing"


class IdentityTuple(BaseModel):
    """
    Decoded booklet identity. Ephemeral, rebuilt on every scan.
    warning is advisory only and never blocks processing.
    """
    version: str
    record_type: str
    year: int
    class_code: str
    student_number: int
    material_code: str
    checksum: Optional[str] = None
    normalized_payload: str
    warning: Optional[str] = None


def crc8(text: str) -> int:
    """CRC-8, polynomial 0x07, init 0x00, MSB-first, bit by bit"""
    crc = 0x00
    for ch in text:
        crc ^= ord(ch)
        for _ in range(8):
            msb = crc & 0x80
            crc = (crc << 1) & 0xFF
            if msb:
                crc ^= 0x07
    return crc


def format_checksum(text: str) -> str:
    return f"{crc8(text):02X}"


def sanitize(raw: str) -> str:
    """Drop the scanner's trailing line terminators, then surrounding whitespace"""
    return TRAILING_LINE_BREAKS.sub("", raw).strip()


def decode(raw: str) -> IdentityTuple:
    """
    Parse scanned QR text

    Raises:
        MalformedPayload: wrong prefix, too few fields, bad year,
            bad student number or bad material code
    """
    sanitized = sanitize(raw)

    if not sanitized.startswith(QR_PREFIX):
        raise MalformedPayload(f"Invalid QR. Scan a code starting with {QR_PREFIX}")

    fields = sanitized.split("|")
    if len(fields) < QR_MIN_FIELDS:
        raise MalformedPayload(
            f"QR has {len(fields)} fields, at least {QR_MIN_FIELDS} are required."
        )

    version, record_type, year_text, class_code, number_text, material_code = fields[:6]
    checksum = fields[6] if len(fields) > 6 and fields[6] else None

    if not DIGITS_PATTERN.fullmatch(year_text) or not 2000 <= int(year_text) <= 2100:
        raise MalformedPayload(f"Invalid school year: {year_text!r}")

    if not DIGITS_PATTERN.fullmatch(number_text) or int(number_text) <= 0:
        raise MalformedPayload(f"Invalid student number: {number_text!r}")

    if not MATERIAL_CODE_PATTERN.fullmatch(material_code):
        raise MalformedPayload(f"Invalid material code: {material_code!r}")

    if checksum:
        computed = format_checksum("|".join(fields[:6]))
        if checksum.upper() != computed:
            warning = f"checksum mismatch (read: {checksum} / computed: {computed})"
        else:
            warning = None
    else:
        warning = MISSING_CHECKSUM_WARNING

    if warning:
        logger.warning("QR %s: %s", sanitized, warning)

    return IdentityTuple(
        version=version,
        record_type=record_type,
        year=int(year_text),
        class_code=class_code,
        student_number=int(number_text),
        material_code=material_code,
        checksum=checksum,
        normalized_payload=sanitized,
        warning=warning
    )


def encode(
    year: int,
    class_code: str,
    student_number: int,
    material_code: str,
    with_checksum: bool = True
) -> str:
    """Build the wire payload printed on a booklet"""
    base = f"{QR_PREFIX}{year:04d}|{class_code}|{student_number:03d}|{material_code}"
    if not with_checksum:
        return base
    return f"{base}|{format_checksum(base)}"
