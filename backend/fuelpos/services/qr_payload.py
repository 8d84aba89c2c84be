"""
QR Payload Encoder — EMV-style tag/length/value payloads for Thai QR payments.

A payload is an ordered mapping of two-character tags to values. A value is
either a string (a leaf) or another mapping, which is serialized first and
then wrapped with its own tag and length. Lengths are the UTF-8 byte length
of the value as two decimal digits, so a single value can hold at most 99
bytes.

The trailing ``6304`` checksum is the first four hex characters of an MD5
digest. It is NOT the CRC-16/CCITT that banking QR readers verify, and
payloads produced here are not interoperable with real PromptPay terminals.
"""
import hashlib
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

from fuelpos.utils.validators import normalize_promptpay_id, to_money

FieldValue = Union[str, Mapping[str, "FieldValue"], None]

CHECKSUM_TAG = "63"
CHECKSUM_LENGTH = "04"
MAX_VALUE_BYTES = 99

# Tag constants
PAYLOAD_FORMAT = "00"
POINT_OF_INITIATION = "01"
PROMPTPAY_MERCHANT = "29"
QR30_MERCHANT = "30"
CURRENCY = "53"
AMOUNT = "54"
COUNTRY = "58"
ADDITIONAL_DATA = "62"
REFERENCE_LABEL = "07"

PROMPTPAY_AID = "A000000677010111"
QR30_AID = "A000000677010112"
THB = "764"

NESTED_TAGS = frozenset({PROMPTPAY_MERCHANT, QR30_MERCHANT, ADDITIONAL_DATA})


class EncodingError(ValueError):
    """Raised when a payload field cannot be represented."""


def _check_tag(tag: str) -> None:
    if not isinstance(tag, str) or len(tag) != 2 or not tag.isascii():
        raise EncodingError(f"Tag must be two ASCII characters, got {tag!r}")


def _wrap(tag: str, value: str) -> str:
    size = len(value.encode("utf-8"))
    if size > MAX_VALUE_BYTES:
        raise EncodingError(f"Field {tag} is {size} bytes, limit is {MAX_VALUE_BYTES}")
    return f"{tag}{size:02d}{value}"


def _serialize(fields: Mapping[str, FieldValue]) -> str:
    parts = []
    for tag, value in fields.items():
        _check_tag(tag)
        if value is None:
            continue
        if isinstance(value, Mapping):
            parts.append(_wrap(tag, _serialize(value)))
        elif isinstance(value, str):
            parts.append(_wrap(tag, value))
        else:
            raise EncodingError(f"Field {tag} must be a string or mapping, got {type(value).__name__}")
    return "".join(parts)


def checksum(data: str) -> str:
    """Four upper-case hex characters over ``data`` (placeholder, not CRC-16)."""
    return hashlib.md5(data.encode("utf-8")).hexdigest()[:4].upper()


def encode(fields: Mapping[str, FieldValue]) -> str:
    """Serialize ``fields`` and append the checksum tag.

    ``None`` values are skipped, mirroring optional fields.
    """
    body = _serialize(fields) + CHECKSUM_TAG + CHECKSUM_LENGTH
    return body + checksum(body)


def verify_checksum(payload: str) -> bool:
    if len(payload) < 8 or payload[-8:-4] != CHECKSUM_TAG + CHECKSUM_LENGTH:
        return False
    return checksum(payload[:-4]) == payload[-4:]


def _parse(data: bytes, nested_tags: Iterable[str]) -> dict:
    fields = {}
    pos = 0
    while pos < len(data):
        if pos + 4 > len(data):
            raise EncodingError(f"Truncated field header at byte {pos}")
        tag = data[pos:pos + 2].decode("ascii")
        length_text = data[pos + 2:pos + 4].decode("ascii")
        if not length_text.isdigit():
            raise EncodingError(f"Bad length {length_text!r} for tag {tag}")
        end = pos + 4 + int(length_text)
        if end > len(data):
            raise EncodingError(f"Field {tag} overruns payload")
        raw = data[pos + 4:end]
        if tag in nested_tags:
            fields[tag] = _parse(raw, ())
        else:
            fields[tag] = raw.decode("utf-8")
        pos = end
    return fields


def decode(payload: str, nested_tags: Iterable[str] = NESTED_TAGS) -> dict:
    """Parse a payload back into its tag mapping, without the checksum tag."""
    body = payload[:-8] if verify_checksum(payload) else payload
    return _parse(body.encode("utf-8"), frozenset(nested_tags))


def format_amount(amount) -> str:
    """Render an amount with two decimals; rejects zero, negative and non-finite values."""
    try:
        value = to_money(amount)
    except ValueError as exc:
        raise EncodingError(str(exc))
    if value <= 0:
        raise EncodingError(f"Amount must be positive, got {amount!r}")
    return f"{value:.2f}"


def build_promptpay_payload(promptpay_id: str, amount: Decimal, reference: str) -> str:
    """PromptPay (tag 29) payload for a dynamic, amount-bearing QR."""
    try:
        account = normalize_promptpay_id(promptpay_id)
    except ValueError as exc:
        raise EncodingError(str(exc))
    amount_text = format_amount(amount)
    return encode({
        PAYLOAD_FORMAT: "01",
        POINT_OF_INITIATION: "12",
        PROMPTPAY_MERCHANT: {
            "00": PROMPTPAY_AID,
            "01": account,
            "02": amount_text,
        },
        CURRENCY: THB,
        AMOUNT: amount_text,
        COUNTRY: "TH",
        ADDITIONAL_DATA: {REFERENCE_LABEL: reference},
    })


def build_qr30_payload(
    merchant_id: str,
    terminal_id: str,
    amount: Decimal,
    reference: str,
    ref1: Optional[str] = None,
    ref2: Optional[str] = None,
) -> str:
    """Thai QR30 (tag 30) bill-payment payload."""
    if not merchant_id:
        raise EncodingError("QR30 merchant id is required")
    return encode({
        PAYLOAD_FORMAT: "01",
        POINT_OF_INITIATION: "11",
        QR30_MERCHANT: {
            "00": QR30_AID,
            "01": merchant_id,
            "02": terminal_id or None,
            "03": ref1 or None,
            "04": ref2 or None,
        },
        CURRENCY: THB,
        AMOUNT: format_amount(amount),
        COUNTRY: "TH",
        ADDITIONAL_DATA: {REFERENCE_LABEL: reference},
    })
