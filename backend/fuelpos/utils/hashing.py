"""
Hashing Utilities — PIN digests and the audit-entry hash chain.
"""
import hashlib
import json

PIN_SALT = "fuelpos-pin:"


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def digest_entry(entry: dict) -> str:
    """SHA-256 of an audit entry body. Keys are sorted; Decimals and datetimes hash as strings."""
    return _sha256(json.dumps(entry, sort_keys=True, default=str, separators=(",", ":")))


def chain_hash(entry: dict, previous_hash: str = "") -> str:
    """Link ``entry`` to its predecessor: SHA-256(previous_hash + digest_entry(entry)).

    The first entry in the trail uses an empty ``previous_hash``.
    """
    return _sha256(previous_hash + digest_entry(entry))


def hash_pin(pin: str) -> str:
    """Digest used to store and look up employee PINs. Surrounding whitespace is ignored."""
    return _sha256(PIN_SALT + pin.strip())
