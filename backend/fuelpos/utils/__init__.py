from fuelpos.utils.hashing import digest_entry, chain_hash, hash_pin
from fuelpos.utils.validators import validate_pin, normalize_promptpay_id, to_money

__all__ = [
    "digest_entry", "chain_hash", "hash_pin",
    "validate_pin", "normalize_promptpay_id", "to_money",
]
