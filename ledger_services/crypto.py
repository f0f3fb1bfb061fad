"""
AES-256-GCM helpers shared by the API and the device simulator.

Wire format: ``ciphertext`` is the encrypted JSON body followed by the
16-byte authentication tag, ``nonce`` is 12 random bytes, and no associated
data is used.
"""
import json
import os
from datetime import datetime, timezone

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from ledger_services.errors import DecryptionFailed
from ledger_services.schemas import DecryptedPayload, FormattedReading, RawRecord

KEY_LENGTH = 32
NONCE_LENGTH = 12
TAG_LENGTH = 16


def parse_key(key_hex: str) -> bytes:
    """Decodes a 64 character hex key. Raises ValueError when malformed."""
    key_hex = key_hex.strip()
    if key_hex.startswith("0x"):
        key_hex = key_hex[2:]
    if len(key_hex) != KEY_LENGTH * 2:
        raise ValueError(
            f"Key must be {KEY_LENGTH * 2} hex characters ({KEY_LENGTH} bytes), got {len(key_hex)} characters"
        )
    try:
        return bytes.fromhex(key_hex)
    except ValueError:
        raise ValueError("Invalid hex key. Key must contain only 0-9, a-f characters") from None


def encrypt_payload(payload: dict, key: bytes, nonce: bytes = None):
    """
    Encrypts a reading the way the edge gateway does.

    Args:
        payload: JSON-serializable dict, normally temperature/humidity/timestamp.
        key: The 32 byte shared key.
        nonce: Optional fixed nonce; a random one is generated otherwise.

    Returns:
        A ``(ciphertext, nonce)`` tuple where ciphertext carries the trailing tag.
    """
    if nonce is None:
        nonce = os.urandom(NONCE_LENGTH)
    plaintext = json.dumps(payload).encode("utf-8")
    return AESGCM(key).encrypt(nonce, plaintext, None), nonce


def reject_constant(token):
    raise DecryptionFailed(f"Plaintext is not valid JSON: non-standard token {token}")


def decrypt_payload(ciphertext: bytes, nonce: bytes, key: bytes) -> DecryptedPayload:
    """
    Authenticates and decrypts one record. Never returns partial plaintext:
    every failure mode is raised as DecryptionFailed.
    """
    if len(key) != KEY_LENGTH:
        raise DecryptionFailed(f"Invalid key length: expected {KEY_LENGTH} bytes, got {len(key)}")
    if len(nonce) != NONCE_LENGTH:
        raise DecryptionFailed(f"Invalid nonce length: expected {NONCE_LENGTH} bytes, got {len(nonce)}")
    if len(ciphertext) <= TAG_LENGTH:
        raise DecryptionFailed(f"Ciphertext too short: {len(ciphertext)} bytes")

    try:
        # AESGCM takes the body with the tag appended, i.e. the wire format as is.
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except InvalidTag:
        raise DecryptionFailed("Authentication tag mismatch") from None

    try:
        data = json.loads(plaintext.decode("utf-8"), parse_constant=reject_constant)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecryptionFailed(f"Plaintext is not valid JSON: {e}") from None

    if not isinstance(data, dict):
        raise DecryptionFailed("Plaintext is not a JSON object")
    try:
        return DecryptedPayload(**data)
    except ValidationError as e:
        raise DecryptionFailed(f"Plaintext is not a reading: {e.error_count()} invalid field(s)") from None


def to_iso(timestamp: float) -> str:
    """Unix seconds to an ISO-8601 UTC string with millisecond precision."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_reading(record: RawRecord, payload: DecryptedPayload) -> FormattedReading:
    try:
        timestamp_date = to_iso(payload.timestamp)
    except (OverflowError, OSError, ValueError) as e:
        raise DecryptionFailed(f"Unrepresentable timestamp {payload.timestamp}: {e}") from None

    return FormattedReading(
        device_id=record.device_id,
        temperature=payload.temperature,
        humidity=payload.humidity,
        timestamp=payload.timestamp,
        timestamp_date=timestamp_date,
        block_number=int(record.block_number),
    )
