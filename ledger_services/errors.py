class LedgerServiceError(Exception):
    """Base class for every error raised by the read pipeline."""

    status_code = 500
    error = "Internal server error"


class LedgerUnavailable(LedgerServiceError):
    """The RPC node could not be reached, timed out or returned garbage."""

    error = "Ledger unavailable"


class IndexOutOfRange(LedgerServiceError):
    status_code = 404
    error = "Reading not found"


# Surfaced to HTTP clients under this name.
NotFound = IndexOutOfRange


class InvalidInput(LedgerServiceError):
    status_code = 400
    error = "Invalid input"


class DecryptionFailed(LedgerServiceError):
    """Tag mismatch, malformed nonce/ciphertext or a plaintext that is not a reading."""

    error = "Failed to decrypt reading"
