import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, List, NamedTuple

import numpy as np

from ledger_services.crypto import decrypt_payload, format_reading
from ledger_services.errors import DecryptionFailed, InvalidInput, NotFound
from ledger_services.schemas import FormattedReading, HistoryPage, ReadingStats

logger = logging.getLogger(__name__)

# --- Tunable Parameters ---
DEFAULT_HISTORY_LIMIT = 50
DEFAULT_STATS_LIMIT = 20
MIN_LIMIT = 1
MAX_LIMIT = 100
HOT_THRESHOLD = 29    # strictly above is a hot alert
COLD_THRESHOLD = 17   # strictly below is a cold alert


class BatchResult(NamedTuple):
    """Outcome of folding over an index range: what decoded and what did not."""
    successes: List
    failed_indices: List[int]

    @property
    def failure_count(self) -> int:
        return len(self.failed_indices)


def validate_limit(limit: int) -> int:
    if limit < MIN_LIMIT or limit > MAX_LIMIT:
        raise InvalidInput(f"Limit must be between {MIN_LIMIT} and {MAX_LIMIT}")
    return limit


def clamp_limit(limit: int) -> int:
    return max(MIN_LIMIT, min(MAX_LIMIT, limit))


def history_indices(total: int, limit: int, offset: int) -> range:
    """Indices of one history page, newest first."""
    start_index = max(0, total - offset - limit)
    end_index = max(0, total - offset)
    return range(end_index - 1, start_index - 1, -1)


def stats_indices(total: int, limit: int) -> range:
    """Indices of the last ``limit`` readings, oldest first."""
    return range(max(0, total - limit), total)


def round1(value) -> float:
    """One decimal place, ties rounded up like JavaScript's toFixed(1)."""
    return float(Decimal(repr(float(value))).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class ReadingPipeline:
    """
    Turns the append-only ledger of ciphertext records into plaintext
    readings, pages and statistics. Holds no per-request state: the reader
    and key are shared read-only across requests.
    """

    def __init__(self, reader, key: bytes):
        self.reader = reader
        self.key = key

    def decode(self, index: int):
        record = self.reader.get_record(index)
        payload = decrypt_payload(record.ciphertext, record.nonce, self.key)
        return record, payload

    def fold(self, indices, transform: Callable = format_reading) -> BatchResult:
        """
        Fetches and decrypts every index in order, collecting
        ``transform(record, payload)`` for the ones that decode. Records that
        fail to decrypt are logged and counted, never raised. Ledger errors
        are not caught and abort the whole batch.
        """
        successes = []
        failed_indices = []
        for index in indices:
            try:
                record, payload = self.decode(index)
                successes.append(transform(record, payload))
            except DecryptionFailed as e:
                logger.warning("Failed to decrypt reading %s: %s", index, e)
                failed_indices.append(index)
        return BatchResult(successes, failed_indices)

    # --- Query handlers ---

    def count(self) -> int:
        return self.reader.total_count()

    def get_reading(self, index: int) -> FormattedReading:
        if index < 0:
            raise InvalidInput("Invalid index parameter")
        total = self.reader.total_count()
        if index >= total:
            raise NotFound(f"Index {index} is out of range. Total readings: {total}")
        record, payload = self.decode(index)
        return format_reading(record, payload)

    def get_latest(self) -> FormattedReading:
        total = self.reader.total_count()
        if total == 0:
            raise NotFound("No readings have been recorded yet")
        record, payload = self.decode(total - 1)
        return format_reading(record, payload)

    def history(self, limit: int = DEFAULT_HISTORY_LIMIT, offset: int = 0) -> HistoryPage:
        limit = validate_limit(limit)
        offset = max(0, offset)

        total = self.reader.total_count()
        if total == 0:
            return HistoryPage(readings=[], total=0, limit=limit, offset=offset, returned=0)

        indices = history_indices(total, limit, offset)
        if indices:
            logger.info("Fetching indices %s to %s (total: %s)", indices[-1], indices[0], total)

        batch = self.fold(indices)
        if batch.failure_count:
            logger.warning("Skipped %s undecryptable reading(s): %s", batch.failure_count, batch.failed_indices)

        return HistoryPage(
            readings=batch.successes,
            total=total,
            limit=limit,
            offset=offset,
            returned=len(batch.successes),
        )

    def stats(self, limit: int = DEFAULT_STATS_LIMIT) -> ReadingStats:
        limit = clamp_limit(limit)

        total = self.reader.total_count()
        if total == 0:
            return ReadingStats(total=0)

        batch = self.fold(stats_indices(total, limit), transform=lambda record, payload: payload)
        if not batch.successes:
            return ReadingStats(total=total, analyzed=0)

        temperatures = np.array([p.temperature for p in batch.successes], dtype=float)
        humidities = np.array([p.humidity for p in batch.successes], dtype=float)

        return ReadingStats(
            total=total,
            analyzed=len(batch.successes),
            avg_temperature=round1(temperatures.mean()),
            avg_humidity=round1(humidities.mean()),
            min_temperature=round1(temperatures.min()),
            max_temperature=round1(temperatures.max()),
            hot_alerts=int((temperatures > HOT_THRESHOLD).sum()),
            cold_alerts=int((temperatures < COLD_THRESHOLD).sum()),
        )
