"""Pytest configuration and fixtures."""

import pytest

from Backend.app import create_app
from config.settings import load_settings
from ledger_services.crypto import encrypt_payload
from ledger_services.errors import IndexOutOfRange, LedgerUnavailable
from ledger_services.schemas import RawRecord

KEY_HEX = "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
BASE_TIMESTAMP = 1700000000
BASE_BLOCK = 1000


class FakeLedger:
    """In-memory stand-in for LedgerReader that counts the calls it serves."""

    def __init__(self, records=None, unavailable=False):
        self.records = list(records or [])
        self.unavailable = unavailable
        self.count_calls = 0
        self.fetched = []

    def total_count(self):
        self.count_calls += 1
        if self.unavailable:
            raise LedgerUnavailable("connection refused")
        return len(self.records)

    def get_record(self, index):
        if self.unavailable:
            raise LedgerUnavailable("connection refused")
        if index < 0 or index >= len(self.records):
            raise IndexOutOfRange(f"Index {index} rejected by contract")
        self.fetched.append(index)
        return self.records[index]

    def describe(self):
        return {
            "connected": True,
            "contractAddress": "0x0000000000000000000000000000000000000001",
            "totalReadings": self.total_count(),
        }


@pytest.fixture
def key():
    return bytes.fromhex(KEY_HEX)


@pytest.fixture
def make_record(key):
    """Factory for encrypted records; ``corrupt=True`` flips a bit in the tag."""

    def _make(temperature=22.5, humidity=55.0, timestamp=BASE_TIMESTAMP,
              block_number=BASE_BLOCK, device_id="esp32-dht22-001", corrupt=False):
        ciphertext, nonce = encrypt_payload(
            {"temperature": temperature, "humidity": humidity, "timestamp": timestamp}, key
        )
        if corrupt:
            ciphertext = ciphertext[:-1] + bytes([ciphertext[-1] ^ 0x01])
        return RawRecord(
            device_id=device_id,
            ciphertext=ciphertext,
            nonce=nonce,
            signature=b"\x01" * 32,
            timestamp=timestamp,
            block_number=block_number,
        )

    return _make


@pytest.fixture
def build_ledger(make_record):
    """Builds a FakeLedger with one record per temperature, in append order."""

    def _build(temperatures, corrupt=(), humidity=55.0):
        records = [
            make_record(
                temperature=temperature,
                humidity=humidity,
                timestamp=BASE_TIMESTAMP + i * 60,
                block_number=BASE_BLOCK + i,
                corrupt=i in corrupt,
            )
            for i, temperature in enumerate(temperatures)
        ]
        return FakeLedger(records)

    return _build


@pytest.fixture
def unavailable_ledger():
    return FakeLedger(unavailable=True)


@pytest.fixture
def settings():
    return load_settings(
        rpc_url="http://127.0.0.1:8545",
        contract_address="0x0000000000000000000000000000000000000001",
        encryption_key=KEY_HEX,
        allowed_origins=("http://localhost:3000",),
    )


@pytest.fixture
def client_for(settings):
    """Returns a Flask test client wired to the given ledger."""

    def _client(ledger):
        app = create_app(settings, reader=ledger)
        app.config["TESTING"] = True
        return app.test_client()

    return _client
