"""Tests for the web3 contract adapter, using a stubbed contract object."""

import pytest
import requests
from web3.exceptions import ContractLogicError

from ledger_services.errors import DecryptionFailed, IndexOutOfRange, LedgerUnavailable
from ledger_services.ledger_reader import LedgerReader, load_abi, to_raw_record

ADDRESS = "0x0000000000000000000000000000000000000001"
READING_TUPLE = ("esp32-dht22-001", b"\xaa" * 40, b"\x01" * 12, b"\x02" * 32, 1700000000, 1234)


class StubCall:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    def call(self):
        if self.error is not None:
            raise self.error
        return self.result


class StubFunctions:
    def __init__(self, total=0, readings=None, error=None):
        self.total = total
        self.readings = readings or {}
        self.error = error
        self.requested = []

    def totalReadings(self):
        return StubCall(self.total, self.error)

    def getReading(self, index):
        self.requested.append(index)
        if self.error is not None:
            return StubCall(error=self.error)
        if index not in self.readings:
            return StubCall(error=ContractLogicError("execution reverted: Index out of bounds"))
        return StubCall(self.readings[index])


class StubContract:
    def __init__(self, functions):
        self.functions = functions
        self.address = ADDRESS


def test_abi_exposes_the_two_read_calls():
    names = {entry["name"] for entry in load_abi()}

    assert names == {"totalReadings", "getReading"}


def test_total_count_is_a_plain_int():
    reader = LedgerReader(StubContract(StubFunctions(total=7)))

    assert reader.total_count() == 7
    assert type(reader.total_count()) is int


def test_get_record_maps_tuple_into_raw_record():
    functions = StubFunctions(total=1, readings={0: READING_TUPLE})
    record = LedgerReader(StubContract(functions)).get_record(0)

    assert record.device_id == "esp32-dht22-001"
    assert record.ciphertext == b"\xaa" * 40
    assert record.nonce == b"\x01" * 12
    assert record.signature == b"\x02" * 32
    assert record.timestamp == 1700000000
    assert record.block_number == 1234
    assert functions.requested == [0]


def test_signature_is_passed_through_unmodified():
    odd_signature = b"\x00\xff" * 7
    record = to_raw_record(READING_TUPLE[:3] + (odd_signature,) + READING_TUPLE[4:])

    assert record.signature == odd_signature


def test_reverted_get_reading_is_index_out_of_range():
    reader = LedgerReader(StubContract(StubFunctions(total=1, readings={0: READING_TUPLE})))

    with pytest.raises(IndexOutOfRange):
        reader.get_record(5)


@pytest.mark.parametrize("error", [
    requests.exceptions.ConnectionError("connection refused"),
    requests.exceptions.Timeout("read timed out"),
    TimeoutError("timed out"),
])
def test_transport_errors_become_ledger_unavailable(error):
    reader = LedgerReader(StubContract(StubFunctions(error=error)))

    with pytest.raises(LedgerUnavailable):
        reader.total_count()
    with pytest.raises(LedgerUnavailable):
        reader.get_record(0)


def test_malformed_record_is_a_decrypt_class_failure():
    with pytest.raises(DecryptionFailed):
        to_raw_record(("device-only",))


def test_describe_reports_address_and_total():
    reader = LedgerReader(StubContract(StubFunctions(total=3)))

    assert reader.describe() == {
        "connected": True,
        "contractAddress": ADDRESS,
        "totalReadings": 3,
    }
