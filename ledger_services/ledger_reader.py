import json
import logging
import os

import requests
from pydantic import ValidationError
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from ledger_services.errors import DecryptionFailed, IndexOutOfRange, LedgerUnavailable
from ledger_services.schemas import RawRecord

logger = logging.getLogger(__name__)

ABI_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "abis", "sensor_readings.json")

# Anything the transport or node can throw at us during a read call.
TRANSPORT_ERRORS = (Web3Exception, requests.exceptions.RequestException, OSError, ValueError)


def load_abi(path=ABI_PATH):
    with open(path, "r") as f:
        return json.load(f)


def to_raw_record(result) -> RawRecord:
    """Converts the ``getReading`` tuple (ABI component order) into a RawRecord."""
    try:
        device_id, ciphertext, nonce, signature, timestamp, block_number = result
        return RawRecord(
            device_id=device_id,
            ciphertext=bytes(ciphertext),
            nonce=bytes(nonce),
            signature=bytes(signature),
            timestamp=int(timestamp),
            block_number=int(block_number),
        )
    except (TypeError, ValueError, ValidationError) as e:
        raise DecryptionFailed(f"Malformed record returned by contract: {e}") from None


class LedgerReader:
    """
    Read-only access to the sensor readings contract.

    Only two calls are issued: ``totalReadings()`` and ``getReading(index)``.
    They are separate round trips, so a count may be stale by the time a
    record is fetched; since the ledger only grows this never invalidates an
    index that was in range.
    """

    def __init__(self, contract, contract_address=None, w3=None):
        self.contract = contract
        self.contract_address = contract_address or getattr(contract, "address", None)
        self.w3 = w3

    @classmethod
    def from_settings(cls, settings):
        w3 = Web3(Web3.HTTPProvider(settings.rpc_url, request_kwargs={"timeout": settings.rpc_timeout}))
        address = Web3.to_checksum_address(settings.contract_address)
        contract = w3.eth.contract(address=address, abi=load_abi())
        logger.info("[Ledger] Bound to contract %s via %s", address, settings.rpc_url)
        return cls(contract, contract_address=address, w3=w3)

    def total_count(self) -> int:
        try:
            return int(self.contract.functions.totalReadings().call())
        except TRANSPORT_ERRORS as e:
            logger.error("[Ledger] totalReadings() failed: %s", e)
            raise LedgerUnavailable(f"Could not read total readings: {e}") from e

    def get_record(self, index: int) -> RawRecord:
        try:
            result = self.contract.functions.getReading(index).call()
        except ContractLogicError as e:
            # The contract reverts on an index past the end.
            raise IndexOutOfRange(f"Index {index} rejected by contract: {e}") from e
        except TRANSPORT_ERRORS as e:
            logger.error("[Ledger] getReading(%s) failed: %s", index, e)
            raise LedgerUnavailable(f"Could not read reading {index}: {e}") from e
        return to_raw_record(result)

    def describe(self) -> dict:
        """Connectivity summary used by the diagnostics endpoint."""
        return {
            "connected": True,
            "contractAddress": self.contract_address,
            "totalReadings": self.total_count(),
        }
