from typing import List

from pydantic import BaseModel, ConfigDict, Field


# 1. A reading exactly as the contract stores it. The signature is carried
#    through untouched; nothing in this service verifies it.
class RawRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    device_id: str
    ciphertext: bytes   # AES-GCM body with the 16-byte tag appended
    nonce: bytes        # 12 bytes, unique per record
    signature: bytes
    timestamp: int      # ledger-assigned, unix seconds
    block_number: int


# 2. The JSON object the device encrypted.
class DecryptedPayload(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    temperature: float
    humidity: float
    timestamp: int      # device clock, unix seconds


# 3. What the dashboard receives for a single reading.
class FormattedReading(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    device_id: str = Field(alias="deviceId")
    temperature: float
    humidity: float
    timestamp: int
    timestamp_date: str = Field(alias="timestampDate")
    block_number: int = Field(alias="blockNumber")

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


# 4. A page of history, newest first.
class HistoryPage(BaseModel):
    readings: List[FormattedReading]
    total: int
    limit: int
    offset: int
    returned: int

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)


# 5. Aggregates over the last N readings.
class ReadingStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    analyzed: int = 0
    avg_temperature: float = Field(0.0, alias="avgTemperature")
    avg_humidity: float = Field(0.0, alias="avgHumidity")
    min_temperature: float = Field(0.0, alias="minTemperature")
    max_temperature: float = Field(0.0, alias="maxTemperature")
    hot_alerts: int = Field(0, alias="hotAlerts")
    cold_alerts: int = Field(0, alias="coldAlerts")

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True)
