import os
from typing import Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

# --- Locate project root ---
# This assumes the 'config' folder is in the project's root directory.
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
dotenv_path = os.path.join(PROJECT_ROOT, ".env")

# --- Load variables from .env at project root ---
load_dotenv(dotenv_path)

# --- Ledger connection ---
RPC_URL = os.getenv("RPC_URL")
CONTRACT_ADDRESS = os.getenv("CONTRACT_ADDRESS")
RPC_TIMEOUT = float(os.getenv("RPC_TIMEOUT", 10))

# --- Shared AES-256-GCM key, hex encoded ---
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")

# --- Server ---
PORT = int(os.getenv("PORT", 3001))
HOST = os.getenv("HOST", "0.0.0.0")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000")


# --- Debug check (optional but recommended) ---
if not ENCRYPTION_KEY:
    print("⚠️ WARNING: ENCRYPTION_KEY is missing or empty in your .env file!")


class ConfigurationError(Exception):
    """Raised at startup when a required setting is missing or malformed."""


class Settings(BaseModel):
    """Process-wide, read-only configuration built once at startup."""

    model_config = ConfigDict(frozen=True)

    rpc_url: str
    contract_address: str
    encryption_key: bytes
    rpc_timeout: float = 10.0
    host: str = "0.0.0.0"
    port: int = 3001
    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: Tuple[str, ...] = ("http://localhost:3000",)


def split_origins(raw):
    return tuple(origin.strip() for origin in (raw or "").split(",") if origin.strip())


def load_settings(**overrides) -> Settings:
    """
    Builds the Settings object from the environment loaded above.

    Keyword overrides take precedence over environment values, which is how
    tests and the simulator provide their own key or endpoint.
    """
    # Imported here so settings stays importable without the crypto stack.
    from ledger_services.crypto import parse_key

    values = {
        "rpc_url": RPC_URL,
        "contract_address": CONTRACT_ADDRESS,
        "encryption_key": ENCRYPTION_KEY,
        "rpc_timeout": RPC_TIMEOUT,
        "host": HOST,
        "port": PORT,
        "debug": DEBUG,
        "log_level": LOG_LEVEL,
        "allowed_origins": split_origins(ALLOWED_ORIGINS),
    }
    values.update(overrides)

    for name in ("rpc_url", "contract_address", "encryption_key"):
        if not values.get(name):
            raise ConfigurationError(f"{name.upper()} is not configured")

    key = values["encryption_key"]
    if isinstance(key, str):
        try:
            values["encryption_key"] = parse_key(key)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    return Settings(**values)
