"""
Configuration management for the CryptoBallot client.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MalformedVotePolicy(str, Enum):
    """What the tally does with a decryption record it cannot read."""
    ABORT = "abort"     # Fail the whole tally
    SKIP = "skip"       # Log a warning and leave the vote out


class BallotConfig(BaseSettings):
    """
    Configuration settings for the CryptoBallot client.

    All settings can be configured via environment variables with the CRYPTOBALLOT_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="CRYPTOBALLOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Ledger REST API
    uri: str = Field(
        default="http://localhost:8008",
        description="Base URI of the ledger REST API"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single REST request"
    )
    batch_wait_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        description="Wait this long for a submitted batch to commit"
    )

    # Transaction family
    family_name: str = Field(
        default="cryptoballot",
        description="Transaction family name written into every header"
    )
    family_version: str = Field(
        default="1.0",
        description="Transaction family version written into every header"
    )
    namespace_label: str = Field(
        default="cryptoballot",
        description="Label hashed to derive the 6 character address namespace"
    )

    # Header signing
    signer_key_path: Optional[str] = Field(
        default=None,
        description="Path to a hex secp256k1 private key used to sign headers"
    )

    # Tally settings
    tally_malformed_votes: MalformedVotePolicy = Field(
        default=MalformedVotePolicy.ABORT,
        description="How the tally treats unreadable decryption records"
    )

    # Logging settings
    log_level: str = Field(
        default="WARNING",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )


# Global config instance
_config: Optional[BallotConfig] = None


def get_config() -> BallotConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = BallotConfig()
    return _config


def set_config(config: BallotConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
