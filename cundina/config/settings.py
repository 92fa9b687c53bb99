"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
Contract addresses default to the Sepolia deployment.
"""

import re

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Blockchain RPC
    rpc_url: str = "https://ethereum-sepolia-rpc.publicnode.com"
    chain_id: int = Field(default=11155111, gt=0)

    # Signing account (optional: read-only mode without it)
    account_private_key: str | None = None

    # Contracts
    registry_address: str = "0xd13e3b5b61dEb4f4D1cfdc26988875FA9022AE5E"
    payout_module_address: str = "0x4B4A6047A7B6246FACe6A1605741e190441eaED3"
    token_address: str = "0xf23cAd5D0B38ad7708E63c065C67d446aeD8c064"

    # Gas
    max_gas_price_gwei: float = Field(
        default=50.0, gt=0, description="Upper bound for legacy gas price"
    )

    # Indexed graph service
    subgraph_use_proxy: bool = True
    subgraph_proxy_url: str | None = None
    subgraph_url: str | None = None
    subgraph_api_key: str | None = None

    # Database (notifications only)
    database_url: str | None = None
    database_echo: bool = False

    # Invite links
    invite_base_url: str = "https://cundina.app"

    # Logging
    log_level: str = "INFO"
    log_file: str | None = "logs/cundina.log"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "registry_address",
        "payout_module_address",
        "token_address",
    )
    @classmethod
    def validate_contract_address(cls, v: str) -> str:
        """Validate contract address format."""
        if not _ADDRESS_RE.match(v):
            raise ValueError(f"Invalid contract address: {v}")
        return v

    @field_validator("account_private_key")
    @classmethod
    def validate_private_key(cls, v: str | None) -> str | None:
        """Accept 64 hex chars with or without 0x, treat empty as unset."""
        if not v:
            return None
        key = v[2:] if v.startswith("0x") else v
        if not re.fullmatch(r"[a-fA-F0-9]{64}", key):
            raise ValueError("account_private_key must be 32 bytes of hex")
        return f"0x{key}"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @model_validator(mode="after")
    def validate_subgraph_endpoint(self) -> "Settings":
        """Warn when the selected graph endpoint is not configured."""
        endpoint = self.subgraph_proxy_url if self.subgraph_use_proxy else self.subgraph_url
        if not endpoint:
            logger.warning(
                "Indexed graph endpoint not configured, "
                "rankings will be served from direct ledger reads only"
            )
        return self

    @property
    def graph_endpoint(self) -> str | None:
        """Endpoint for GraphQL POSTs according to proxy mode."""
        return self.subgraph_proxy_url if self.subgraph_use_proxy else self.subgraph_url

    @property
    def read_only(self) -> bool:
        return self.account_private_key is None


# Global settings instance
settings = Settings()
