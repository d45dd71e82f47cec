"""Application configuration using pydantic-settings.

Covers the backend wallet registry, the two chain families (Aptos account
model and EVM), the custodial balance provider and the refresh scheduler.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")
    dry_run: bool = Field(
        default=False, description="Use simulated registry, probes and funding (no network)"
    )

    # ======================
    # Identity cache
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./walletsync.db",
        description="Identity cache database URL",
    )
    master_key: Optional[str] = Field(
        default=None, description="Fernet key used to encrypt cached key references"
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Backend wallet registry
    # ======================
    registry_base_url: str = Field(
        default="http://127.0.0.1:3000", description="Backend wallet registry base URL"
    )
    registry_timeout: float = Field(default=10.0, description="Registry request timeout (s)")
    registry_aptos_chain: str = Field(
        default="aptos-testnet", description="Registry chain key for the self-custody wallet"
    )
    registry_evm_chain: str = Field(
        default="ethereum-sepolia", description="Registry chain key for the custodial wallet"
    )

    # ======================
    # Aptos (account-model chain)
    # ======================
    aptos_node_url: str = Field(
        default="https://api.testnet.aptoslabs.com/v1", description="Aptos fullnode REST URL"
    )
    aptos_indexer_url: str = Field(
        default="https://api.testnet.aptoslabs.com/v1/graphql",
        description="Aptos indexer GraphQL URL",
    )
    aptos_faucet_url: str = Field(
        default="https://faucet.testnet.aptoslabs.com", description="Aptos faucet URL"
    )
    aptos_fund_amount_octas: int = Field(
        default=100_000_000, description="Octas requested when activating an account"
    )

    # ======================
    # EVM (direct RPC fallback)
    # ======================
    evm_rpc_url: str = Field(
        default="https://ethereum-sepolia-rpc.publicnode.com", description="EVM RPC URL"
    )
    evm_usdc_contract: str = Field(
        default="0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238",
        description="USDC ERC-20 contract on the EVM network",
    )
    evm_usdc_decimals: int = Field(default=6, description="USDC token decimals")
    evm_chain_name: str = Field(default="EVM", description="Label used for EVM balances")
    evm_native_symbol: str = Field(default="ETH", description="EVM native gas token")
    evm_fallback_address: str = Field(
        default="0x678bCC985D12C5fF769A2F4A5ff323A2029284Bb",
        description="Address queried when the registry has no custodial address",
    )

    # ======================
    # Custodial balance provider
    # ======================
    custodial_provider_url: str = Field(
        default="https://staging.crossmint.com/api",
        description="Custodial wallet provider API base URL",
    )
    custodial_provider_api_key: str = Field(default="", description="Custodial provider API key")
    custodial_provider_chain: str = Field(
        default="ethereum-sepolia", description="Chain key in provider balance responses"
    )

    # ======================
    # Aggregation and refresh
    # ======================
    probe_timeout: float = Field(default=15.0, description="Chain probe request timeout (s)")
    refresh_interval_seconds: float = Field(
        default=60.0, description="Periodic balance refresh interval"
    )
    stable_assets: str = Field(
        default="USDC,USDT,DAI",
        description="Comma-separated symbols counted in the stable-value total",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def stable_symbols(self) -> frozenset[str]:
        """Parse stable asset symbols into an uppercase set."""
        return frozenset(s.strip().upper() for s in self.stable_assets.split(",") if s.strip())

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "database_url": self._redact_url(self.database_url),
            "master_key": "***" if self.master_key else "(not set)",
            "registry": {
                "url": self.registry_base_url,
                "aptos_chain": self.registry_aptos_chain,
                "evm_chain": self.registry_evm_chain,
            },
            "chains": {
                "aptos": {"node": self.aptos_node_url, "indexer": self.aptos_indexer_url},
                "evm": {"rpc": self.evm_rpc_url, "label": self.evm_chain_name},
            },
            "custodial_provider": {
                "url": self.custodial_provider_url,
                "api_key": "***" if self.custodial_provider_api_key else "(not set)",
            },
            "refresh_interval_seconds": self.refresh_interval_seconds,
            "stable_assets": sorted(self.stable_symbols),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
