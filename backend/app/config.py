from typing import List
import json

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "RetailRune"
    app_env: str = "dev"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/retailrune.db"

    # public base url, used for frame links and the x402 demo target
    app_url: str = "http://localhost:8000"

    # read raw string from env (works with comma-separated values)
    cors_origins: str = ""

    # LLM (empty key -> rule-based fallbacks only)
    openai_api_key: str = ""
    openai_base_url: str | None = None
    openai_model: str = "gpt-3.5-turbo"

    # x402 challenge served by /api/x402/test
    x402_scheme: str = "evm"
    x402_network: str = "base-sepolia"
    x402_amount: str = "0.01"
    x402_currency: str = "USDC"
    x402_recipient: str = "0x742d35Cc6634C0532925a3b8D4C9db96C4b4d8b6"
    x402_facilitator: str = "https://facilitator.x402.org"

    # x402 paying client
    wallet_address: str = ""
    payment_max_amount: str = "1.00"
    payment_timeout: float = 30.0

    @property
    def cors_origins_list(self) -> List[str]:
        s = (self.cors_origins or "").strip()
        if not s:
            return []
        if s.startswith("["):
            # also accept JSON list
            return [str(x) for x in json.loads(s)]
        return [part.strip() for part in s.split(",") if part.strip()]

    @property
    def x402_test_url(self) -> str:
        return f"{self.app_url.rstrip('/')}/api/x402/test"


settings = Settings()
