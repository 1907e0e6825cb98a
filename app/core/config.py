# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (admin client, used to invoke edge functions)
      - RPC_URL / CHAIN_ID / contract addresses (default to Base Sepolia)
      - SMTP_* (confirmation emails)
    """

    PROJECT_NAME: str = "UniTick Payments API"
    API_PREFIX: str = "/api"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Chain config (Base Sepolia)
    RPC_URL: str = "https://sepolia.base.org"
    CHAIN_ID: int = 84532
    TICKET_CONTRACT_ADDRESS: str = "0xf3b0fc3021a28e75deEe5c1bbba3A7a714eE9C79"
    UNITICK_TOKEN_ADDRESS: str = "0xA3f4990edBc6aB2c6bafe5DAd9fB4ff1C48f17e7"
    RPC_TIMEOUT_SECONDS: int = 10
    RECEIPT_TIMEOUT_SECONDS: int = 120
    # Pause between a mined approval and the allowance re-read
    ALLOWANCE_SETTLE_SECONDS: float = 2.0
    # 0.001 ETH
    MIN_GAS_BALANCE_WEI: int = 10**15

    # 0.5% platform fee on every booking subtotal
    PLATFORM_FEE_RATE: float = 0.005

    # Frontend base URL, used for links inside emails
    APP_URL: str = "http://localhost:3000"

    # SMTP (Gmail example: host=smtp.gmail.com, port=465, use_ssl=true)
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_EMAIL: str | None = None
    SMTP_FROM_NAME: str = "UniTick"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:3001",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
