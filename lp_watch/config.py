from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Meteora DLMM program and the Metaplex token-metadata program
DLMM_PROGRAM_ID = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"
TOKEN_METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"

_TRUTHY = {"1", "true", "yes", "on"}


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env",), extra="allow", populate_by_name=True)

    # Solana
    solana_rpc: str = Field("", validation_alias=AliasChoices("SOLANA_RPC", "RPC_URL"))
    dlmm_program_id: str = DLMM_PROGRAM_ID
    token_metadata_program_id: str = TOKEN_METADATA_PROGRAM_ID
    commitment: str = "finalized"

    # Feed polling
    poll_interval_sec: float = 5.0
    poll_batch_limit: int = 10

    # Watchlist
    lp_wallets_config: str = "config.json"
    client_account_filtering: bool = False  # only process txs touching an LP wallet

    # Telegram
    telegram_bot_token: str | None = None
    telegram_group_id: str | None = None  # parsed to an int chat id by the notifier
    telegram_api_url: str = "https://api.telegram.org"
    telegram_max_per_second: int = 1
    telegram_max_per_minute: int = 20  # Bot API limit for groups
    telegram_timeout_sec: float = 10.0

    # Metadata cache (0 disables; every lookup hits the RPC node)
    metadata_cache_ttl_sec: float = 0.0
    metadata_negative_ttl_sec: float = 30.0
    metadata_cache_size: int = 1024

    # Logging
    log_level: str = "INFO"

    # --- Validators to coerce empty strings in optional envs to None ---
    @field_validator("telegram_bot_token", "telegram_group_id", mode="before")
    @classmethod
    def _empty_str_to_none(cls, v):
        if v == "":
            return None
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("client_account_filtering", mode="before")
    @classmethod
    def _lenient_bool(cls, v):
        # Anything that is not clearly "on" leaves the gate disabled
        if isinstance(v, str):
            return v.strip().lower() in _TRUTHY
        return bool(v)

    def throttle_limits(self) -> tuple[tuple[int, float], ...]:
        limits: list[tuple[int, float]] = []
        if self.telegram_max_per_second > 0:
            limits.append((self.telegram_max_per_second, 1.0))
        if self.telegram_max_per_minute > 0:
            limits.append((self.telegram_max_per_minute, 60.0))
        return tuple(limits)
