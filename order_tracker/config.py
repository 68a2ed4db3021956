from decimal import Decimal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str | None = None  # unset -> in-memory order store
    redis_url: str | None = None  # unset -> webhook idempotency check disabled
    order_id_prefix: str = "ORD"
    payment_amount_mismatch_threshold: Decimal = Decimal("0.10")  # same currency unit as order totals
    store_max_retries: int = 3  # optimistic concurrency retries on a conflicting write
    dispatcher_drain_timeout_sec: float = 30
    webhook_idempotency_ttl_seconds: int = 86400
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
