from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Inventory Ledger"
    DATABASE_URL: str = "sqlite:///./inventory.db"

    SECRET_KEY: str = "change-me-in-production"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72

    LOG_LEVEL: str = "INFO"

    # Optimistic-lock retries before a mutation gives up with a conflict
    LEDGER_MAX_RETRIES: int = 3

    # How inbound unit prices fold into the stored price: weighted_average or last_price
    INBOUND_PRICE_POLICY: str = "weighted_average"

    BATCH_MAX_ITEMS: int = 1000
    MAX_PAGE_SIZE: int = 100

    # Audit entries older than this many days may be purged
    INVENTORY_LOG_RETENTION_DAYS: int = 90

    model_config = {"env_file": ".env"}


settings = Settings()
