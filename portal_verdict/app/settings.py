from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Points valuation (cents per mile)
    miles_valuation_cents: float = 1.7

    # Earn rates; the card's non-portal rate applies to every direct booking
    direct_multiplier: int = 2
    portal_flight_multiplier: int = 5
    portal_hotel_multiplier: int = 10
    portal_rental_multiplier: int = 10
    portal_other_multiplier: int = 2

    # Verdicts within this many dollars of break-even are a tie
    tie_epsilon: float = 1.0

    # Session persistence
    session_key: str = "vx_flow_context"
    session_ttl_ms: int = 3_600_000  # 1 hour
    store_backend: str = "memory"  # memory | file | redis
    store_path: str = ".sessions/flow_context.json"
    redis_url: str = "redis://localhost:6379/0"

    log_level: str = "INFO"


settings = Settings()  # load once at import
