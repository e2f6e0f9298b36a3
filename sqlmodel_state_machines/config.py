from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Database Configuration
    # Only used when a machine has to open its own Session (no session passed,
    # subject not attached to one).
    DATABASE_URL: str = "sqlite://"
    DATABASE_ECHO: bool = False

    # Machine Defaults
    # Every machine wraps its transitions in a transaction unless told otherwise
    USE_TRANSACTIONS: bool = True
    DEFAULT_ACTION: Literal["save"] | None = "save"

    # Messages
    LOCALE: str = "en"
    HALTED_MESSAGE: str = "Transition halted"

    # Loads from a .env file in the root directory
    model_config = SettingsConfigDict(
        env_prefix="STATE_MACHINES_", env_file=".env", extra="ignore"
    )

# Singleton instance
settings = Settings()
