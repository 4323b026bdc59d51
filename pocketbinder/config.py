from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "PocketBinder"
    debug: bool = False

    database_url: str = "sqlite+aiosqlite:///./pocketbinder.db"

    # TCGdex catalog (Italian locale, TCG Pocket series)
    catalog_base_url: str = "https://api.tcgdex.net/v2/it"
    catalog_series_id: str = "tcgp"
    catalog_timeout_seconds: float = 12.0
    catalog_max_concurrency: int = 4

    user_agent: str = "PocketBinder/0.1"

    default_display_name_prefix: str = "Utente-"


settings = Settings()


# =============================================================================
# DOCUMENT STORE COLLECTIONS
# =============================================================================

# Per-user profile: display name and friend ids
USERS_COLLECTION = "users"

# Per-user owned quantities: flat card id -> quantity map
COLLECTIONS_COLLECTION = "collections"

# Selection value meaning "every set in the catalog"
ALL_SETS = "all"
