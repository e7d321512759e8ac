from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = Field(default="POS Offers", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    # vacío => erp.db en la raíz del proyecto
    database_url: str = Field(default="", alias="DATABASE_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    currency: str = Field(default="INR", alias="CURRENCY")
    offer_preview_limit: int = Field(default=5, alias="OFFER_PREVIEW_LIMIT")
    pos_refresh_seconds: int = Field(default=30, alias="POS_REFRESH_SECONDS")


settings = Settings()
