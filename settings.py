from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
  AMOCRM_SUBDOMAIN: Optional[str] = None
  AMOCRM_ACCESS_TOKEN: Optional[str] = None
  AMOCRM_DOMAIN: str = "amocrm.ru"
  AMOCRM_TIMEOUT_SECONDS: float = 30.0
  AMOCRM_MAX_RETRIES: int = 3
  model_config = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
  )
