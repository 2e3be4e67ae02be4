from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
	DATABASE_URL: str = 'sqlite+aiosqlite:///./sadaqahbox.db'

	# Empty disables the rate snapshot cache
	REDIS_URL: str = ''

	GOLD_API_TOKEN: str = ''
	COINGECKO_API_KEY: str = ''
	CRYPTOCOMPARE_API_KEY: str = ''

	# Rate acquisition
	RATE_ATTEMPT_COOLDOWN_SECONDS: int = 60 * 60
	RATE_CACHE_MAX_AGE_SECONDS: int = 2 * 60 * 60
	RATE_SNAPSHOT_TTL_SECONDS: int = 60
	PROVIDER_TIMEOUT_SECONDS: int = 10
	RATE_REFRESH_INTERVAL_SECONDS: int = 60 * 60
	RATE_ATTEMPT_RETENTION_DAYS: int = 30

	# Application
	APP_NAME: str = 'SadaqahBox API'
	DEBUG: bool = True
	LOG_LEVEL: str = 'INFO'
	LOG_JSON: bool = False

	model_config = SettingsConfigDict(env_file='.env', case_sensitive=False, extra='ignore')


@lru_cache
def get_settings() -> Settings:
	return Settings()
