from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings, read from the environment or a local .env file"""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore")

    database_url: str = Field("sqlite:///./app/db/split_ledger.db", alias="DATABASE_URL")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Auth
    secret_key: str = Field("your_secret_key", alias="SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # RabbitMQ
    rabbitmq_enabled: bool = Field(False, alias="RABBITMQ_ENABLED")
    rabbitmq_host: str = Field("localhost", alias="RABBITMQ_HOST")
    rabbitmq_port: int = Field(5672, alias="RABBITMQ_PORT")
    rabbitmq_user: str = Field("guest", alias="RABBITMQ_USER")
    rabbitmq_password: str = Field("guest", alias="RABBITMQ_PASSWORD")
    rabbitmq_vhost: str = Field("/", alias="RABBITMQ_VHOST")
    notification_exchange: str = Field("notifications", alias="NOTIFICATION_EXCHANGE")
    notification_routing_key: str = Field("notification.push", alias="NOTIFICATION_ROUTING_KEY")
    user_profile_exchange: str = Field("users", alias="USER_PROFILE_EXCHANGE")
    user_profile_queue: str = Field("split.user.profile.queue", alias="USER_PROFILE_QUEUE")
    user_profile_routing_key: str = Field("user.profile.updated", alias="USER_PROFILE_ROUTING_KEY")

    # Ledger
    notify_creator: bool = Field(False, alias="NOTIFY_CREATOR")
    ledger_max_retries: int = Field(3, alias="LEDGER_MAX_RETRIES", ge=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
