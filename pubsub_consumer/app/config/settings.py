from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_id: str = Field("pubSubConsumer", validation_alias="APP_ID")
    log_level: str = Field("DEBUG", validation_alias="LOG_LEVEL")

    queue_backend: str = Field("pubsub", validation_alias="QUEUE_BACKEND")
    subscription_name: str = Field(..., validation_alias="SUBSCRIPTION_NAME")
    # Expands a bare subscription id to projects/<id>/subscriptions/<name> for Pub/Sub.
    gcp_project_id: str = Field("", validation_alias="GCP_PROJECT_ID")

    batch_size: int = Field(1, validation_alias="BATCH_SIZE")
    handle_message_timeout_ms: int = Field(0, validation_alias="HANDLE_MESSAGE_TIMEOUT_MS")
    polling_wait_interval_ms: int = Field(0, validation_alias="POLLING_WAIT_INTERVAL_MS")
    cancel_timed_out_handlers: bool = Field(False, validation_alias="CANCEL_TIMED_OUT_HANDLERS")
    message_handler: str = Field(
        "pubsub_consumer.app.application.handlers:log_message",
        validation_alias="MESSAGE_HANDLER",
    )

    broker_host: str = Field("localhost", validation_alias="BROKER_HOST")
    broker_port: int = Field(5672, validation_alias="BROKER_PORT")
    broker_user: str = Field("guest", validation_alias="BROKER_USER")
    broker_password: str = Field("guest", validation_alias="BROKER_PASSWORD")

    initial_backoff_seconds: float = Field(0.5, validation_alias="INITIAL_BACKOFF_SECONDS")
    max_backoff_seconds: float = Field(10.0, validation_alias="MAX_BACKOFF_SECONDS")
    backoff_multiplier: float = Field(2.0, validation_alias="BACKOFF_MULTIPLIER")
    max_connection_attempts: int = Field(5, validation_alias="MAX_CONNECTION_ATTEMPTS")
