from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Transport Console'
    app_env: str = 'local'
    app_timezone: str = 'Asia/Kolkata'
    device_storage_url: str = 'sqlite:///./device_storage.db'
    remote_backend: str = 'firebase'
    firebase_database_url: str = ''
    firebase_api_key: str = ''
    firebase_auth_base: str = 'https://identitytoolkit.googleapis.com/v1'
    firebase_token_base: str = 'https://securetoken.googleapis.com/v1'
    token_refresh_minutes: int = 45
    remote_timeout_seconds: float = 10.0
    admin_emails: str = ''
    transport_fee_per_km: float = 150.0
    document_expiry_warning_days: int = 30
    write_queue_max_attempts: int = 5
    connectivity_probe_seconds: int = 30
    enable_scheduler: bool = True
    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200


settings = Settings()
