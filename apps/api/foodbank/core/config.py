from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_env: str = "dev"

    postgres_url: str = "postgresql+psycopg://app:app@db:5432/foodbank"

    jwt_secret: str = "change-me"
    charity_name: str = "Finchley Foodbank"

    # Middleware configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR
    log_format: str = "json"  # json or text
    enable_request_logging: bool = True
    cors_origins: str = ""  # Comma-separated list of allowed origins

    # Storage call bound, applied as statement_timeout on PostgreSQL
    storage_timeout_seconds: float = 30.0

    # Client import configuration
    import_max_rows: int = 10000
    import_default_batch_size: int = 50
    import_max_batch_size: int = 100
    import_batch_timeout_seconds: float = 300.0
    import_validation_workers: int = 1  # >1 only with a thread-safe repository

    # Barcode allocation
    barcode_prefix: str = "FFB"
    barcode_code_length: int = 5
    barcode_max_attempts: int = 10

    # Duplicate detection
    duplicate_match_strategy: str = "exact"  # exact or fuzzy
    duplicate_address_similarity: int = 90  # 0-100, fuzzy strategy only

    model_config = {
        "env_file": "../.env",
        "env_file_encoding": "utf-8",
    }


settings = Settings()
