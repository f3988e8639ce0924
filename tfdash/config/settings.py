from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Used by background workers
    store_backend: str = "memory"  # memory | supabase

    # AWS (will read from uppercase env vars automatically)
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"

    # Terraform
    terraform_path: str = "terraform"
    workspace_root: str = "./terraform-workspace"
    stage_timeout_sec: Optional[float] = None  # None = no per-stage deadline
    log_flush_interval_sec: float = 5.0
    max_concurrent_deployments: int = 4
    max_name_attempts: int = 100
    default_environment: str = "dev"

    # Scheduled instance actions
    scheduler_enabled: bool = True
    scheduler_interval_sec: float = 60.0
    scheduler_recurring_period_hours: float = 24.0

    # App
    app_name: str = "tfdash-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
