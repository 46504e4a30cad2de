"""Bootstrap configuration."""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Bootstrap settings loaded from BOOTSTRAP_* environment variables."""

    # Development mode: plain log lines instead of JSON-shaped ones
    dev_mode: bool = True

    # Project layout
    project_path: str = "/upms"
    env_file: str = ".env"
    env_template: str = ".env.example"
    vendor_dir: str = "vendor"
    lock_file: str = ".bootstrap.lock"

    # Tooling
    php_binary: str = "php"
    composer_binary: str = "composer"

    # Restore
    target_database: str = "upms"
    backup_dir: str = "/db_backup"
    backup_pattern: str = "*.sql.xz"
    container_db_host: str = "db"  # docker-compose service name

    # Database readiness
    db_ready_timeout: float = 60.0
    db_ready_max_interval: float = 5.0
    db_connect_timeout: float = 3.0

    # Credentials
    default_user_password: str = "password"

    # HTTP server
    server_host: str = "0.0.0.0"
    server_port: int = 80
    server_health_timeout: float = 30.0

    # Step toggles
    skip_install: bool = False
    skip_restore: bool = False
    skip_password_reset: bool = False

    # Logging
    log_level: str = "info"

    @model_validator(mode="after")
    def _validate_timeouts(self) -> "Settings":
        if self.db_ready_timeout <= 0:
            raise ValueError("BOOTSTRAP_DB_READY_TIMEOUT must be positive")
        if not 0 < self.server_port < 65536:
            raise ValueError("BOOTSTRAP_SERVER_PORT must be a valid TCP port")
        return self

    class Config:
        env_prefix = "BOOTSTRAP_"


def get_settings(**overrides) -> Settings:
    """Build settings from the environment, with explicit overrides on top."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
