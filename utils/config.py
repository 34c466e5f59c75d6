"""
Unified configuration management with Pydantic validation.
Loads and validates all environment variables.
"""

from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from pydantic import Field, field_validator, ValidationError
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Config(BaseSettings):
    """Application configuration with validation."""

    # ========================
    # Database Configuration
    # ========================
    database_path: str = Field(default="inspections.db", alias="DATABASE_PATH")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # ========================
    # Artifact Storage Configuration
    # ========================
    report_dir: str = Field(default="reports", alias="REPORT_DIR")
    log_dir: str = Field(default="logs", alias="LOG_DIR")
    storage_bucket: str = Field(default="reports", alias="STORAGE_BUCKET")
    public_base_url: Optional[str] = Field(default=None, alias="PUBLIC_BASE_URL")
    max_versions_per_report: int = Field(default=50, alias="MAX_VERSIONS_PER_REPORT")

    # ========================
    # Export Configuration
    # ========================
    default_report_mode: str = Field(default="compatibility", alias="DEFAULT_REPORT_MODE")
    default_recipient_email: str = Field(
        default="contato@joule.com.br",
        alias="DEFAULT_RECIPIENT_EMAIL"
    )
    max_export_retries: int = Field(default=5, alias="MAX_EXPORT_RETRIES")

    # ========================
    # Company / Document Configuration
    # ========================
    company_name: str = Field(default="Joule Engenharia", alias="COMPANY_NAME")
    company_address: str = Field(
        default="Rua Exemplo, 100 - São Paulo/SP - contato@joule.com.br",
        alias="COMPANY_ADDRESS"
    )
    report_author: str = Field(default="Equipe Técnica", alias="REPORT_AUTHOR")

    # ========================
    # Notification Configuration
    # ========================
    notification_webhook_url: Optional[str] = Field(
        default=None,
        alias="NOTIFICATION_WEBHOOK_URL"
    )
    notification_timeout: int = Field(default=10, alias="NOTIFICATION_TIMEOUT")
    notification_max_retries: int = Field(default=3, alias="NOTIFICATION_MAX_RETRIES")
    notification_retry_backoff: int = Field(default=2, alias="NOTIFICATION_RETRY_BACKOFF")

    # ========================
    # Logging Configuration
    # ========================
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_to_file: bool = Field(default=False, alias="LOG_TO_FILE")

    # ========================
    # Validators
    # ========================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("default_report_mode")
    @classmethod
    def validate_report_mode(cls, v: str) -> str:
        """Validate default report mode."""
        valid_modes = ["compatibility", "enriched"]
        if v.lower() not in valid_modes:
            raise ValueError(f"DEFAULT_REPORT_MODE must be one of {valid_modes}")
        return v.lower()

    @field_validator("max_versions_per_report", "max_export_retries", "notification_max_retries")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:
        """Validate counters that must be at least 1."""
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    # ========================
    # Helper Properties
    # ========================

    @property
    def notifications_enabled(self) -> bool:
        """Check if a webhook endpoint is configured for notifications."""
        return bool(self.notification_webhook_url)

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_path}"

    def get_report_dir(self) -> Path:
        """Get report directory as Path object."""
        path = Path(self.report_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_log_dir(self) -> Path:
        """Get log directory as Path object."""
        path = Path(self.log_dir)
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def log_file(self) -> Optional[Path]:
        """JSON-line log file, only when LOG_TO_FILE is enabled."""
        if not self.log_to_file:
            return None
        return self.get_log_dir() / "inspection_reports.log"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


def get_config() -> Config:
    """
    Load and validate configuration.
    Exits if configuration is invalid.
    """
    try:
        return Config()

    except ValidationError as e:
        print("\n❌ Configuration Error:")
        print("=" * 60)
        for error in e.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            print(f"\n Field: {field}")
            print(f"  Error: {error['msg']}")
            if "input" in error:
                print(f"  Value: {error['input']}")
        print("\n" + "=" * 60)
        print("\nPlease check your .env file and fix the errors above.\n")
        raise SystemExit(1)


# Global configuration instance
config = get_config()


# Export commonly used paths
REPORT_DIR = config.get_report_dir()
