"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


class DepositCoreConfig(BaseSettings):
    """Settlement core configuration"""

    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    database_path: str = "deposit_core.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8091
    admin_auth_enabled: bool = True  # Require X-Role header on admin endpoints

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Business rules configuration
    products_file: str = ""  # JSON product catalog published by product administration
    overdue_warning_days: int = 30

    # Blockchain gateway configuration
    blockchain_gateway_url: str = ""  # Empty = submission disabled
    blockchain_timeout: float = 5.0
    blockchain_api_key: str = ""
    contract_address: str = ""
    treasury_address: str = ""

    class Config:
        env_prefix = "DEPOSIT_CORE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = DepositCoreConfig()


def get_config() -> DepositCoreConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> DepositCoreConfig:
    """Reload configuration from environment"""
    global config
    config = DepositCoreConfig()
    return config
