from referral_engine.economy.config.errors import (
    ConfigError,
    ConfigKeyUnknownError,
    ConfigValueInvalidError,
)
from referral_engine.economy.config.service import SystemConfigUpdateResult, update_system_config
from referral_engine.economy.config.snapshot import ConfigSnapshot, load_config_snapshot

__all__ = [
    "ConfigError",
    "ConfigKeyUnknownError",
    "ConfigSnapshot",
    "ConfigValueInvalidError",
    "SystemConfigUpdateResult",
    "load_config_snapshot",
    "update_system_config",
]
