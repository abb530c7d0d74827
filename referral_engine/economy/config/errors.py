class ConfigError(Exception):
    pass


class ConfigKeyUnknownError(ConfigError):
    pass


class ConfigValueInvalidError(ConfigError):
    pass
