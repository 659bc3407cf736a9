from enum import Enum


class Environment(str, Enum):
    """Environment profiles."""

    LOCAL = "local"
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class LockProvider(str, Enum):
    """Lock provider types."""

    MEMORY = "memory"
    REDIS = "redis"
