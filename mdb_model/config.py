"""
Configuration management for MDB_MODEL.

Model defaults, read from direct parameters or from environment variables.
Connecting to MongoDB is left to the embedding application; models only ever
receive a motor database handle.
"""

import os

from .exceptions import ConfigurationError

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"{name} must be one of {_TRUE_VALUES + _FALSE_VALUES}, got {value!r}",
        config_key=name,
        config_value=value,
    )


class ModelConfig:
    """
    MDB_MODEL configuration.

    Example:
        # Using environment variables
        config = ModelConfig()

        # Or using direct parameters
        config = ModelConfig(add_times=False)
    """

    def __init__(self, add_times: bool | None = None):
        """
        Initialize configuration.

        Args:
            add_times: Stamp createdAt/updatedAt on writes (defaults to
                MDB_MODEL_ADD_TIMES, true when unset)

        Raises:
            ConfigurationError: If MDB_MODEL_ADD_TIMES is not a boolean flag
        """
        self.add_times = add_times if add_times is not None else _env_bool(
            "MDB_MODEL_ADD_TIMES", True
        )
