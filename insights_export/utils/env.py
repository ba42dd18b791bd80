"""
Environment variable helpers.

Values that are present but malformed raise ConfigurationError instead of
silently falling back to the default, so a typo in .env surfaces at startup.
"""

import os
from typing import List, Optional

from insights_export.core.exceptions import ConfigurationError


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Return the variable, treating an empty string as unset."""
    value = os.environ.get(key)
    if value is None or value.strip() == "":
        return default
    return value.strip()

def get_env_int(key: str, default: Optional[int] = None) -> Optional[int]:
    """
    Read an integer.

    Raises:
        ConfigurationError: If the value is not an integer
    """
    value = get_env(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(
            f"Invalid integer value for {key}: {value}",
            details={"env_var": key},
        )

def get_env_list(key: str, separator: str = ",") -> Optional[List[str]]:
    """Split a separated value into stripped, non-empty items; None when unset."""
    value = get_env(key)
    if value is None:
        return None
    return [item.strip() for item in value.split(separator) if item.strip()]
