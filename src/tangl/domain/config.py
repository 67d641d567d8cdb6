from __future__ import annotations

"""
Configuration Domain Management.

Persists user preferences as JSON in the user data directory, merges them
with defaults on load and normalizes untrusted values before use.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

from tangl.infra.fs import get_config_file
from tangl.infra.logging.config import VALID_LEVELS

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Constants & Defaults
# -----------------------------------------------------------------------------
CURRENT_CONFIG_VERSION = "1.0.0"
DEFAULT_TEMPORARY_BRANCH_PREFIX = "tmp"

_STRING_FIELDS = ("log_level", "temporary_branch_prefix")
_BOOL_FIELDS = ("log_to_file", "optimize_merge_order", "show_tags")


def get_default_config() -> Dict[str, Any]:
    """
    Generate the default runtime configuration.

    Returns:
        Dict[str, Any]: Default configuration values.
    """
    return {
        # Diagnostics
        "log_level": "WARNING",
        "log_to_file": False,

        # Derivation
        "optimize_merge_order": True,

        # Conflict checks
        "conflict_base_branch": None,
        "temporary_branch_prefix": DEFAULT_TEMPORARY_BRANCH_PREFIX,

        # Display
        "show_tags": False,
    }

# -----------------------------------------------------------------------------
# Persistence Logic
# -----------------------------------------------------------------------------
def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the configuration from disk, merged over the defaults.

    A missing or corrupt file yields the defaults.

    Args:
        path: Config file location; the user data dir file by default.

    Returns:
        Dict[str, Any]: Normalized configuration.
    """
    config_file = path or get_config_file()
    defaults = get_default_config()

    if not os.path.exists(config_file):
        logger.debug("Config file not found. Returning defaults.")
        return defaults

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load config: {e}. Using defaults.")
        return defaults

    if not isinstance(data, dict):
        logger.warning("Corrupted config file. Resetting to defaults.")
        return defaults

    data.pop("version", None)
    clean, warnings = validate_config(data)
    for warning in warnings:
        logger.warning(warning)
    return clean


def save_config(config: Dict[str, Any], path: Optional[str] = None) -> None:
    """
    Persist the configuration to disk.

    Args:
        config: The configuration to save.
        path: Target file; the user data dir file by default.
    """
    config_file = path or get_config_file()
    state = dict(config)
    state["version"] = CURRENT_CONFIG_VERSION
    try:
        os.makedirs(os.path.dirname(os.path.abspath(config_file)), exist_ok=True)
        with open(config_file, "w", encoding="utf-8") as f:
            json.dump(state, f, ensure_ascii=False, indent=4)
        logger.debug(f"Configuration saved to {config_file}")
    except OSError as e:
        logger.error(f"Failed to save configuration: {e}")

# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------
def validate_config(
        config: Any,
        *,
        strict: bool = False,
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Validate and normalize a configuration dictionary.

    Unknown keys are dropped, missing keys take their default and values of
    the wrong type are coerced where possible.

    Args:
        config: Raw configuration data.
        strict: If True, raise instead of coercing.

    Returns:
        Tuple[Dict[str, Any], List[str]]: Normalized configuration and the
        warnings produced on the way.
    """
    warnings: List[str] = []
    defaults = get_default_config()

    if not isinstance(config, dict):
        msg = f"Invalid config type: expected dict, received {type(config).__name__}."
        if strict:
            raise TypeError(msg)
        warnings.append(f"{msg} Using defaults.")
        return defaults, warnings

    unknown = sorted(k for k in config if k not in defaults)
    if unknown:
        warnings.append(f"Ignoring unknown config keys: {', '.join(unknown)}.")

    merged: Dict[str, Any] = dict(defaults)
    merged.update({k: v for k, v in config.items() if k in defaults})

    for field in _STRING_FIELDS:
        merged[field] = _as_str(merged.get(field), defaults[field], field, warnings, strict)

    for field in _BOOL_FIELDS:
        merged[field] = _as_bool(merged.get(field), defaults[field], field, warnings, strict)

    merged["log_level"] = merged["log_level"].upper()
    if merged["log_level"] not in VALID_LEVELS:
        msg = f"Invalid field 'log_level': unknown level '{merged['log_level']}'."
        if strict:
            raise ValueError(msg)
        warnings.append(f"{msg} Using fallback.")
        merged["log_level"] = defaults["log_level"]

    base = merged.get("conflict_base_branch")
    if base is not None:
        base = _as_str(base, "", "conflict_base_branch", warnings, strict)
    merged["conflict_base_branch"] = base or None

    return merged, warnings

# -----------------------------------------------------------------------------
# PRIVATE HELPERS: TYPE COERCION
# -----------------------------------------------------------------------------
def _as_str(value: Any, fallback: str, field: str, warnings: List[str], strict: bool) -> str:
    if value is None:
        return fallback
    if isinstance(value, str):
        v = value.strip()
        return v if v else fallback

    msg = f"Invalid field '{field}': expected str, received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback


def _as_bool(value: Any, fallback: bool, field: str, warnings: List[str], strict: bool) -> bool:
    """Coerce numbers and yes/no strings into booleans."""
    if isinstance(value, bool):
        return value
    if value is None:
        return fallback

    if not strict:
        if isinstance(value, (int, float)) and value in (0, 1):
            warnings.append(f"Field '{field}' converted from number {value} to bool.")
            return bool(value)
        if isinstance(value, str):
            s = value.strip().lower()
            if s in ("true", "1", "yes", "y", "on"):
                warnings.append(f"Field '{field}' converted from '{value}' to True.")
                return True
            if s in ("false", "0", "no", "n", "off"):
                warnings.append(f"Field '{field}' converted from '{value}' to False.")
                return False

    msg = f"Invalid field '{field}': expected bool, received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback
