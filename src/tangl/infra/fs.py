from __future__ import annotations

"""
FileSystem Infrastructure Layer.

Resolves the per-user data directory that holds the configuration file and
the diagnostic logs, and normalizes user-supplied repository paths.
"""

import os
from typing import Optional

# -----------------------------------------------------------------------------
# GLOBAL CONSTANTS
# -----------------------------------------------------------------------------

APP_DIR_NAME = "Tangl"
UNIX_APP_DIR_NAME = ".tangl"
HOME_ENV_VAR = "TANGL_HOME"

# -----------------------------------------------------------------------------
# PATH RESOLUTION API
# -----------------------------------------------------------------------------

def get_user_data_dir() -> str:
    """
    Resolve the directory for persistent application data.

    Automatically creates the hierarchy if it does not exist.
    Resolution order:
    - $TANGL_HOME when set
    - Windows: %LOCALAPPDATA%/Tangl
    - Linux/Mac: ~/.tangl

    Returns:
        str: Absolute path to the application data directory.
    """
    path: str = os.environ.get(HOME_ENV_VAR, "").strip()

    if not path and os.name == "nt":
        base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
        if base:
            path = os.path.join(base, APP_DIR_NAME)

    if not path:
        path = os.path.join(os.path.expanduser("~"), UNIX_APP_DIR_NAME)

    path = os.path.expandvars(os.path.expanduser(path))

    try:
        os.makedirs(path, exist_ok=True)
    except OSError:
        pass

    return os.path.abspath(path)


def get_config_file() -> str:
    return os.path.join(get_user_data_dir(), "config.json")


def get_default_log_path(file_name: str = "tangl.log") -> str:
    """Standard diagnostic log path within the user data directory."""
    return os.path.join(get_user_data_dir(), "logs", file_name)


def normalize_path(path: Optional[str], fallback: str) -> str:
    """
    Normalize a directory path string into an absolute filesystem path.

    Handles environment variable expansion ($VAR/%VAR%) and user home
    shortcuts (~/). Reverts to fallback if the input is empty.

    Args:
        path: Raw input path string.
        fallback: Default path to use if the input is empty.

    Returns:
        str: Normalized absolute path.
    """
    p = (path or "").strip()
    if not p:
        p = fallback
    p = os.path.expandvars(os.path.expanduser(p))
    return os.path.abspath(p)
