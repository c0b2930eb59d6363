"""Installed package version, read from the distribution metadata pyproject.toml produces."""

from importlib.metadata import PackageNotFoundError, version

DIST_NAME = "lousy-agents"
UNKNOWN_VERSION = "0+unknown"


def get_version() -> str:
    """Return the installed lousy-agents version, or '0+unknown' when running from an uninstalled tree."""
    try:
        return version(DIST_NAME)
    except PackageNotFoundError:
        return UNKNOWN_VERSION
