"""Build metadata reported by the health endpoint.

APP_VERSION comes from the environment (set in CI) or the installed
distribution; GIT_COMMIT from the environment or the local checkout.
"""

import os
import subprocess
from importlib import metadata

DISTRIBUTION_NAME = "pair-relay"


def _installed_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "dev"


def _git_short_sha() -> str:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (FileNotFoundError, subprocess.CalledProcessError):  # fmt: skip
        return "dev"


APP_VERSION: str = os.environ.get("APP_VERSION") or _installed_version()
GIT_COMMIT: str = os.environ.get("GIT_COMMIT") or _git_short_sha()
