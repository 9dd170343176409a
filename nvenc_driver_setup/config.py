"""Fixed settings for NVENC Driver Setup.

Fallback driver versions are read from the bundled configs/driver_versions.json
when that file exists so they can be refreshed without a code change.
"""

import json
import os
from typing import Optional

from .utils.logging import log_warn

# Oldest Ubuntu release the tool supports, as (major, minor)
MIN_OS_VERSION = (20, 4)

LOG_DIR = "/var/log"
LOG_FILE_TEMPLATE = "nvidia_install_%Y-%m-%d_%H:%M:%S.log"

# Vendor download host; {version} is a dotted driver version (e.g. 550.144.03)
DOWNLOAD_URL_TEMPLATE = (
    "https://us.download.nvidia.com/XFree86/Linux-x86_64/"
    "{version}/NVIDIA-Linux-x86_64-{version}.run"
)
INSTALLER_FILENAME_TEMPLATE = "NVIDIA-Linux-x86_64-{version}.run"

# Tried in this order after the apt-derived version
DEFAULT_FALLBACK_VERSIONS: tuple[str, ...] = ("550.144.03", "550.107.02")

INSTALLER_BASE_FLAGS: tuple[str, ...] = ("--silent", "--dkms")
INSTALLER_NO_X_CHECK_FLAG = "--no-x-check"

REPOSITORY_COMPONENTS: tuple[str, ...] = ("universe", "multiverse", "restricted")

PREREQUISITE_PACKAGES: tuple[str, ...] = (
    "dkms",
    "build-essential",
    "linux-headers-{kernel}",
    "ubuntu-drivers-common",
    "wget",
)

NOUVEAU_BLACKLIST_PATH = "/etc/modprobe.d/blacklist-nouveau.conf"
NOUVEAU_BLACKLIST_CONTENT = "blacklist nouveau\noptions nouveau modeset=0\n"

_VERSIONS_CONFIG = os.path.join(
    os.path.dirname(__file__), "configs", "driver_versions.json",
)


def load_fallback_versions(config_path: Optional[str] = None) -> tuple[str, ...]:
    """Load the ordered fallback driver versions.

    The JSON file holds ``{"fallback_versions": ["550.144.03", ...]}``.
    A missing, unreadable or empty file yields the built-in defaults.
    """
    path = config_path or _VERSIONS_CONFIG
    try:
        with open(path, "r") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        log_warn(f"Could not read {path} ({exc}); using built-in fallback versions.")
        return DEFAULT_FALLBACK_VERSIONS

    versions = data.get("fallback_versions") if isinstance(data, dict) else None
    if not versions or not all(isinstance(v, str) and v for v in versions):
        log_warn(f"No usable fallback_versions in {path}; using built-in fallback versions.")
        return DEFAULT_FALLBACK_VERSIONS
    return tuple(versions)
