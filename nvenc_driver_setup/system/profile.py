"""Host facts gathered once at startup.

The profile never guesses: when the PCI listing cannot be read the GPU
is reported absent and the run stops with NoGpuDetected.
"""

import glob
import os
import re
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from ..config import MIN_OS_VERSION
from ..errors import InsufficientPrivilege, UnsupportedOsVersion
from ..utils.logging import log_info, log_warn, log_plain
from ..utils.system import run_command, command_exists

# lspci class names that identify a display controller
_DISPLAY_CLASS = re.compile(
    r'^\S+\s+(?:VGA compatible controller|3D controller|Display controller)',
    re.IGNORECASE,
)
_NVIDIA_MODEL = re.compile(r'NVIDIA Corporation\s*(.+?)\s*(?:\(rev [0-9a-f]+\))?$', re.IGNORECASE)

_EFI_SECURE_BOOT_GLOB = "/sys/firmware/efi/efivars/SecureBoot-*"


class SecureBootState(Enum):
    """Firmware Secure Boot state."""
    ENABLED = "enabled"
    DISABLED = "disabled"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class HostProfile:
    """Immutable host facts the driver planner works from."""
    os_id: str
    os_version: tuple[int, int]
    gpu_present: bool
    gpu_model: str
    headless: bool
    secure_boot: SecureBootState
    os_pretty_name: str = ""
    kernel: str = ""


# ---------------------------------------------------------------------------
# Privilege and OS
# ---------------------------------------------------------------------------

def require_root(euid: Optional[int] = None) -> None:
    """Raise InsufficientPrivilege unless running as root."""
    if euid is None:
        euid = os.geteuid()
    if euid != 0:
        raise InsufficientPrivilege("This tool must be run as root (sudo).")


def parse_os_release(text: str) -> dict[str, str]:
    """Parse /etc/os-release KEY=value lines, stripping quotes."""
    info: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, value = line.split('=', 1)
        info[key] = value.strip().strip('"').strip("'")
    return info


def read_os_release(path: str = "/etc/os-release") -> dict[str, str]:
    """Get OS information from /etc/os-release"""
    try:
        with open(path, 'r') as f:
            return parse_os_release(f.read())
    except OSError:
        return {}


def parse_os_version(version_id: str) -> tuple[int, int]:
    """'22.04' -> (22, 4).  Unparsable input yields (0, 0)."""
    match = re.match(r'^\s*(\d+)(?:\.(\d+))?', version_id or "")
    if not match:
        return (0, 0)
    return int(match.group(1)), int(match.group(2) or 0)


def check_supported_os(profile: HostProfile) -> None:
    """Reject Ubuntu releases older than MIN_OS_VERSION.

    Other distributions only get a warning; the apt-based steps may
    still work on Debian derivatives.
    """
    if profile.os_id != "ubuntu":
        log_warn("This tool is intended for Ubuntu systems. Continuing with caution...")

    if profile.os_version < MIN_OS_VERSION:
        found = "{}.{:02d}".format(*profile.os_version)
        required = "{}.{:02d}".format(*MIN_OS_VERSION)
        raise UnsupportedOsVersion(
            f"Ubuntu {required} or newer is required. "
            f"Detected version {found} is not supported."
        )


# ---------------------------------------------------------------------------
# GPU
# ---------------------------------------------------------------------------

def parse_nvidia_gpu(lspci_output: str) -> Optional[str]:
    """Return the model of the first NVIDIA display controller.

    Returns the text after 'NVIDIA Corporation' (without the revision
    suffix), 'unknown model' if the vendor string is missing the model,
    or None if no NVIDIA display controller is listed.
    """
    for line in (lspci_output or "").splitlines():
        if not _DISPLAY_CLASS.search(line) or 'nvidia' not in line.lower():
            continue
        match = _NVIDIA_MODEL.search(line)
        if match and match.group(1):
            return match.group(1).strip()
        return "unknown model"
    return None


def detect_nvidia_gpu() -> Optional[str]:
    """Run lspci and return the NVIDIA GPU model, or None."""
    try:
        result = subprocess.run(
            "lspci -nn 2>/dev/null",
            shell=True, capture_output=True, text=True,
        )
    except OSError:
        return None
    if result.returncode != 0:
        return None
    return parse_nvidia_gpu(result.stdout)


# ---------------------------------------------------------------------------
# Display session
# ---------------------------------------------------------------------------

def detect_headless(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Headless when neither DISPLAY nor XDG_SESSION_TYPE is set."""
    env = os.environ if environ is None else environ
    return not env.get("DISPLAY") and not env.get("XDG_SESSION_TYPE")


# ---------------------------------------------------------------------------
# Secure Boot
# ---------------------------------------------------------------------------

def parse_mokutil_state(output: str) -> SecureBootState:
    """Interpret 'mokutil --sb-state' output."""
    if re.search(r'SecureBoot\s*enabled', output or "", re.IGNORECASE):
        return SecureBootState.ENABLED
    return SecureBootState.DISABLED


def read_efi_secure_boot(pattern: str = _EFI_SECURE_BOOT_GLOB) -> SecureBootState:
    """Read the SecureBoot EFI variable directly.

    efivarfs prefixes the value with four attribute bytes; the last
    byte is 1 when Secure Boot is enforcing.
    """
    for path in glob.glob(pattern):
        try:
            with open(path, "rb") as fh:
                data = fh.read()
        except OSError:
            continue
        if not data:
            continue
        if data[-1] == 1:
            return SecureBootState.ENABLED
        if data[-1] == 0:
            return SecureBootState.DISABLED
    return SecureBootState.UNKNOWN


def detect_secure_boot() -> SecureBootState:
    """Secure Boot via mokutil, else the EFI variable, else UNKNOWN."""
    if command_exists("mokutil"):
        output = run_command("mokutil --sb-state 2>&1", capture_output=True, check=False)
        return parse_mokutil_state(output or "")
    return read_efi_secure_boot()


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def build_host_profile() -> HostProfile:
    """Probe the host and build its profile"""
    os_info = read_os_release()
    kernel = run_command("uname -r", capture_output=True, check=False) or ""
    gpu_model = detect_nvidia_gpu()

    profile = HostProfile(
        os_id=os_info.get("ID", "").lower(),
        os_version=parse_os_version(os_info.get("VERSION_ID", "")),
        gpu_present=gpu_model is not None,
        gpu_model=gpu_model or "",
        headless=detect_headless(),
        secure_boot=detect_secure_boot(),
        os_pretty_name=os_info.get("PRETTY_NAME", "Unknown OS"),
        kernel=kernel,
    )
    return profile


def display_host_profile(profile: HostProfile) -> None:
    """Display host facts in a formatted way"""
    log_plain("\n" + "=" * 60)
    log_plain("                    SYSTEM INFORMATION")
    log_plain("=" * 60)
    log_plain(f"\n  Operating System: {profile.os_pretty_name}")
    log_plain(f"  Kernel:           {profile.kernel or 'unknown'}")
    if profile.gpu_present:
        log_plain(f"  NVIDIA GPU:       {profile.gpu_model}")
    else:
        log_plain("  NVIDIA GPU:       Not detected")
    mode = "Headless server" if profile.headless else "GUI session"
    log_plain(f"  Environment:      {mode}")
    log_plain(f"  Secure Boot:      {profile.secure_boot.value}")
    log_plain("\n" + "=" * 60)

    if profile.secure_boot is SecureBootState.ENABLED:
        log_info("Secure Boot is enabled. Signed drivers or DKMS-built modules will be used.")
        log_info("You may need to enroll a Machine Owner Key (MOK) on reboot, "
                 "or disable Secure Boot for the NVIDIA driver to load.")
