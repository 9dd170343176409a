"""Optional NVENC-capable applications offered after the driver install"""

import subprocess
from typing import Optional

from .system.profile import HostProfile
from .utils.logging import log_info, log_warn, log_step, log_success
from .utils.prompts import ConfirmationProvider
from .utils.system import AptManager

CHOICE_FFMPEG = 1
CHOICE_OBS = 2
CHOICE_HANDBRAKE = 3
CHOICE_NONE = 4

MENU_OPTIONS = [
    "FFmpeg (command-line video transcoder with NVENC support)",
    "OBS Studio (broadcasting/recording software, uses NVENC for streaming) - requires a GUI",
    "HandBrake (video transcoder with NVENC support)",
    "None (skip optional software installation)",
]

OBS_PPA = "ppa:obsproject/obs-studio"


def parse_selection(raw: str) -> list[str]:
    """Split a space/comma separated selection into tokens.

    "1, 3" -> ["1", "3"].  Empty input yields an empty list.
    """
    return (raw or "").replace(",", " ").split()


def _menu_number(token: str) -> Optional[int]:
    try:
        return int(token)
    except ValueError:
        return None


def _install(apt: AptManager, label: str, *packages: str) -> bool:
    try:
        apt.install(*packages)
    except subprocess.CalledProcessError:
        log_warn(f"{label} installation failed.")
        return False
    log_success(f"{label} installed successfully.")
    return True


def install_ffmpeg(apt: AptManager, profile: HostProfile) -> bool:
    log_info("Installing FFmpeg (with NVENC support)...")
    return _install(apt, "FFmpeg", "ffmpeg")


def install_obs(apt: AptManager, profile: HostProfile) -> bool:
    log_info("Installing OBS Studio (Open Broadcaster Software)...")
    if profile.headless:
        log_info("Skipping OBS Studio installation because no GUI is detected on this system.")
        return False

    try:
        apt.install("obs-studio")
        log_success("OBS Studio installed successfully.")
        return True
    except subprocess.CalledProcessError:
        log_info("OBS Studio not found in default repositories. "
                 "Adding the official OBS Studio PPA and trying again...")

    try:
        apt.add_repository(OBS_PPA)
        apt.update()
    except subprocess.CalledProcessError:
        log_warn("OBS Studio installation failed: could not add the OBS PPA.")
        return False
    return _install(apt, "OBS Studio (PPA)", "obs-studio")


def install_handbrake(apt: AptManager, profile: HostProfile) -> bool:
    log_info("Installing HandBrake video transcoder...")
    if profile.headless:
        return _install(apt, "HandBrake CLI", "handbrake-cli")
    return _install(apt, "HandBrake (GUI and CLI)", "handbrake", "handbrake-cli")


_INSTALLERS = {
    CHOICE_FFMPEG: install_ffmpeg,
    CHOICE_OBS: install_obs,
    CHOICE_HANDBRAKE: install_handbrake,
}


def install_selected_software(raw: str, apt: AptManager, profile: HostProfile) -> list[int]:
    """Install each selected application in the order given.

    'None' stops processing of any later choices.  Invalid choices are
    skipped with a warning.

    Returns:
        Menu numbers whose installation succeeded.
    """
    tokens = parse_selection(raw)
    if not tokens:
        log_info("No optional software selected. Skipping optional installations.")
        return []

    installed: list[int] = []
    for token in tokens:
        choice = _menu_number(token)
        if choice == CHOICE_NONE:
            log_info("Skipping optional software installation as per user choice.")
            break
        installer = _INSTALLERS.get(choice)
        if installer is None:
            log_warn(f"Invalid option '{token}' "
                     "in selection. Skipping unrecognized choice.")
            continue
        if installer(apt, profile):
            installed.append(choice)
    return installed


def offer_optional_software(confirmations: ConfirmationProvider, apt: AptManager,
                            profile: HostProfile) -> list[int]:
    """Show the optional software menu and install the selection"""
    log_step("Optional Software Installation")
    log_info("The following applications can use NVIDIA NVENC for video encoding:")
    raw = confirmations.select_optional_software(MENU_OPTIONS)
    return install_selected_software(raw, apt, profile)
