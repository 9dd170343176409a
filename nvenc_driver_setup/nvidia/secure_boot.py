"""Secure Boot advice after a successful driver install"""

from enum import Enum

from ..system.profile import SecureBootState
from .planner import CandidateSource


class SecureBootAdvice(Enum):
    NO_ACTION = "no_action"
    ENROLL_MOK_REQUIRED = "enroll_mok_required"
    MANUAL_SIGNING_REQUIRED = "manual_signing_required"


_MESSAGES = {
    SecureBootAdvice.NO_ACTION: "",
    SecureBootAdvice.ENROLL_MOK_REQUIRED: (
        "The driver was installed via apt with Secure Boot enabled. If prompted on "
        "reboot, enroll the MOK (Machine Owner Key) to allow the NVIDIA driver to load."
    ),
    SecureBootAdvice.MANUAL_SIGNING_REQUIRED: (
        "The driver was installed with NVIDIA's official installer while Secure Boot "
        "is enabled. Sign the nvidia kernel modules manually or disable Secure Boot, "
        "otherwise the driver will not load."
    ),
}


def advise(secure_boot: SecureBootState, source: CandidateSource) -> SecureBootAdvice:
    """Map Secure Boot state and the winning install route to advice."""
    if secure_boot is not SecureBootState.ENABLED:
        return SecureBootAdvice.NO_ACTION
    if source is CandidateSource.REPOSITORY:
        return SecureBootAdvice.ENROLL_MOK_REQUIRED
    if source is CandidateSource.VENDOR_INSTALLER:
        return SecureBootAdvice.MANUAL_SIGNING_REQUIRED
    return SecureBootAdvice.NO_ACTION


def advice_message(advice: SecureBootAdvice) -> str:
    return _MESSAGES[advice]
