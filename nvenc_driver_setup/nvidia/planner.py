"""Driver resolution planning.

Turns a HostProfile into an ordered install plan: an optional Ubuntu
repository candidate followed by exactly one NVIDIA .run installer
candidate.  The plan is derived only from the profile and the output of
two external queries, which are parsed here and nowhere else.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from ..config import (
    DOWNLOAD_URL_TEMPLATE,
    INSTALLER_BASE_FLAGS,
    INSTALLER_NO_X_CHECK_FLAG,
    load_fallback_versions,
)
from ..errors import NoGpuDetected
from ..system.profile import HostProfile
from ..utils.logging import log_info, log_step
from ..utils.system import run_command, AptManager

# "driver   : nvidia-driver-535 - distro non-free recommended"
_RECOMMENDED_LINE = re.compile(
    r'^\s*driver\s*:\s*(nvidia-driver-[0-9]\S*)\s.*\brecommended\b'
)
_BRANCH = re.compile(r'[0-9]+')
_CANDIDATE_LINE = re.compile(r'^\s*Candidate:\s*(\S+)')
_DOTTED_VERSION = re.compile(r'^[0-9]+(?:\.[0-9]+)+$')


class CandidateSource(Enum):
    """Where an install candidate comes from."""
    REPOSITORY = "repository"
    VENDOR_INSTALLER = "vendor_installer"


@dataclass(frozen=True)
class DriverCandidate:
    """Driver packages from the Ubuntu archive."""
    branch: str
    packages: tuple[str, ...]
    recommended: str
    source: CandidateSource = field(default=CandidateSource.REPOSITORY, init=False)

    @property
    def label(self) -> str:
        return f"apt {self.recommended} (branch {self.branch})"


@dataclass(frozen=True)
class FallbackCandidate:
    """NVIDIA's official .run installer.

    ``versions`` lists every version to download, in order; the first
    one is ``version_string``.
    """
    versions: tuple[str, ...]
    installer_flags: tuple[str, ...]
    requires_confirmation: bool
    source: CandidateSource = field(default=CandidateSource.VENDOR_INSTALLER, init=False)

    @property
    def version_string(self) -> str:
        return self.versions[0]

    @property
    def download_url(self) -> str:
        return download_url(self.version_string)

    @property
    def label(self) -> str:
        return f"NVIDIA installer {self.version_string}"


Candidate = Union[DriverCandidate, FallbackCandidate]


@dataclass(frozen=True)
class InstallPlan:
    """Candidates in the order they are attempted."""
    candidates: tuple[Candidate, ...]

    def __iter__(self):
        return iter(self.candidates)

    def __len__(self):
        return len(self.candidates)


# ---------------------------------------------------------------------------
# Output parsers
# ---------------------------------------------------------------------------

def parse_recommended_driver(output: str) -> Optional[str]:
    """Extract the recommended package from 'ubuntu-drivers devices' output.

    Input grammar: one device block per GPU with lines like
    ``driver : <package> - <origin> [recommended]``.  The first line whose
    package starts with ``nvidia-driver-<digit>`` and that is marked
    ``recommended`` wins.  Any other input yields None.
    """
    for line in (output or "").splitlines():
        match = _RECOMMENDED_LINE.match(line)
        if match:
            return match.group(1)
    return None


def extract_branch(package_name: Optional[str]) -> Optional[str]:
    """'nvidia-driver-535-server' -> '535'.  No digits -> None."""
    match = _BRANCH.search(package_name or "")
    return match.group(0) if match else None


def parse_candidate_version(policy_output: str) -> Optional[str]:
    """Extract the upstream driver version from 'apt-cache policy' output.

    ``Candidate: 535.113.01-0ubuntu0.22.04.1`` -> ``535.113.01``.
    ``Candidate: (none)``, a missing line, or anything that is not a
    dotted numeric version yields None.
    """
    for line in (policy_output or "").splitlines():
        match = _CANDIDATE_LINE.match(line)
        if not match:
            continue
        version = match.group(1).split('-', 1)[0]
        version = version.split(':', 1)[-1]  # drop a Debian epoch
        if _DOTTED_VERSION.match(version):
            return version
        return None
    return None


# ---------------------------------------------------------------------------
# Candidate construction
# ---------------------------------------------------------------------------

def repository_packages(recommended: str, branch: str, headless: bool) -> tuple[str, ...]:
    """Package set for a branch.

    Headless hosts get the -server variants without X components or
    nvidia-settings; desktops get the recommended metapackage.
    """
    if headless:
        return (
            f"nvidia-headless-{branch}-server",
            f"nvidia-utils-{branch}-server",
            f"libnvidia-encode-{branch}-server",
            f"libnvidia-decode-{branch}-server",
        )
    return (
        recommended,
        f"nvidia-utils-{branch}",
        "nvidia-settings",
        f"libnvidia-encode-{branch}",
        f"libnvidia-decode-{branch}",
    )


def fallback_versions(apt_version: Optional[str], defaults: tuple[str, ...]) -> tuple[str, ...]:
    """apt-derived version first, then the defaults in their fixed order."""
    ordered: list[str] = []
    for version in ((apt_version,) if apt_version else ()) + tuple(defaults):
        if version not in ordered:
            ordered.append(version)
    return tuple(ordered)


def download_url(version: str) -> str:
    return DOWNLOAD_URL_TEMPLATE.format(version=version)


def installer_flags(headless: bool) -> tuple[str, ...]:
    if headless:
        return INSTALLER_BASE_FLAGS
    return INSTALLER_BASE_FLAGS + (INSTALLER_NO_X_CHECK_FLAG,)


# ---------------------------------------------------------------------------
# External queries
# ---------------------------------------------------------------------------

def query_ubuntu_drivers() -> str:
    """Raw 'ubuntu-drivers devices' output, empty on failure."""
    return run_command("ubuntu-drivers devices 2>/dev/null",
                       capture_output=True, check=False) or ""


def query_apt_policy(package: str) -> str:
    return AptManager().candidate_version(package)


# ---------------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------------

def build_install_plan(
    profile: HostProfile,
    recommendation_source: Callable[[], str] = query_ubuntu_drivers,
    policy_source: Callable[[str], str] = query_apt_policy,
    defaults: Optional[tuple[str, ...]] = None,
) -> InstallPlan:
    """Build the ordered install plan for a host.

    Raises:
        NoGpuDetected: if the profile has no NVIDIA GPU.
    """
    if not profile.gpu_present:
        raise NoGpuDetected("No NVIDIA GPU detected on this system. Aborting installation.")

    log_step("Detecting the recommended NVIDIA driver via 'ubuntu-drivers'...")
    if defaults is None:
        defaults = load_fallback_versions()

    candidates: list[Candidate] = []

    recommended = parse_recommended_driver(recommendation_source())
    branch = extract_branch(recommended)
    if recommended and branch:
        log_info(f"Recommended driver package: {recommended} (from Ubuntu repositories)")
        packages = repository_packages(recommended, branch, profile.headless)
        candidates.append(DriverCandidate(branch=branch, packages=packages, recommended=recommended))
    else:
        log_info("No specific recommended driver was identified by ubuntu-drivers.")

    apt_version = None
    if branch:
        apt_version = parse_candidate_version(policy_source(f"nvidia-driver-{branch}"))
        if apt_version:
            log_info(f"Exact apt candidate version for nvidia-driver-{branch}: {apt_version}")

    candidates.append(FallbackCandidate(
        versions=fallback_versions(apt_version, defaults),
        installer_flags=installer_flags(profile.headless),
        requires_confirmation=not profile.headless,
    ))

    plan = InstallPlan(tuple(candidates))
    for i, candidate in enumerate(plan, 1):
        log_info(f"  Plan step {i}: {candidate.label}")
    return plan
