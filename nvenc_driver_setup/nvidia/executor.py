"""Install plan execution.

Candidates run strictly one after another; a package-manager or
installer subprocess always runs to completion before the next step.
"""

import os
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Callable, Optional

from ..config import (
    INSTALLER_FILENAME_TEMPLATE,
    NOUVEAU_BLACKLIST_PATH,
    NOUVEAU_BLACKLIST_CONTENT,
)
from ..errors import (
    AllCandidatesFailed,
    CandidateFailed,
    DownloadFailed,
    InstallationAborted,
    InstallerExecutionFailed,
    PackageInstallFailed,
)
from ..system.profile import HostProfile, SecureBootState
from ..utils.logging import log_info, log_warn, log_error, log_step, log_success
from ..utils.prompts import ConfirmationProvider
from ..utils.system import AptManager, run_command, stream_command, is_module_loaded
from .planner import (
    Candidate,
    CandidateSource,
    DriverCandidate,
    FallbackCandidate,
    InstallPlan,
    download_url,
)


@dataclass(frozen=True)
class InstallOutcome:
    """Result of attempting one candidate."""
    succeeded: bool
    candidate: Candidate
    diagnostic: str


# ---------------------------------------------------------------------------
# Repository strategy
# ---------------------------------------------------------------------------

class RepositoryStrategy:
    """Installs a DriverCandidate's packages with apt."""

    def __init__(self, apt: Optional[AptManager] = None):
        self.apt = apt or AptManager()

    def install(self, candidate: DriverCandidate) -> str:
        package_list = ' '.join(candidate.packages)
        log_info(f"Installing NVIDIA driver and NVENC/NVDEC packages via apt: {package_list}")
        try:
            self.apt.install(*candidate.packages)
        except subprocess.CalledProcessError as exc:
            raise PackageInstallFailed(
                f"apt-get install exited with status {exc.returncode}"
            ) from exc
        return f"installed {package_list}"


# ---------------------------------------------------------------------------
# Vendor installer strategy
# ---------------------------------------------------------------------------

def download_installer(url: str, destination: str) -> bool:
    """Download with wget; True only for exit status 0 and a non-empty file."""
    log_info(f"Downloading {url}")
    try:
        returncode = stream_command(["wget", "-O", destination, url], shell=False)
    except OSError as exc:
        log_warn(f"Could not run wget: {exc}")
        return False

    ok = (returncode == 0
          and os.path.isfile(destination)
          and os.path.getsize(destination) > 0)
    if not ok and os.path.exists(destination):
        os.remove(destination)
    return ok


def run_installer(path: str, flags: tuple[str, ...]) -> int:
    """Run a .run installer with sh and return its exit status."""
    log_info(f"Running NVIDIA installer with options: {' '.join(flags)}")
    return stream_command(["sh", path, *flags], shell=False)


def disable_nouveau(
    blacklist_path: str = NOUVEAU_BLACKLIST_PATH,
    module_loaded: Callable[[str], bool] = is_module_loaded,
) -> bool:
    """Unload nouveau and block it from loading on next boot.

    Best effort: every failure is logged as a warning.  The blacklist
    file is left in place even if the driver install later fails.

    Returns:
        True if nouveau was loaded and handling was attempted.
    """
    if not module_loaded("nouveau"):
        return False

    log_warn("Nouveau driver is currently loaded. Attempting to unload and disable it...")
    if run_command("rmmod nouveau", check=False).returncode != 0:
        log_warn("Could not unload nouveau module (it might be in use by the framebuffer).")

    try:
        with open(blacklist_path, "w") as fh:
            fh.write(NOUVEAU_BLACKLIST_CONTENT)
        log_info(f"Wrote {blacklist_path}")
    except OSError as exc:
        log_warn(f"Could not write {blacklist_path}: {exc}")
        return True

    if run_command("update-initramfs -u", check=False).returncode != 0:
        log_warn("Failed to update initramfs to blacklist nouveau.")
    return True


class VendorInstallerStrategy:
    """Downloads and runs NVIDIA's official installer."""

    def __init__(
        self,
        profile: HostProfile,
        confirmations: ConfirmationProvider,
        downloader: Callable[[str, str], bool] = download_installer,
        runner: Callable[[str, tuple[str, ...]], int] = run_installer,
        nouveau_handler: Callable[[], bool] = disable_nouveau,
    ):
        self.profile = profile
        self.confirmations = confirmations
        self.downloader = downloader
        self.runner = runner
        self.nouveau_handler = nouveau_handler

    def install(self, candidate: FallbackCandidate) -> str:
        log_info("Attempting installation via the NVIDIA official installer...")

        if candidate.requires_confirmation:
            log_warn("A graphical environment is active. Installing the NVIDIA driver with "
                     "X11 running can cause a temporary display disruption.")
            log_warn("It is recommended to quit the GUI and run this installer in text mode.")
            if not self.confirmations.confirm_gui_install():
                raise InstallationAborted(
                    "Installation aborted: the NVIDIA installer was not confirmed "
                    "while a GUI session is active."
                )

        workdir = tempfile.mkdtemp(prefix="nvidia-installer-")
        try:
            version, path = self._download(candidate, workdir)

            self.nouveau_handler()

            if self.profile.secure_boot is SecureBootState.ENABLED:
                log_warn("Secure Boot is enabled. The NVIDIA official installer cannot "
                         "automatically sign the kernel module.")
                log_warn("The module may be blocked until you sign it manually "
                         "or disable Secure Boot.")

            status = self.runner(path, candidate.installer_flags)
            if status != 0:
                raise InstallerExecutionFailed(
                    f"NVIDIA installer {version} exited with status {status}"
                )
            return f"installed NVIDIA driver {version}"
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    def _download(self, candidate: FallbackCandidate, workdir: str) -> tuple[str, str]:
        """Try each candidate version in order; return the first that downloads."""
        tried: list[str] = []
        for version in candidate.versions:
            if tried:
                log_warn(f"Download of NVIDIA driver version {tried[-1]} failed.")
                log_info(f"Attempting to download alternate driver version {version}...")
            else:
                log_info(f"Selected NVIDIA driver version for download: {version}")

            path = os.path.join(workdir, INSTALLER_FILENAME_TEMPLATE.format(version=version))
            if self.downloader(download_url(version), path):
                return version, path
            tried.append(version)

        raise DownloadFailed(
            "Could not download the NVIDIA driver installer (tried "
            f"{', '.join(tried)})."
        )


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------

class PlanExecutor:
    """Walks an InstallPlan and stops at the first successful candidate."""

    def __init__(self, strategies: dict):
        self.strategies = strategies

    def execute(self, plan: InstallPlan) -> list[InstallOutcome]:
        """Attempt candidates in order.

        Returns:
            Outcomes of every attempt; the last one succeeded.

        Raises:
            AllCandidatesFailed: if no candidate succeeded.
            InstallationAborted: if the operator declined a GUI install.
        """
        outcomes: list[InstallOutcome] = []
        total = len(plan)
        for step, candidate in enumerate(plan, 1):
            log_step(f"[{step}/{total}] Installing: {candidate.label}")
            strategy = self.strategies[candidate.source]
            try:
                diagnostic = strategy.install(candidate)
            except CandidateFailed as exc:
                log_error(str(exc))
                outcomes.append(InstallOutcome(False, candidate, str(exc)))
                if step < total:
                    log_warn("Falling back to the next installation method...")
                continue

            log_success(f"NVIDIA driver installation via {candidate.label} completed")
            outcomes.append(InstallOutcome(True, candidate, diagnostic))
            return outcomes

        raise AllCandidatesFailed(outcomes)


def default_executor(profile: HostProfile, confirmations: ConfirmationProvider,
                     apt: Optional[AptManager] = None) -> PlanExecutor:
    """Executor wired to the real apt and NVIDIA installer."""
    return PlanExecutor({
        CandidateSource.REPOSITORY: RepositoryStrategy(apt),
        CandidateSource.VENDOR_INSTALLER: VendorInstallerStrategy(profile, confirmations),
    })
