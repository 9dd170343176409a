"""APT repository setup and driver build prerequisites"""

import subprocess
from typing import Optional

from ..config import REPOSITORY_COMPONENTS, PREREQUISITE_PACKAGES
from ..errors import RepositoryUpdateFailed, PackageInstallFailed
from ..utils.logging import log_info, log_warn, log_step
from ..utils.system import AptManager, get_kernel_version


def enable_repositories(apt: AptManager) -> None:
    """Enable the Ubuntu components that carry drivers and codecs.

    The proprietary driver lives in 'restricted', FFmpeg in 'universe'
    and some codec libraries in 'multiverse'.

    Raises:
        RepositoryUpdateFailed: if either apt-get update fails.
        PackageInstallFailed: if software-properties-common cannot be installed.
    """
    log_step("Enabling Ubuntu repositories (universe, multiverse, restricted)...")

    _update(apt, "apt update failed.")

    try:
        apt.install("software-properties-common")
    except subprocess.CalledProcessError as exc:
        raise PackageInstallFailed(
            "Failed to install software-properties-common "
            "(required for add-apt-repository)."
        ) from exc

    for component in REPOSITORY_COMPONENTS:
        try:
            apt.add_repository(component)
        except subprocess.CalledProcessError:
            log_warn(f"Unable to enable '{component}' repository (it might already be enabled).")

    _update(apt, "apt update failed after enabling repositories.")


def _update(apt: AptManager, message: str) -> None:
    try:
        apt.update(force=True)
    except subprocess.CalledProcessError as exc:
        raise RepositoryUpdateFailed(message) from exc


def install_prerequisites(apt: AptManager, kernel: Optional[str] = None) -> None:
    """Install DKMS, build tools, kernel headers, ubuntu-drivers and wget.

    An empty kernel release is looked up with uname.

    Raises:
        PackageInstallFailed: if any prerequisite cannot be installed.
    """
    log_step("Installing prerequisite packages (DKMS, build tools, kernel headers)...")
    kernel = kernel or get_kernel_version()
    packages = [pkg.format(kernel=kernel) for pkg in PREREQUISITE_PACKAGES]
    try:
        apt.install(*packages)
    except subprocess.CalledProcessError as exc:
        raise PackageInstallFailed(
            f"Failed to install one or more prerequisite packages ({', '.join(packages)})."
        ) from exc
    log_info("Prerequisites installed")
