"""
Shared test fixtures and fakes.
"""

import subprocess

import pytest

from nvenc_driver_setup.system.profile import HostProfile, SecureBootState
from nvenc_driver_setup.utils.prompts import ConfirmationProvider


class FakeApt:
    """Records apt calls; packages listed in ``fail`` make install() fail."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.installed: list[tuple[str, ...]] = []
        self.repositories: list[str] = []
        self.updates = 0
        self.fail_update = False
        self.fail_repositories: set[str] = set()

    def update(self, force=False):
        if self.fail_update:
            raise subprocess.CalledProcessError(100, "apt-get update -y")
        self.updates += 1

    def install(self, *packages):
        if self.fail.intersection(packages):
            raise subprocess.CalledProcessError(100, "apt-get install -y")
        self.installed.append(packages)

    def add_repository(self, repository):
        if repository in self.fail_repositories:
            raise subprocess.CalledProcessError(1, "add-apt-repository")
        self.repositories.append(repository)


class FakeConfirmations(ConfirmationProvider):
    """Canned operator answers."""

    def __init__(self, gui_install=True, selection="", reboot=False):
        self.gui_install = gui_install
        self.selection = selection
        self.reboot = reboot
        self.asked: list[str] = []

    def confirm_gui_install(self):
        self.asked.append("gui_install")
        return self.gui_install

    def select_optional_software(self, options):
        self.asked.append("software")
        return self.selection

    def confirm_reboot(self):
        self.asked.append("reboot")
        return self.reboot


def make_profile(**overrides) -> HostProfile:
    values = dict(
        os_id="ubuntu",
        os_version=(22, 4),
        gpu_present=True,
        gpu_model="GA102 [GeForce RTX 3080]",
        headless=True,
        secure_boot=SecureBootState.DISABLED,
        kernel="6.5.0-41-generic",
    )
    values.update(overrides)
    return HostProfile(**values)


@pytest.fixture
def profile() -> HostProfile:
    """A headless Ubuntu 22.04 host with an NVIDIA GPU."""
    return make_profile()


@pytest.fixture
def fake_apt() -> FakeApt:
    return FakeApt()


@pytest.fixture(autouse=True)
def no_log_file():
    """Make sure no test leaves a log file attached."""
    from nvenc_driver_setup.utils import logging as setup_logging
    yield
    setup_logging.close_log_file()
