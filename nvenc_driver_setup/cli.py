"""NVENC Driver Setup - Command Line Interface

Entry point for the nvenc-setup CLI command and python3 -m nvenc_driver_setup.
Installs the NVIDIA driver with NVENC/NVDEC support from Ubuntu packages,
falling back to NVIDIA's official installer.
"""

import argparse
import sys
import traceback
from datetime import datetime
from typing import Optional

from nvenc_driver_setup import __version__
from nvenc_driver_setup.config import LOG_DIR, LOG_FILE_TEMPLATE
from nvenc_driver_setup.errors import SetupError, NoGpuDetected
from nvenc_driver_setup.nvidia.executor import default_executor
from nvenc_driver_setup.nvidia.planner import build_install_plan
from nvenc_driver_setup.nvidia.secure_boot import SecureBootAdvice, advise, advice_message
from nvenc_driver_setup.software import offer_optional_software
from nvenc_driver_setup.system.profile import (
    build_host_profile,
    check_supported_os,
    display_host_profile,
    require_root,
)
from nvenc_driver_setup.system.repositories import enable_repositories, install_prerequisites
from nvenc_driver_setup.utils.logging import (
    close_log_file,
    log_error,
    log_file_path,
    log_info,
    log_plain,
    log_step,
    log_success,
    log_warn,
    open_log_file,
)
from nvenc_driver_setup.utils.prompts import ConfirmationProvider, TerminalConfirmations
from nvenc_driver_setup.utils.system import AptManager, reboot


def show_banner() -> None:
    """Display application banner."""
    banner = """
╔══════════════════════════════════════════════════════════════╗
║                  NVENC Driver Setup - Python                 ║
║         NVIDIA Driver + NVENC/NVDEC for Ubuntu Hosts         ║
╚══════════════════════════════════════════════════════════════╝
"""
    log_plain(banner)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nvenc-setup",
        description="Install the NVIDIA driver with NVENC/NVDEC support on Ubuntu.",
    )
    parser.add_argument(
        "--log-dir", default=LOG_DIR,
        help=f"Directory for the run's log file (default: {LOG_DIR})",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def show_completion_summary(advice: SecureBootAdvice) -> None:
    """Show post-installation summary and next steps."""
    log_plain("")
    log_success("Installation Complete")
    log_info("NVIDIA drivers and NVENC support have been installed.")

    message = advice_message(advice)
    if message:
        log_warn(message)

    log_info("A reboot is recommended for the changes to fully take effect "
             "(especially if this is the first NVIDIA driver install on this system).")


def install(confirmations: ConfirmationProvider) -> None:
    """Run the full installation.

    Raises:
        SetupError: on any fatal condition.
    """
    log_step("Gathering System Information")
    profile = build_host_profile()
    display_host_profile(profile)

    check_supported_os(profile)
    if not profile.gpu_present:
        raise NoGpuDetected("No NVIDIA GPU detected on this system. Aborting installation.")
    log_info(f"Detected NVIDIA GPU: {profile.gpu_model}")

    if profile.headless:
        log_info("Environment: No GUI detected (headless server mode). "
                 "Will install headless NVIDIA driver components.")
    else:
        log_info("Environment: GUI session detected. "
                 "Will install desktop NVIDIA driver components.")

    apt = AptManager()
    enable_repositories(apt)
    install_prerequisites(apt, profile.kernel)

    plan = build_install_plan(profile)
    outcomes = default_executor(profile, confirmations, apt).execute(plan)
    advice = advise(profile.secure_boot, outcomes[-1].candidate.source)

    offer_optional_software(confirmations, apt, profile)

    show_completion_summary(advice)
    if confirmations.confirm_reboot():
        reboot()
    else:
        log_info("Please reboot the system later to ensure the NVIDIA driver is properly initialized.")


def run(argv: Optional[list[str]] = None,
        confirmations: Optional[ConfirmationProvider] = None) -> int:
    """Run the tool and return the process exit status."""
    args = build_parser().parse_args(argv)
    log_path = None
    try:
        require_root()

        log_path = log_file_path(args.log_dir, LOG_FILE_TEMPLATE)
        try:
            open_log_file(log_path)
        except OSError as exc:
            log_error(f"Cannot write to {log_path}: {exc}. Check permissions.")
            return 1

        show_banner()
        log_info(f"=== NVIDIA NVENC Installer started on {datetime.now():%c} ===")
        log_info(f"Logging to {log_path}")

        install(confirmations or TerminalConfirmations())
        return 0

    except SetupError as exc:
        for line in str(exc).splitlines():
            log_error(line)
        if exc.hint:
            log_info(exc.hint)
        if log_path:
            log_info(f"Check the log at {log_path} for details.")
        return 1
    except KeyboardInterrupt:
        log_plain()
        log_info("Cancelled.")
        return 1
    except Exception as e:
        log_error(f"Installation failed: {str(e)}")
        log_error(f"Traceback: {traceback.format_exc()}")
        return 1
    finally:
        close_log_file()


def main() -> None:
    """Main installation process."""
    sys.exit(run())


if __name__ == "__main__":
    main()
