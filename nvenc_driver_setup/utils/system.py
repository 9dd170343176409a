"""System utilities for command execution and package management"""

import os
import subprocess

from .logging import log_info, log_error, log_output


def stream_command(cmd, shell=True, env=None):
    """
    Run a command, echoing its merged stdout/stderr line by line

    Every line goes to the terminal and to the run's log file.

    Returns:
        int: the command's exit status

    Raises:
        OSError: if the command cannot be started
    """
    process = subprocess.Popen(
        cmd, shell=shell, env=env,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
        text=True, errors="replace",
    )
    with process:
        for line in process.stdout:
            log_output(line.rstrip("\n"))
    return process.returncode


def run_command(cmd, shell=True, check=True, capture_output=False):
    """
    Execute a system command with logging

    Args:
        cmd: Command to execute (string or list)
        shell: Whether to use shell
        check: Whether to raise exception on failure
        capture_output: Whether to capture and return output

    Returns:
        CompletedProcess object or output string if capture_output=True
    """
    log_info(f"Running: {cmd}")

    try:
        if capture_output:
            result = subprocess.run(cmd, shell=shell, check=check,
                                    capture_output=True, text=True,
                                    stdin=subprocess.DEVNULL)
            return result.stdout.strip()
        else:
            returncode = stream_command(cmd, shell=shell)
            if check and returncode != 0:
                raise subprocess.CalledProcessError(returncode, cmd)
            return subprocess.CompletedProcess(cmd, returncode)
    except subprocess.CalledProcessError:
        log_error(f"Command failed: {cmd}")
        if check:
            raise
        return None


def command_exists(name: str) -> bool:
    """Check whether an executable is on PATH."""
    result = subprocess.run(
        f"command -v {name}", shell=True, capture_output=True, text=True,
    )
    return result.returncode == 0


class AptManager:
    """Manages apt operations with caching"""

    _update_done: bool = False

    def update(self, force: bool = False):
        """Update apt cache if not already done"""
        if force or not AptManager._update_done:
            run_command("apt-get update -y")
            AptManager._update_done = True

    @classmethod
    def reset_cache(cls):
        """Reset the update cache so the next update() call re-runs apt-get update.

        Call this after adding new repositories so packages from
        those repos can be discovered.
        """
        cls._update_done = False

    def install(self, *packages):
        """Install packages using apt without interactive prompts.

        Raises:
            subprocess.CalledProcessError: if apt-get exits non-zero.
        """
        self.update()
        package_list = ' '.join(packages)
        env = os.environ.copy()
        env['DEBIAN_FRONTEND'] = 'noninteractive'

        cmd = f"apt-get install -y {package_list}"
        log_info(f"Running: {cmd}")
        returncode = stream_command(cmd, env=env)
        if returncode != 0:
            raise subprocess.CalledProcessError(returncode, cmd)

    def add_repository(self, repository: str):
        """Enable a component or PPA with add-apt-repository"""
        run_command(f"add-apt-repository -y {repository}")
        AptManager.reset_cache()

    def candidate_version(self, package: str) -> str:
        """Return raw 'apt-cache policy' output for a package (may be empty)."""
        output = run_command(
            f"apt-cache policy {package} 2>/dev/null",
            capture_output=True, check=False,
        )
        return output or ""


def get_kernel_version():
    """Get current kernel version"""
    return run_command("uname -r", capture_output=True).strip()


def is_module_loaded(module: str, proc_modules: str = "/proc/modules") -> bool:
    """Check whether a kernel module is currently loaded."""
    try:
        with open(proc_modules, "r") as fh:
            for line in fh:
                if line.split(" ", 1)[0] == module:
                    return True
    except OSError:
        pass
    return False


def reboot():
    """Reboot the machine"""
    log_info("Rebooting system...")
    os.system("reboot")
