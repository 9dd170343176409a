"""Logging utilities for NVENC Driver Setup

Every line printed to the terminal is also appended, without colour
codes, to the run's log file once one is opened.
"""

import os
from datetime import datetime
from typing import Optional, TextIO


class Colors:
    """ANSI color codes for terminal output"""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[1;31m'
    GREEN = '\033[1;32m'
    YELLOW = '\033[1;33m'
    BLUE = '\033[1;34m'
    CYAN = '\033[1;36m'


_log_file: Optional[TextIO] = None


def log_file_path(log_dir: str, template: str, now: Optional[datetime] = None) -> str:
    """Build the log file path for this run from a strftime template."""
    now = now or datetime.now()
    return os.path.join(log_dir, now.strftime(template))


def open_log_file(path: str) -> str:
    """Attach an append-only log file.

    Raises:
        OSError: if the file cannot be created or written.
    """
    global _log_file
    close_log_file()
    _log_file = open(path, "a", encoding="utf-8")
    return path


def close_log_file() -> None:
    """Detach and close the current log file, if any."""
    global _log_file
    if _log_file is not None:
        _log_file.close()
        _log_file = None


def _write_log(line: str) -> None:
    if _log_file is None:
        return
    _log_file.write(line + "\n")
    _log_file.flush()


def log_plain(message=""):
    """Print an untagged line (menus, summaries)"""
    print(message)
    _write_log(str(message))


def log_info(message):
    """Log info message in green"""
    print(f"{Colors.GREEN}[INFO]  {message}{Colors.RESET}")
    _write_log(f"[INFO]  {message}")


def log_warn(message):
    """Log warning message in yellow"""
    print(f"{Colors.YELLOW}[WARN]  {message}{Colors.RESET}")
    _write_log(f"[WARN]  {message}")


def log_error(message):
    """Log error message in red"""
    print(f"{Colors.RED}[ERROR] {message}{Colors.RESET}")
    _write_log(f"[ERROR] {message}")


def log_prompt(message):
    """Log prompt message in cyan"""
    print(f"{Colors.CYAN}[INPUT] {message}{Colors.RESET}", end='')
    _write_log(f"[INPUT] {message}")


def log_step(message):
    """Log step message in blue with newline before"""
    print(f"\n{Colors.BLUE}[STEP]  {message}{Colors.RESET}")
    _write_log(f"\n[STEP]  {message}")


def log_success(message):
    """Log success message in bold green"""
    print(f"{Colors.BOLD}{Colors.GREEN}✓ {message}{Colors.RESET}")
    _write_log(f"✓ {message}")


def log_output(line):
    """Echo a line of child-process output as-is"""
    print(line, flush=True)
    _write_log(line)
