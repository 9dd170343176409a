"""
Tests for terminal logging duplicated into the log file.
"""

import subprocess
from datetime import datetime

import pytest

from nvenc_driver_setup.utils import logging as setup_logging
from nvenc_driver_setup.utils import system
from nvenc_driver_setup.utils.system import run_command


class TestLogFile:

    def test_path_from_template(self):
        path = setup_logging.log_file_path(
            "/var/log", "nvidia_install_%Y-%m-%d_%H:%M:%S.log",
            now=datetime(2024, 5, 1, 13, 4, 5),
        )
        assert path == "/var/log/nvidia_install_2024-05-01_13:04:05.log"

    def test_lines_duplicated_without_colours(self, tmp_path, capsys):
        path = tmp_path / "install.log"
        setup_logging.open_log_file(str(path))
        setup_logging.log_info("hello")
        setup_logging.log_warn("careful")
        setup_logging.log_error("broken")
        setup_logging.log_plain("menu line")
        setup_logging.close_log_file()

        out = capsys.readouterr().out
        assert "\033[" in out

        text = path.read_text()
        assert "[INFO]  hello\n" in text
        assert "[WARN]  careful\n" in text
        assert "[ERROR] broken\n" in text
        assert "menu line\n" in text
        assert "\033[" not in text

    def test_append_only(self, tmp_path):
        path = tmp_path / "install.log"
        path.write_text("earlier\n")
        setup_logging.open_log_file(str(path))
        setup_logging.log_info("later")
        setup_logging.close_log_file()
        assert path.read_text().startswith("earlier\n")

    def test_no_file_attached(self, capsys):
        setup_logging.log_info("terminal only")
        assert "terminal only" in capsys.readouterr().out


class TestCommandOutput:

    def test_stdout_and_stderr_logged(self, tmp_path, capsys):
        path = tmp_path / "install.log"
        setup_logging.open_log_file(str(path))
        result = run_command("echo Reading package lists; echo 'E: Unable to locate package' >&2",
                             check=False)
        setup_logging.close_log_file()

        assert result.returncode == 0
        out = capsys.readouterr().out
        assert "Reading package lists" in out
        assert "E: Unable to locate package" in out

        text = path.read_text()
        assert "Reading package lists\n" in text
        assert "E: Unable to locate package\n" in text

    def test_failing_command_output_logged(self, tmp_path):
        path = tmp_path / "install.log"
        setup_logging.open_log_file(str(path))
        with pytest.raises(subprocess.CalledProcessError) as excinfo:
            run_command("echo 'dpkg: error processing package' >&2; exit 100")
        setup_logging.close_log_file()

        assert excinfo.value.returncode == 100
        text = path.read_text()
        assert "dpkg: error processing package\n" in text
        assert "Command failed" in text

    def test_apt_install_output_logged(self, tmp_path, monkeypatch):
        commands = []

        def fake_stream(cmd, shell=True, env=None):
            commands.append((cmd, env["DEBIAN_FRONTEND"]))
            setup_logging.log_output("Setting up ffmpeg")
            return 0

        monkeypatch.setattr(system, "stream_command", fake_stream)
        monkeypatch.setattr(system.AptManager, "_update_done", True)

        path = tmp_path / "install.log"
        setup_logging.open_log_file(str(path))
        system.AptManager().install("ffmpeg")
        setup_logging.close_log_file()

        assert commands == [("apt-get install -y ffmpeg", "noninteractive")]
        assert "Setting up ffmpeg\n" in path.read_text()

    def test_apt_install_failure_raises(self, monkeypatch):
        monkeypatch.setattr(system, "stream_command", lambda cmd, shell=True, env=None: 100)
        monkeypatch.setattr(system.AptManager, "_update_done", True)

        with pytest.raises(subprocess.CalledProcessError):
            system.AptManager().install("nvidia-driver-535")
