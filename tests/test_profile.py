"""
Tests for host profiling: os-release, lspci, display session, Secure Boot.
"""

import pytest

from nvenc_driver_setup.errors import InsufficientPrivilege, UnsupportedOsVersion
from nvenc_driver_setup.system import profile as host
from nvenc_driver_setup.system.profile import (
    SecureBootState,
    check_supported_os,
    detect_headless,
    parse_mokutil_state,
    parse_nvidia_gpu,
    parse_os_release,
    parse_os_version,
    read_efi_secure_boot,
    require_root,
)

from conftest import make_profile

OS_RELEASE = """\
PRETTY_NAME="Ubuntu 22.04.4 LTS"
NAME="Ubuntu"
VERSION_ID="22.04"
ID=ubuntu
ID_LIKE=debian
# comment
"""

LSPCI_OUTPUT = """\
00:02.0 VGA compatible controller [0300]: Intel Corporation UHD Graphics 630 [8086:3e92]
01:00.0 VGA compatible controller [0300]: NVIDIA Corporation GA102 [GeForce RTX 3080] [10de:2206] (rev a1)
01:00.1 Audio device [0403]: NVIDIA Corporation GA102 High Definition Audio Controller [10de:1aef] (rev a1)
"""


class TestOsRelease:

    def test_parse(self):
        info = parse_os_release(OS_RELEASE)
        assert info["ID"] == "ubuntu"
        assert info["VERSION_ID"] == "22.04"
        assert info["PRETTY_NAME"] == "Ubuntu 22.04.4 LTS"

    def test_read_missing_file(self, tmp_path):
        assert host.read_os_release(str(tmp_path / "nope")) == {}

    @pytest.mark.parametrize("text, version", [
        ("22.04", (22, 4)),
        ("20.04", (20, 4)),
        ("24.10", (24, 10)),
        ("12", (12, 0)),
        ("", (0, 0)),
        ("rolling", (0, 0)),
    ])
    def test_parse_version(self, text, version):
        assert parse_os_version(text) == version


class TestSupportedOs:

    def test_accepts_20_04(self):
        check_supported_os(make_profile(os_version=(20, 4)))

    @pytest.mark.parametrize("version", [(18, 4), (19, 10), (20, 0), (0, 0)])
    def test_rejects_older(self, version):
        with pytest.raises(UnsupportedOsVersion):
            check_supported_os(make_profile(os_version=version))

    def test_other_distribution_only_warns(self):
        check_supported_os(make_profile(os_id="debian", os_version=(22, 0)))


class TestPrivilege:

    def test_root(self):
        require_root(euid=0)

    def test_non_root(self):
        with pytest.raises(InsufficientPrivilege):
            require_root(euid=1000)


class TestGpuDetection:

    def test_nvidia_model(self):
        assert parse_nvidia_gpu(LSPCI_OUTPUT) == "GA102 [GeForce RTX 3080] [10de:2206]"

    def test_audio_function_ignored(self):
        output = "01:00.1 Audio device [0403]: NVIDIA Corporation GA102 Audio [10de:1aef]\n"
        assert parse_nvidia_gpu(output) is None

    def test_intel_only(self):
        output = "00:02.0 VGA compatible controller: Intel Corporation UHD Graphics 630\n"
        assert parse_nvidia_gpu(output) is None

    def test_3d_controller(self):
        output = "3b:00.0 3D controller: NVIDIA Corporation TU104GL [Tesla T4] (rev a1)\n"
        assert parse_nvidia_gpu(output) == "TU104GL [Tesla T4]"

    @pytest.mark.parametrize("output", ["", None])
    def test_nothing_listed(self, output):
        assert parse_nvidia_gpu(output) is None

    def test_lspci_failure_means_absent(self, monkeypatch):
        class Result:
            returncode = 127
            stdout = ""

        monkeypatch.setattr(host.subprocess, "run", lambda *a, **kw: Result())
        assert host.detect_nvidia_gpu() is None


class TestHeadless:

    def test_no_session(self):
        assert detect_headless({}) is True

    def test_display_set(self):
        assert detect_headless({"DISPLAY": ":0"}) is False

    def test_wayland_session(self):
        assert detect_headless({"XDG_SESSION_TYPE": "wayland"}) is False

    def test_empty_values_are_headless(self):
        assert detect_headless({"DISPLAY": "", "XDG_SESSION_TYPE": ""}) is True


class TestSecureBoot:

    def test_mokutil_enabled(self):
        assert parse_mokutil_state("SecureBoot enabled\n") is SecureBootState.ENABLED

    def test_mokutil_disabled(self):
        assert parse_mokutil_state("SecureBoot disabled\n") is SecureBootState.DISABLED

    def test_mokutil_non_efi(self):
        assert parse_mokutil_state("EFI variables are not supported on this system\n") \
            is SecureBootState.DISABLED

    def test_efivar_enabled(self, tmp_path):
        (tmp_path / "SecureBoot-8be4df61").write_bytes(b"\x06\x00\x00\x00\x01")
        assert read_efi_secure_boot(str(tmp_path / "SecureBoot-*")) is SecureBootState.ENABLED

    def test_efivar_disabled(self, tmp_path):
        (tmp_path / "SecureBoot-8be4df61").write_bytes(b"\x06\x00\x00\x00\x00")
        assert read_efi_secure_boot(str(tmp_path / "SecureBoot-*")) is SecureBootState.DISABLED

    def test_no_efivar(self, tmp_path):
        assert read_efi_secure_boot(str(tmp_path / "SecureBoot-*")) is SecureBootState.UNKNOWN

    def test_falls_back_to_efivar_without_mokutil(self, monkeypatch):
        monkeypatch.setattr(host, "command_exists", lambda name: False)
        monkeypatch.setattr(host, "read_efi_secure_boot", lambda: SecureBootState.UNKNOWN)
        assert host.detect_secure_boot() is SecureBootState.UNKNOWN


class TestBuildHostProfile:

    def test_assembles_probes(self, monkeypatch, tmp_path):
        monkeypatch.setattr(host, "read_os_release", lambda: parse_os_release(OS_RELEASE))
        monkeypatch.setattr(host, "run_command", lambda *a, **kw: "6.5.0-41-generic")
        monkeypatch.setattr(host, "detect_nvidia_gpu", lambda: "GA102 [GeForce RTX 3080]")
        monkeypatch.setattr(host, "detect_secure_boot", lambda: SecureBootState.ENABLED)
        monkeypatch.delenv("DISPLAY", raising=False)
        monkeypatch.delenv("XDG_SESSION_TYPE", raising=False)

        result = host.build_host_profile()

        assert result.os_id == "ubuntu"
        assert result.os_version == (22, 4)
        assert result.gpu_present is True
        assert result.headless is True
        assert result.secure_boot is SecureBootState.ENABLED
        assert result.kernel == "6.5.0-41-generic"

    def test_missing_gpu(self, monkeypatch):
        monkeypatch.setattr(host, "read_os_release", lambda: {})
        monkeypatch.setattr(host, "run_command", lambda *a, **kw: None)
        monkeypatch.setattr(host, "detect_nvidia_gpu", lambda: None)
        monkeypatch.setattr(host, "detect_secure_boot", lambda: SecureBootState.UNKNOWN)

        result = host.build_host_profile()

        assert result.gpu_present is False
        assert result.gpu_model == ""
        assert result.os_version == (0, 0)
        assert result.kernel == ""
