"""Error kinds raised during a driver setup run.

Only ``CandidateFailed`` and its subclasses are recoverable: the plan
executor records them and moves on to the next candidate.  Everything
else ends the run with exit status 1.
"""


class SetupError(Exception):
    """Base class for every fatal setup error."""

    hint: str = ""


class InsufficientPrivilege(SetupError):
    hint = "Re-run with sudo or as root."


class UnsupportedOsVersion(SetupError):
    hint = "Ubuntu 20.04 or newer is required."


class NoGpuDetected(SetupError):
    hint = "Check that the NVIDIA GPU is seated and visible in 'lspci'."


class RepositoryUpdateFailed(SetupError):
    hint = "Check your network connection or apt configuration."


class InstallationAborted(SetupError):
    hint = ("Run the tool from a virtual console (CTRL+ALT+F3) "
            "or after stopping the display manager.")


class CandidateFailed(SetupError):
    """A single install candidate failed; the next one may still succeed."""


class PackageInstallFailed(CandidateFailed):
    hint = "Check 'apt-get install' output in the log for broken dependencies."


class DownloadFailed(CandidateFailed):
    hint = ("Check your internet connection or manually download the "
            "driver .run file from https://www.nvidia.com/Download/index.aspx")


class InstallerExecutionFailed(CandidateFailed):
    hint = "See /var/log/nvidia-installer.log for the installer's own report."


class AllCandidatesFailed(SetupError):
    """Every candidate in the plan failed.

    Carries the outcome of each attempt so the operator sees every
    failure reason at once.
    """

    hint = ("Download the driver manually from https://www.nvidia.com/Download/index.aspx, "
            "check your network, and confirm the GPU is detected.")

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        lines = ["All driver installation candidates failed:"]
        for outcome in self.outcomes:
            lines.append(f"  - {outcome.candidate.label}: {outcome.diagnostic}")
        super().__init__("\n".join(lines))
