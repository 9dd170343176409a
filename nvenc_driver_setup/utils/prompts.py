"""Interactive prompt utilities"""

from abc import ABC, abstractmethod

from .logging import log_prompt, log_error, log_plain


def prompt_yes_no(prompt, default='n'):
    """
    Interactive yes/no prompt

    Args:
        prompt: Question to ask
        default: Default answer ('y' or 'n')

    Returns:
        bool: True for yes, False for no
    """
    hint = "[Y/n]" if default.lower() == 'y' else "[y/N]"
    while True:
        log_prompt(f"{prompt} {hint}: ")
        response = input().strip()
        response = response or default

        if response.lower() in ['y', 'yes']:
            return True
        elif response.lower() in ['n', 'no']:
            return False
        else:
            log_error("Please answer yes or no.")


def prompt_input(prompt, default=None, required=True):
    """
    Interactive input prompt

    Args:
        prompt: Question to ask
        default: Default value
        required: Whether input is required

    Returns:
        str: User input or default
    """
    while True:
        default_text = f" (default: {default})" if default else ""
        log_prompt(f"{prompt}{default_text}: ")
        response = input().strip()

        if response:
            return response
        elif default is not None:
            return default
        elif not required:
            return ""
        else:
            log_error("This field is required")


class ConfirmationProvider(ABC):
    """Operator decisions the installer needs while it runs.

    Each method blocks until an answer is available.  Tests substitute
    a provider with canned answers.
    """

    @abstractmethod
    def confirm_gui_install(self) -> bool:
        """Proceed with the vendor installer while a display session is active?"""

    @abstractmethod
    def select_optional_software(self, options: list[str]) -> str:
        """Return the raw menu selection (e.g. "1 3"), empty to skip."""

    @abstractmethod
    def confirm_reboot(self) -> bool:
        """Reboot now that installation finished?"""


class TerminalConfirmations(ConfirmationProvider):
    """Reads answers from stdin, one line per question."""

    def confirm_gui_install(self) -> bool:
        return prompt_yes_no("Proceed with the NVIDIA installer while in GUI?")

    def select_optional_software(self, options: list[str]) -> str:
        for i, option in enumerate(options, 1):
            log_plain(f"  {i}) {option}")
        log_plain()
        return prompt_input(
            "Enter the numbers of the software to install "
            "(e.g. \"1 3\", or press Enter to skip)",
            required=False,
        )

    def confirm_reboot(self) -> bool:
        return prompt_yes_no("Reboot now?")
