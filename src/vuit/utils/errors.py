# vuit/utils/errors.py
"""Exception hierarchy for vuit.

Every error the session can recover from derives from `VuitError` and carries
a short `user_message()` suitable for the status line. Only `TerminalInitError`
is fatal; it is raised before the main loop starts and turns into exit code 1.
"""

from typing import Optional, Sequence


class VuitError(Exception):
    """Base exception for vuit errors."""

    def user_message(self) -> str:
        """Returns a one-line description for the status bar."""
        return str(self)


class ConfigParseError(VuitError):
    """Raised when the configuration file exists but cannot be parsed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Config error in {path}: {reason}")

    def user_message(self) -> str:
        return f"Config error in {self.path} ({self.reason}); using defaults"


class SubprocessSpawnError(VuitError):
    """Raised when an external tool cannot be started (binary missing, not executable)."""

    def __init__(self, command: Sequence[str] | str, reason: str = "not found") -> None:
        self.command = [command] if isinstance(command, str) else list(command)
        self.reason = reason
        program = self.command[0] if self.command else "?"
        super().__init__(f"Cannot start '{program}': {reason}")


class SubprocessRuntimeError(VuitError):
    """Raised when an external tool started but exited with a failure status."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stderr: str = "",
        partial_output: Optional[list[str]] = None,
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        self.partial_output = partial_output or []
        program = self.command[0] if self.command else "?"
        detail = self.stderr.splitlines()[0] if self.stderr else f"exit status {returncode}"
        super().__init__(f"'{program}' failed: {detail}")


class TerminalInitError(VuitError):
    """Raised when the terminal cannot be put into raw/alternate-screen mode."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Cannot initialize terminal: {reason}")


class FilesystemAccessError(VuitError):
    """Raised (or collected) when a directory cannot be read during the fallback walk."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}")
