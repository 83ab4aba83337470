"""cmdexec exception classes.

cmdexec errors v0.1.0
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "CommandError",
    "LaunchError",
    "ExitError",
    "ContextError",
    "ContextCancelled",
    "DeadlineExceeded",
    "SinkWriteError",
    "ModifierError",
    "UnknownTrimOption",
    "ModifierChainError",
]


class CommandError(Exception):
    """Base class for failures of a command run."""
    pass


class LaunchError(CommandError):
    """The program could not be started (not found, not executable, spawn failure).

    Attributes:
        program: Program name or path that was requested
        argv: Full argument vector that was requested
    """

    def __init__(self, program: str, args: tuple[str, ...] = (), reason: str = "") -> None:
        self.program = program
        self.argv = (program, *args)
        self.reason = reason
        message = f"failed to launch {program!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ExitError(CommandError):
    """The process ran but exited with a failure status.

    Attributes:
        program: Program name or path
        returncode: Exit status; negative values are the terminating signal on POSIX
        stderr: Standard error collected while capturing stdout (may be empty)
    """

    def __init__(self, program: str, returncode: int, stderr: bytes = b"") -> None:
        self.program = program
        self.returncode = returncode
        self.stderr = stderr
        if returncode < 0:
            message = f"{program!r} terminated by signal {-returncode}"
        else:
            message = f"{program!r} exited with status {returncode}"
        super().__init__(message)


class ContextError(CommandError):
    """The bound context ended the run."""
    pass


class ContextCancelled(ContextError):
    """The context was cancelled."""

    def __init__(self, message: str = "context cancelled") -> None:
        super().__init__(message)


class DeadlineExceeded(ContextError):
    """The context deadline passed."""

    def __init__(self, message: str = "context deadline exceeded") -> None:
        super().__init__(message)


class SinkWriteError(CommandError):
    """Writing process output to a caller-supplied sink failed.

    Attributes:
        stream: "stdout" or "stderr"
    """

    def __init__(self, stream: str) -> None:
        self.stream = stream
        super().__init__(f"writing {stream} to sink failed")


class ModifierError(Exception):
    """A post-modifier could not process its input."""
    pass


class UnknownTrimOption(ModifierError, ValueError):
    """Trim modifier configured with an option it does not know.

    Attributes:
        option: The offending option value
        result: Always the empty string
    """

    def __init__(self, option: Any) -> None:
        self.option = option
        self.result = ""
        super().__init__(f"unknown trim option: {option!r}")


class ModifierChainError(CommandError):
    """A modifier in a chain failed; the failure is chained as ``__cause__``.

    Attributes:
        partial: Last successfully produced value (input of the failing modifier)
        index: Position of the failing modifier in the chain
        modifier: The failing modifier
    """

    def __init__(self, partial: str, index: int, modifier: Any) -> None:
        self.partial = partial
        self.index = index
        self.modifier = modifier
        super().__init__(f"post-modifier #{index} ({modifier!r}) failed")
