"""cmdexec - context-bound external command execution.

Environment variables:
    CMDEXEC_TERM_TIMEOUT: Seconds between SIGTERM and SIGKILL on cancellation (default 2.0)
    CMDEXEC_KILL_TIMEOUT: Seconds to wait after SIGKILL (default 1.0)
    CMDEXEC_ENCODING: Codec for text results (default utf-8)
    CMDEXEC_DECODE_ERRORS: Codec error handler for text results (default replace)
    CMDEXEC_NEW_SESSION: Run children in their own process group (default true)

Usage:
    factory = new_exec_command_factory()
    out = await factory.command(Context.background(), "uname", "-r").run_stdout_str(
        trim_right("\\n")
    )
"""

__version__ = "0.1.0"

from .command import (
    CommandFactory,
    CommandRequest,
    ExecCommand,
    ExecCommandFactory,
    Runnable,
    new_exec_command_factory,
)
from .context import Context
from .errors import (
    CommandError,
    ContextCancelled,
    ContextError,
    DeadlineExceeded,
    ExitError,
    LaunchError,
    ModifierChainError,
    ModifierError,
    SinkWriteError,
    UnknownTrimOption,
)
from .modifiers import (
    PostModifier,
    TrimModifier,
    TrimOption,
    apply_modifiers,
    trim_both,
    trim_left,
    trim_right,
)

__all__ = [
    "__version__",
    "CommandError",
    "CommandFactory",
    "CommandRequest",
    "Context",
    "ContextCancelled",
    "ContextError",
    "DeadlineExceeded",
    "ExecCommand",
    "ExecCommandFactory",
    "ExitError",
    "LaunchError",
    "ModifierChainError",
    "ModifierError",
    "PostModifier",
    "Runnable",
    "SinkWriteError",
    "TrimModifier",
    "TrimOption",
    "UnknownTrimOption",
    "apply_modifiers",
    "new_exec_command_factory",
    "trim_both",
    "trim_left",
    "trim_right",
]
