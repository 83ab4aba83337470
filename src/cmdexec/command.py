"""Runnable commands and the factory that prepares them.

A factory binds a cancellation context, a program and its arguments into a
Runnable without launching anything. Every ``run*`` call on the Runnable
launches a fresh process; nothing is cached between calls, so one Runnable
can be run any number of times, concurrently or not.

Example:
    factory = new_exec_command_factory()
    cmd = factory.command(Context.background(), "git", "rev-parse", "HEAD")
    head = await cmd.run_stdout_str(trim_right("\\n"))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from .config import get_config
from .context import Context
from .modifiers import PostModifier, apply_modifiers
from .runtime import ProcessResult, ProcessRunner, ProcessSpec, Sink, Stream

__all__ = [
    "CommandFactory",
    "CommandRequest",
    "ExecCommand",
    "ExecCommandFactory",
    "Runnable",
    "new_exec_command_factory",
]

logger = logging.getLogger(__name__)


class Runnable(Protocol):
    """A prepared, not yet executed external command."""

    async def run(self) -> None: ...

    async def run_stdout(self) -> bytes: ...

    async def run_stdout_str(self, *modifiers: PostModifier) -> str: ...

    async def run_combined(self) -> bytes: ...

    async def run_combined_str(self) -> str: ...

    async def run_to_writer(
        self, stdout: Sink | None = None, stderr: Sink | None = None
    ) -> None: ...


class CommandFactory(Protocol):
    """Builds Runnables; building never launches a process."""

    def command(self, ctx: Context, program: str, *args: str) -> Runnable: ...


@dataclass(frozen=True)
class CommandRequest:
    """Immutable description of one command.

    Attributes:
        context: Cancellation context governing every launch
        program: Program name (looked up on PATH) or path
        args: Arguments, passed to the program exactly in this order
    """

    context: Context
    program: str
    args: tuple[str, ...] = ()

    @property
    def argv(self) -> tuple[str, ...]:
        return (self.program, *self.args)


class ExecCommand:
    """Runnable backed by real OS processes."""

    def __init__(self, request: CommandRequest) -> None:
        self.request = request

    async def _execute(self, stdout: Stream | Sink, stderr: Stream | Sink) -> ProcessResult:
        spec = ProcessSpec(argv=self.request.argv, stdout=stdout, stderr=stderr)
        logger.debug(f"Executing: {' '.join(spec.argv)}")
        return await ProcessRunner().run(spec, self.request.context)

    async def run(self) -> None:
        """Run with all output discarded.

        Raises:
            LaunchError: The program could not be started
            ExitError: Non-zero exit status
            ContextError: The bound context was cancelled or expired
        """
        await self._execute(Stream.DISCARD, Stream.DISCARD)

    async def run_stdout(self) -> bytes:
        """Run and return standard output.

        Standard error is not returned. On a non-zero exit it is attached to
        the raised ExitError as ``stderr``, keeping at most the first and last
        32 KiB.
        """
        result = await self._execute(Stream.CAPTURE, Stream.COLLECT)
        return result.stdout

    async def run_stdout_str(self, *modifiers: PostModifier) -> str:
        """Run, decode standard output, and fold it through ``modifiers``.

        Raises:
            ModifierChainError: A modifier failed; ``partial`` holds the value
                produced before it
        """
        data = await self.run_stdout()
        return apply_modifiers(get_config().decode(data), modifiers)

    async def run_combined(self) -> bytes:
        """Run and return stdout and stderr interleaved as the OS delivered them."""
        result = await self._execute(Stream.CAPTURE, Stream.STDOUT)
        return result.stdout

    async def run_combined_str(self) -> str:
        data = await self.run_combined()
        return get_config().decode(data)

    async def run_to_writer(
        self, stdout: Sink | None = None, stderr: Sink | None = None
    ) -> None:
        """Run, streaming output into the given sinks as it is produced.

        A missing sink discards that stream. Passing the same sink for both
        streams makes the child write both into one pipe.
        """
        await self._execute(
            Stream.DISCARD if stdout is None else stdout,
            Stream.DISCARD if stderr is None else stderr,
        )

    def __repr__(self) -> str:
        return f"ExecCommand(argv={list(self.request.argv)!r})"


class ExecCommandFactory:
    """Stateless factory of ExecCommand instances."""

    def command(self, ctx: Context, program: str, *args: str) -> Runnable:
        return ExecCommand(CommandRequest(context=ctx, program=program, args=tuple(args)))


def new_exec_command_factory() -> CommandFactory:
    return ExecCommandFactory()
