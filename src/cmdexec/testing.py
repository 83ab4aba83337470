"""In-memory test doubles for code that depends on a CommandFactory.

Example:
    factory = FakeCommandFactory()
    factory.register("git", stdout=b"main\\n")

    branch = await current_branch(factory)   # code under test
    assert factory.calls[0].args == ("branch", "--show-current")
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field

from .command import CommandRequest, Runnable
from .config import get_config
from .context import Context
from .errors import CommandError, ExitError, LaunchError
from .modifiers import PostModifier, apply_modifiers
from .runtime import Sink

__all__ = ["FakeCommandFactory", "FakeRunnable", "ScriptedResult"]


@dataclass(frozen=True)
class ScriptedResult:
    """What a fake program "prints" and how it exits.

    Attributes:
        stdout: Bytes written to standard output
        stderr: Bytes written to standard error
        returncode: Exit status; non-zero raises ExitError
        error: Exception raised instead of running (e.g. a LaunchError)
    """

    stdout: bytes = b""
    stderr: bytes = b""
    returncode: int = 0
    error: CommandError | None = None


def _emit(sink: Sink, data: bytes) -> None:
    """Write ``data`` the way the real runner would: decoded for text sinks."""
    if not data:
        return
    if isinstance(sink, io.TextIOBase):
        sink.write(get_config().decode(data))
    else:
        sink.write(data)


class FakeRunnable:
    """Runnable that replays a ScriptedResult without touching the OS."""

    def __init__(self, request: CommandRequest, script: ScriptedResult | None) -> None:
        self.request = request
        self.script = script
        self.run_count = 0

    def _launch(self) -> ScriptedResult:
        self.request.context.raise_if_done()
        self.run_count += 1
        if self.script is None:
            raise LaunchError(self.request.program, self.request.args, "executable file not found")
        if self.script.error is not None:
            raise self.script.error
        return self.script

    def _check(self, script: ScriptedResult, stderr: bytes = b"") -> None:
        if script.returncode != 0:
            raise ExitError(self.request.program, script.returncode, stderr=stderr)

    async def run(self) -> None:
        self._check(self._launch())

    async def run_stdout(self) -> bytes:
        script = self._launch()
        self._check(script, stderr=script.stderr)
        return script.stdout

    async def run_stdout_str(self, *modifiers: PostModifier) -> str:
        data = await self.run_stdout()
        return apply_modifiers(get_config().decode(data), modifiers)

    async def run_combined(self) -> bytes:
        script = self._launch()
        self._check(script)
        return script.stdout + script.stderr

    async def run_combined_str(self) -> str:
        return get_config().decode(await self.run_combined())

    async def run_to_writer(
        self, stdout: Sink | None = None, stderr: Sink | None = None
    ) -> None:
        script = self._launch()
        if stdout is not None and stdout is stderr:
            _emit(stdout, script.stdout + script.stderr)
        else:
            if stdout is not None:
                _emit(stdout, script.stdout)
            if stderr is not None:
                _emit(stderr, script.stderr)
        self._check(script)


@dataclass
class FakeCommandFactory:
    """CommandFactory that records requests and hands out FakeRunnables.

    Attributes:
        scripts: Scripted results keyed by program name
        calls: Every request built, in order
        runnables: Every FakeRunnable handed out, in order
    """

    scripts: dict[str, ScriptedResult] = field(default_factory=dict)
    calls: list[CommandRequest] = field(default_factory=list)
    runnables: list[FakeRunnable] = field(default_factory=list)

    def register(
        self,
        program: str,
        stdout: bytes = b"",
        stderr: bytes = b"",
        returncode: int = 0,
        error: CommandError | None = None,
    ) -> None:
        """Script the behaviour of ``program``; unregistered programs fail to launch."""
        self.scripts[program] = ScriptedResult(
            stdout=stdout, stderr=stderr, returncode=returncode, error=error
        )

    def command(self, ctx: Context, program: str, *args: str) -> Runnable:
        request = CommandRequest(context=ctx, program=program, args=tuple(args))
        self.calls.append(request)
        runnable = FakeRunnable(request, self.scripts.get(program))
        self.runnables.append(runnable)
        return runnable
