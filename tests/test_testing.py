"""Fake factory tests.

The fakes stand in for ExecCommandFactory in consumer tests, so they must
follow the same contract without launching processes.
"""

from __future__ import annotations

import io

import pytest

from cmdexec import (
    CommandFactory,
    Context,
    ContextCancelled,
    ExitError,
    LaunchError,
    ModifierChainError,
    TrimModifier,
    trim_both,
)
from cmdexec.testing import FakeCommandFactory, FakeRunnable, ScriptedResult


async def current_branch(factory: CommandFactory, ctx: Context) -> str:
    """Example consumer code that only knows the CommandFactory protocol."""
    return await factory.command(ctx, "git", "branch", "--show-current").run_stdout_str(
        trim_both("\n ")
    )


@pytest.fixture
def factory() -> FakeCommandFactory:
    return FakeCommandFactory()


class TestFakeCommandFactory:
    """Recording and scripting."""

    @pytest.mark.asyncio
    async def test_substitutes_for_real_factory(self, factory: FakeCommandFactory):
        factory.register("git", stdout=b"main\n")
        ctx = Context.background()

        assert await current_branch(factory, ctx) == "main"
        assert len(factory.calls) == 1
        assert factory.calls[0].program == "git"
        assert factory.calls[0].args == ("branch", "--show-current")
        assert factory.calls[0].context is ctx

    @pytest.mark.asyncio
    async def test_unregistered_program_fails_to_launch(self, factory: FakeCommandFactory):
        cmd = factory.command(Context.background(), "missing", "-v")
        with pytest.raises(LaunchError) as exc_info:
            await cmd.run()
        assert exc_info.value.argv == ("missing", "-v")

    @pytest.mark.asyncio
    async def test_scripted_error(self, factory: FakeCommandFactory):
        factory.register("flaky", error=LaunchError("flaky", reason="permission denied"))
        with pytest.raises(LaunchError, match="permission denied"):
            await factory.command(Context.background(), "flaky").run_stdout()

    def test_records_runnables(self, factory: FakeCommandFactory):
        cmd = factory.command(Context.background(), "ls")
        assert factory.runnables == [cmd]
        assert isinstance(cmd, FakeRunnable)
        assert cmd.run_count == 0


class TestFakeRunnable:
    """Run modes of the fake."""

    @pytest.mark.asyncio
    async def test_run_modes(self, factory: FakeCommandFactory):
        factory.register("tool", stdout=b"out", stderr=b"err")
        cmd = factory.command(Context.background(), "tool")

        await cmd.run()
        assert await cmd.run_stdout() == b"out"
        assert await cmd.run_stdout_str() == "out"
        assert await cmd.run_combined() == b"outerr"
        assert await cmd.run_combined_str() == "outerr"
        assert isinstance(cmd, FakeRunnable) and cmd.run_count == 5

    @pytest.mark.asyncio
    async def test_run_to_writer(self, factory: FakeCommandFactory):
        factory.register("tool", stdout=b"out", stderr=b"err")
        out, err = io.BytesIO(), io.BytesIO()
        await factory.command(Context.background(), "tool").run_to_writer(out, err)
        assert out.getvalue() == b"out"
        assert err.getvalue() == b"err"

    @pytest.mark.asyncio
    async def test_run_to_writer_decodes_for_text_sinks(self, factory: FakeCommandFactory):
        factory.register("tool", stdout=b"hi", stderr=b"err")
        out = io.StringIO()
        await factory.command(Context.background(), "tool").run_to_writer(stdout=out)
        assert out.getvalue() == "hi"

    @pytest.mark.asyncio
    async def test_run_to_writer_same_sink_for_both(self, factory: FakeCommandFactory):
        factory.register("tool", stdout=b"out", stderr=b"err")
        sink = io.StringIO()
        await factory.command(Context.background(), "tool").run_to_writer(sink, sink)
        assert sink.getvalue() == "outerr"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, factory: FakeCommandFactory):
        factory.register("tool", stderr=b"nope", returncode=1)
        cmd = factory.command(Context.background(), "tool")
        with pytest.raises(ExitError) as exc_info:
            await cmd.run_stdout()
        assert exc_info.value.stderr == b"nope"
        with pytest.raises(ExitError):
            await cmd.run_combined_str()

    @pytest.mark.asyncio
    async def test_modifier_failure(self, factory: FakeCommandFactory):
        factory.register("tool", stdout=b" x ")
        cmd = factory.command(Context.background(), "tool")
        with pytest.raises(ModifierChainError) as exc_info:
            await cmd.run_stdout_str(trim_both(" "), TrimModifier(8, ""))
        assert exc_info.value.partial == "x"

    @pytest.mark.asyncio
    async def test_cancelled_context(self, factory: FakeCommandFactory):
        factory.register("tool")
        ctx = Context.background().with_cancel()
        cmd = factory.command(ctx, "tool")
        ctx.cancel()
        with pytest.raises(ContextCancelled):
            await cmd.run()
        assert isinstance(cmd, FakeRunnable) and cmd.run_count == 0

    def test_scripted_result_defaults(self):
        assert ScriptedResult() == ScriptedResult(b"", b"", 0, None)
