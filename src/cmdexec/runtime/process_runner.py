"""Process runner with context-bound cancellation and reliable termination.

cmdexec runtime module v0.1.0

This module provides:
- Argv-only process launch (no shell), stdin always /dev/null
- Per-stream routing: capture, discard, merge into stdout, or stream to a sink
- Bounded collection that keeps only the head and tail of a stream
- Context binding: cancellation or deadline expiry terminates the child
- Reliable termination with graceful shutdown (SIGTERM -> timeout -> SIGKILL)
- Cancel-safe cleanup using asyncio.shield

Key design points:
- POSIX: start_new_session=True so the whole process group can be signalled
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- Sinks are drained chunk by chunk; a failing sink never blocks the child
"""

from __future__ import annotations

import asyncio
import codecs
import enum
import io
import logging
import math
import os
import signal
import subprocess
import sys
from dataclasses import dataclass, field
from typing import Any, Protocol, Union

import anyio

from ..config import Config, get_config
from ..context import Context
from ..errors import (
    ContextCancelled,
    DeadlineExceeded,
    ExitError,
    LaunchError,
    SinkWriteError,
)

__all__ = [
    "ProcessResult",
    "ProcessRunner",
    "ProcessSpec",
    "Sink",
    "Stream",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

CHUNK_SIZE = 64 * 1024

# Bytes kept at each end of a bounded capture
COLLECT_LIMIT = 32 * 1024


class Sink(Protocol):
    """Anything with a ``write`` method; binary unless it is an ``io.TextIOBase``."""

    def write(self, data: Any) -> Any: ...


class Stream(enum.Enum):
    """Routing of one output stream of the child."""

    CAPTURE = "capture"
    COLLECT = "collect"  # bounded capture: only the head and tail are kept
    DISCARD = "discard"
    STDOUT = "stdout"  # stderr only: share the stdout pipe


Target = Union[Stream, Sink]


@dataclass(frozen=True)
class ProcessSpec:
    """Specification for a subprocess to run.

    Attributes:
        argv: Program followed by its arguments, passed without a shell
        stdout: Routing of standard output
        stderr: Routing of standard error
    """

    argv: tuple[str, ...]
    stdout: Target = Stream.DISCARD
    stderr: Target = Stream.DISCARD

    @property
    def program(self) -> str:
        return self.argv[0]


@dataclass
class ProcessResult:
    """Outcome of a finished process.

    Attributes:
        returncode: Exit status (negative = killed by signal on POSIX)
        stdout: Captured standard output (empty unless captured)
        stderr: Captured standard error (empty unless captured)
    """

    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""


class _TextSink:
    """Adapts a text sink to the byte chunks read from a pipe."""

    def __init__(self, sink: io.TextIOBase, config: Config) -> None:
        self._sink = sink
        self._decoder = codecs.getincrementaldecoder(config.encoding)(
            errors=config.decode_errors
        )

    def write(self, data: bytes) -> None:
        text = self._decoder.decode(data)
        if text:
            self._sink.write(text)

    def close(self) -> None:
        text = self._decoder.decode(b"", final=True)
        if text:
            self._sink.write(text)


class _PrefixSuffixBuffer:
    """Keeps the first and last ``limit`` bytes written and counts the rest.

    Example:
        buf = _PrefixSuffixBuffer(limit=4)
        buf.write(b"abcdefghij")
        buf.getvalue()  # b"abcd\\n... omitting 2 bytes ...\\nghij"
    """

    def __init__(self, limit: int = COLLECT_LIMIT) -> None:
        self._limit = limit
        self._prefix = bytearray()
        self._suffix = bytearray()
        self._skipped = 0

    def write(self, data: bytes) -> int:
        size = len(data)
        room = self._limit - len(self._prefix)
        if room > 0:
            self._prefix += data[:room]
            data = data[room:]
        if data:
            self._suffix += data
            overflow = len(self._suffix) - self._limit
            if overflow > 0:
                del self._suffix[:overflow]
                self._skipped += overflow
        return size

    def getvalue(self) -> bytes:
        if self._skipped == 0:
            return bytes(self._prefix + self._suffix)
        marker = f"\n... omitting {self._skipped} bytes ...\n".encode()
        return bytes(self._prefix) + marker + bytes(self._suffix)


@dataclass
class _Reader:
    """One pipe of the child and where its bytes go."""

    name: str
    sink: Any
    error: BaseException | None = field(default=None)


def _fileno(sink: Any) -> int | None:
    """Return the OS file descriptor behind ``sink``, or None for in-memory sinks."""
    fileno = getattr(sink, "fileno", None)
    if fileno is None:
        return None
    try:
        return fileno()
    except (OSError, ValueError):
        # io.UnsupportedOperation is both
        return None


@dataclass
class ProcessRunner:
    """Runs one process per call, bound to a cancellation context.

    Example:
        runner = ProcessRunner()
        spec = ProcessSpec(argv=("git", "status"), stdout=Stream.CAPTURE)
        result = await runner.run(spec, Context.background())
    """

    config: Config | None = None

    @property
    def _config(self) -> Config:
        return self.config if self.config is not None else get_config()

    async def run(self, spec: ProcessSpec, context: Context) -> ProcessResult:
        """Run the process to completion.

        Args:
            spec: Process specification
            context: Cancellation context governing the process lifetime

        Returns:
            ProcessResult with a zero returncode

        Raises:
            ContextError: The context was done before launch, or fired while running
            LaunchError: The program could not be started
            ExitError: The process exited with a non-zero status
            SinkWriteError: A caller-supplied sink raised while being written
        """
        context.raise_if_done()

        config = self._config
        stdout_arg, stdout_reader = self._route("stdout", spec.stdout, config)
        if spec.stderr is Stream.STDOUT or (
            spec.stderr is spec.stdout and not isinstance(spec.stdout, Stream)
        ):
            # A sink shared by both streams gets one pipe, so its writes never race
            stderr_arg, stderr_reader = subprocess.STDOUT, None
        else:
            stderr_arg, stderr_reader = self._route("stderr", spec.stderr, config)

        process = await self._spawn(spec, stdout_arg, stderr_arg, config)
        readers = [r for r in (stdout_reader, stderr_reader) if r is not None]

        remaining = context.remaining()
        deadline = math.inf if remaining is None else anyio.current_time() + remaining

        try:
            with anyio.CancelScope(deadline=deadline) as scope:
                remove_callback = context.add_done_callback(scope.cancel)
                try:
                    await self._communicate(process, readers)
                finally:
                    remove_callback()
        finally:
            await self._safe_cleanup(process, config)
            for reader in readers:
                if isinstance(reader.sink, _TextSink) and reader.error is None:
                    try:
                        reader.sink.close()
                    except Exception as e:
                        logger.debug(f"Sink for {reader.name} failed on flush: {e}")
                        reader.error = e

        if scope.cancelled_caught:
            err = context.err() or (
                DeadlineExceeded() if remaining is not None else ContextCancelled()
            )
            logger.debug(f"Subprocess pid={process.pid} stopped by context: {err}")
            raise err

        returncode = process.returncode
        if returncode is None:
            returncode = await process.wait()
        stdout = self._captured(stdout_reader)
        stderr = self._captured(stderr_reader)
        if returncode != 0:
            raise ExitError(spec.program, returncode, stderr=stderr)

        for reader in readers:
            if reader.error is not None:
                raise SinkWriteError(reader.name) from reader.error
        return ProcessResult(returncode=returncode, stdout=stdout, stderr=stderr)

    def _route(
        self, name: str, target: Target, config: Config
    ) -> tuple[int, _Reader | None]:
        """Translate a stream target into a subprocess argument and optional reader."""
        if target is Stream.DISCARD:
            return subprocess.DEVNULL, None
        if target is Stream.CAPTURE:
            return subprocess.PIPE, _Reader(name, io.BytesIO())
        if target is Stream.COLLECT:
            return subprocess.PIPE, _Reader(name, _PrefixSuffixBuffer())
        if target is Stream.STDOUT:
            raise ValueError("Stream.STDOUT is only valid for stderr")

        fd = _fileno(target)
        if fd is not None:
            flush = getattr(target, "flush", None)
            if flush is not None:
                flush()
            return fd, None
        if isinstance(target, io.TextIOBase):
            return subprocess.PIPE, _Reader(name, _TextSink(target, config))
        return subprocess.PIPE, _Reader(name, target)

    async def _spawn(
        self,
        spec: ProcessSpec,
        stdout: int,
        stderr: int,
        config: Config,
    ) -> asyncio.subprocess.Process:
        kwargs = self._build_subprocess_kwargs(config)
        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stdout,
                stderr=stderr,
                **kwargs,
            )
        except OSError as e:
            raise LaunchError(spec.program, spec.argv[1:], e.strerror or str(e)) from e
        except ValueError as e:
            # e.g. embedded null byte in an argument
            raise LaunchError(spec.program, spec.argv[1:], str(e)) from e

        logger.debug(f"Started subprocess pid={process.pid} argv={spec.program}")
        return process

    def _build_subprocess_kwargs(self, config: Config) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs."""
        kwargs: dict[str, Any] = {}
        if not config.new_session:
            return kwargs

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True
        return kwargs

    async def _communicate(
        self,
        process: asyncio.subprocess.Process,
        readers: list[_Reader],
    ) -> None:
        """Drain every piped stream to its sink, then wait for the exit status."""
        pipes = {"stdout": process.stdout, "stderr": process.stderr}
        async with anyio.create_task_group() as tg:
            for reader in readers:
                stream = pipes[reader.name]
                if stream is not None:
                    tg.start_soon(self._pump, stream, reader)
        await process.wait()
        logger.debug(
            f"Subprocess completed pid={process.pid} returncode={process.returncode}"
        )

    async def _pump(self, stream: asyncio.StreamReader, reader: _Reader) -> None:
        """Copy a pipe into its sink until EOF.

        After the first failing write the rest of the pipe is read and dropped,
        so the child never blocks on a full pipe.
        """
        while True:
            chunk = await stream.read(CHUNK_SIZE)
            if not chunk:
                break
            if reader.error is not None:
                continue
            try:
                reader.sink.write(chunk)
            except Exception as e:
                logger.debug(f"Sink for {reader.name} failed: {e}")
                reader.error = e

    @staticmethod
    def _captured(reader: _Reader | None) -> bytes:
        if reader is not None and isinstance(
            reader.sink, (io.BytesIO, _PrefixSuffixBuffer)
        ):
            return reader.sink.getvalue()
        return b""

    async def _safe_cleanup(
        self,
        process: asyncio.subprocess.Process,
        config: Config,
    ) -> None:
        """Terminate the child if it is still running, shielded from cancellation.

        The termination runs in its own task behind asyncio.shield; an outer
        cancellation waits for it to finish before propagating.
        """
        if process.returncode is not None:
            return

        task = asyncio.create_task(self._terminate_process(process, config))
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                logger.debug(f"Double cancel during termination pid={process.pid}")
            raise

    async def _terminate_process(
        self,
        process: asyncio.subprocess.Process,
        config: Config,
    ) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM to the process group (CTRL_BREAK_EVENT on Windows)
        2. Wait up to term_timeout for graceful exit
        3. If still running, send SIGKILL (kill() on Windows)
        4. Wait up to kill_timeout for forced exit
        """
        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            if IS_WINDOWS:
                self._windows_terminate(process, config)
            else:
                self._posix_signal(process, signal.SIGTERM, config)

            try:
                await asyncio.wait_for(process.wait(), timeout=config.term_timeout)
                logger.debug(
                    f"Subprocess terminated gracefully pid={pid} "
                    f"returncode={process.returncode}"
                )
                return
            except asyncio.TimeoutError:
                pass

            logger.debug(f"Force killing subprocess pid={pid}")
            if IS_WINDOWS:
                process.kill()
            else:
                self._posix_signal(process, signal.SIGKILL, config)

            try:
                await asyncio.wait_for(process.wait(), timeout=config.kill_timeout)
                logger.debug(
                    f"Subprocess killed pid={pid} returncode={process.returncode}"
                )
            except asyncio.TimeoutError:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")

    def _posix_signal(
        self,
        process: asyncio.subprocess.Process,
        sig: signal.Signals,
        config: Config,
    ) -> None:
        """Signal the child's process group, or the child alone without a session."""
        if not config.new_session:
            process.send_signal(sig)
            return
        try:
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, sig)
            logger.debug(f"Sent {sig.name} to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to send_signal: {e}")
            process.send_signal(sig)

    def _windows_terminate(
        self,
        process: asyncio.subprocess.Process,
        config: Config,
    ) -> None:
        if not config.new_session:
            process.terminate()
            return
        try:
            os.kill(process.pid, signal.CTRL_BREAK_EVENT)
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={process.pid}")
        except (ProcessLookupError, OSError) as e:
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
            process.terminate()
