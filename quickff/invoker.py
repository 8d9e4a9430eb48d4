"""Runs the external executable with piped stdin/stdout."""

import asyncio
import inspect
import logging
from typing import Any, AsyncIterator, BinaryIO, Callable, List, Optional, Sequence, Union

from .config import FALLBACK_EXECUTABLE, InvokerConfig, get_default_executable_path
from .diagnostics import DiagnosticStream
from .logging_setup import ensure_console_logging
from .models import (
    INPUT_FLAG,
    STDIN_PIPE,
    STDOUT_PIPE,
    BufferInput,
    ExitStatus,
    FilePathInput,
    FilePathOutput,
    InvocationRequest,
    MemoryOutput,
)

logger = logging.getLogger(__name__)

# Fragmented MP4 with an empty moov atom can be written without seeking back
FRAGMENT_FLAGS = ["-movflags", "frag_keyframe+empty_moov"]


def build_command(request: InvocationRequest) -> List[str]:
    """Assemble the argument list passed to the executable.

    Stream and in-memory outputs cannot be seeked, so the fragmentation flags
    are placed ahead of the caller's arguments for them.
    """
    arguments = list(request.arguments)
    if not isinstance(request.output, FilePathOutput):
        arguments = FRAGMENT_FLAGS + arguments
    return [INPUT_FLAG, STDIN_PIPE, *arguments, STDOUT_PIPE]


async def _read_chunk(handle: Any, size: int) -> bytes:
    if isinstance(handle, asyncio.StreamReader):
        return await handle.read(size)
    # Plain file objects block, keep them off the event loop
    return await asyncio.to_thread(handle.read, size)


async def _write_chunk(handle: Any, chunk: bytes) -> None:
    if isinstance(handle, asyncio.StreamWriter):
        handle.write(chunk)
        await handle.drain()
    else:
        await asyncio.to_thread(handle.write, chunk)


class Invocation:
    """A running external process together with its stdio pumps."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        request: InvocationRequest,
        command: List[str],
        chunk_size: int,
        output_file: Optional[BinaryIO] = None,
    ):
        """Start pumping data for a freshly spawned process.

        Args:
            process: The spawned process, with piped stdin and stdout.
            request: The request the process was spawned for.
            command: Full command line, executable first.
            chunk_size: Read size for every pipe.
            output_file: Already opened destination for file path outputs.
        """
        self.request = request
        self.command = command
        self.diagnostics = DiagnosticStream()

        self._process = process
        self._chunk_size = chunk_size
        self._output_file = output_file

        self._input_task = asyncio.create_task(self._feed_input())
        self._output_task = asyncio.create_task(self._collect_output())
        self._stderr_task = asyncio.create_task(self._read_diagnostics())
        self._completion = asyncio.create_task(self._complete())

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    async def wait(self) -> Union[ExitStatus, bytes]:
        """Wait until the output is fully delivered and the process has exited.

        Returns:
            The collected output for in-memory requests, otherwise the
            process exit status (also for non-zero exits).
        """
        # Shielded so a cancelled waiter does not abandon the pumps
        return await asyncio.shield(self._completion)

    async def _iter_pipe(self, pipe: asyncio.StreamReader) -> AsyncIterator[bytes]:
        while True:
            data = await pipe.read(self._chunk_size)
            if not data:
                break
            yield data

    async def _feed_input(self) -> None:
        """Write the request input into the process stdin, then close it."""
        stdin = self._process.stdin
        source = self.request.input
        try:
            if isinstance(source, BufferInput):
                stdin.write(source.data)
                await stdin.drain()
            elif isinstance(source, FilePathInput):
                with open(source.path, "rb") as f:
                    await self._pump_into(stdin, f)
            else:
                await self._pump_into(stdin, source.handle)
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Process closed its input before all data was written.")
        finally:
            stdin.close()

    async def _pump_into(self, stdin: asyncio.StreamWriter, handle: Any) -> None:
        while True:
            chunk = await _read_chunk(handle, self._chunk_size)
            if not chunk:
                logger.debug("Input stream ended.")
                break
            stdin.write(chunk)
            await stdin.drain()

    async def _collect_output(self) -> Optional[bytes]:
        try:
            return await self._write_output()
        except Exception:
            logger.exception("Failed to deliver process output, discarding the rest.")
            # Keep stdout drained so the process can still exit
            async for _ in self._iter_pipe(self._process.stdout):
                pass
            raise

    async def _write_output(self) -> Optional[bytes]:
        stdout = self._process.stdout
        target = self.request.output

        if isinstance(target, MemoryOutput):
            chunks: List[bytes] = []
            async for chunk in self._iter_pipe(stdout):
                chunks.append(chunk)
            logger.debug(f"Collected {len(chunks)} output chunks.")
            return b"".join(chunks)

        if isinstance(target, FilePathOutput):
            with self._output_file as f:
                async for chunk in self._iter_pipe(stdout):
                    await _write_chunk(f, chunk)
            return None

        handle = target.handle
        async for chunk in self._iter_pipe(stdout):
            await _write_chunk(handle, chunk)
        if isinstance(handle, asyncio.StreamWriter):
            handle.close()
            await handle.wait_closed()
        elif callable(getattr(handle, "flush", None)):
            # Caller owns file-like handles, leave them open
            await asyncio.to_thread(handle.flush)
        return None

    async def _read_diagnostics(self) -> None:
        stderr = self._process.stderr
        try:
            if stderr is None:
                return  # Not verbose, discarded at spawn time
            async for chunk in self._iter_pipe(stderr):
                await self._dispatch_diagnostic(chunk)
        finally:
            self.diagnostics.close()

    async def _dispatch_diagnostic(self, chunk: bytes) -> None:
        handler = self.request.diagnostic_handler
        if handler is None:
            logger.info(chunk.decode("utf-8", errors="replace").rstrip())
        else:
            try:
                result = handler(chunk)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Diagnostic handler raised an exception.")
        self.diagnostics.publish(chunk)

    async def _complete(self) -> Union[ExitStatus, bytes]:
        try:
            output = await self._output_task
        finally:
            # Reap the process even when the output could not be delivered
            try:
                returncode = await self._process.wait()
                await self._stderr_task
            finally:
                await self._settle_input()

        logger.debug(f"Process {self.pid} exited with code {returncode}.")
        if isinstance(self.request.output, MemoryOutput):
            return output
        return ExitStatus.from_returncode(returncode)

    async def _settle_input(self) -> None:
        if not self._input_task.done():
            logger.debug("Process finished before its input ended, stopping input.")
            self._input_task.cancel()
        await asyncio.wait([self._input_task])
        if not self._input_task.cancelled():
            error = self._input_task.exception()
            if error is not None:
                raise error


class Invoker:
    """Spawns the external executable for invocation requests."""

    def __init__(self, config: Optional[InvokerConfig] = None):
        """Initialize the invoker.

        Args:
            config: Invocation configuration. Without an executable path in it,
                the process-wide default is read on every call.
        """
        self.config = config or InvokerConfig()

    def resolve_executable(self, request: InvocationRequest) -> str:
        """Pick the executable: request, then config, then process default."""
        return (
            request.executable_path
            or self.config.executable_path
            or get_default_executable_path()
            or FALLBACK_EXECUTABLE
        )

    async def start(self, request: InvocationRequest) -> Invocation:
        """Spawn the process for a request and start wiring its stdio.

        Subscribe to the returned invocation's diagnostics before the next
        await to receive every chunk.

        Raises:
            OSError: If the output file cannot be created or the process
                cannot be spawned.
        """
        executable = self.resolve_executable(request)
        command = build_command(request)
        command_line = " ".join([executable, *command])

        if request.verbose:
            ensure_console_logging()
            logger.info(f"Verbose setting on. Running command: {command_line}")
        else:
            logger.debug(f"Running command: {command_line}")

        output_file = None
        if isinstance(request.output, FilePathOutput):
            output_file = open(request.output.path, "wb")

        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=(
                    asyncio.subprocess.PIPE
                    if request.verbose
                    else asyncio.subprocess.DEVNULL
                ),
            )
        except OSError as e:
            if output_file is not None:
                output_file.close()
            logger.error(f"Failed to start '{executable}': {e}")
            raise

        logger.debug(f"Started {executable} with PID: {process.pid}")
        return Invocation(
            process,
            request,
            [executable, *command],
            self.config.chunk_size,
            output_file,
        )

    async def invoke(self, request: InvocationRequest) -> Union[ExitStatus, bytes]:
        """Run a request to completion.

        Returns:
            Collected output bytes when the request has no output target,
            otherwise the process exit status.
        """
        invocation = await self.start(request)
        return await invocation.wait()


_default_invoker = Invoker()


async def ff(
    input: Any,
    args: Union[str, Sequence[str]],
    output: Any = None,
    *,
    verbose: bool = False,
    diagnostic_handler: Optional[Callable[[bytes], Any]] = None,
    executable_path: Optional[str] = None,
) -> Union[ExitStatus, bytes]:
    """Run ffmpeg on the given input.

    Args:
        input: Path of the input file, a bytes-like buffer, or a readable
            handle (asyncio.StreamReader or binary file object).
        args: ffmpeg arguments without -i and without the output, as a
            space separated string or a sequence.
        output: Path of the output file, a writable handle, or None to
            collect the output in memory.
        verbose: Surface ffmpeg's stderr.
        diagnostic_handler: Receives raw stderr chunks when verbose. Without
            it the chunks are decoded and logged.
        executable_path: Use this executable instead of the default.

    Returns:
        The collected output when output is None, otherwise the exit status.

    Raises:
        RequestError: If the request is malformed. Nothing is spawned.
        OSError: If ffmpeg cannot be started.
    """
    request = InvocationRequest.build(
        input,
        args,
        output,
        verbose=verbose,
        diagnostic_handler=diagnostic_handler,
        executable_path=executable_path,
    )
    return await _default_invoker.invoke(request)
