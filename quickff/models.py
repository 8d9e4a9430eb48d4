"""Invocation request and result models for quickff."""

import os
from pathlib import Path
from signal import Signals
from typing import Annotated, Any, Callable, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field

# Markers owned by the invoker; callers may not pass their own
INPUT_FLAG = "-i"
STDIN_PIPE = "pipe:0"
STDOUT_PIPE = "pipe:1"


class RequestError(ValueError):
    """Raised for a malformed request, before any process is spawned."""

    pass


class FilePathInput(BaseModel):
    """Input read from a file on disk."""

    kind: Literal["path"] = "path"
    path: Path


class BufferInput(BaseModel):
    """Input held in memory."""

    kind: Literal["buffer"] = "buffer"
    data: bytes


class StreamInput(BaseModel):
    """Input read from a readable handle (asyncio.StreamReader or file object)."""

    kind: Literal["stream"] = "stream"
    handle: Any


class FilePathOutput(BaseModel):
    """Output written to a newly created file."""

    kind: Literal["path"] = "path"
    path: Path


class StreamOutput(BaseModel):
    """Output written to a writable handle (asyncio.StreamWriter or file object)."""

    kind: Literal["stream"] = "stream"
    handle: Any


class MemoryOutput(BaseModel):
    """Output collected in memory and returned as bytes."""

    kind: Literal["memory"] = "memory"


InputSource = Annotated[
    Union[FilePathInput, BufferInput, StreamInput],
    Field(discriminator="kind"),
]

OutputTarget = Annotated[
    Union[FilePathOutput, StreamOutput, MemoryOutput],
    Field(discriminator="kind"),
]


def normalize_arguments(args: Union[str, Sequence[str]]) -> List[str]:
    """Normalize caller arguments to a token list.

    Strings are split on single spaces. Sequences are joined with single spaces
    and split the same way, so tokens containing spaces do not survive intact
    and repeated spaces produce empty tokens.
    """
    if isinstance(args, str):
        joined = args
    else:
        joined = " ".join(str(arg) for arg in args)
    return joined.split(" ")


def resolve_input(value: Any) -> InputSource:
    """Select the input variant for a caller-supplied value.

    Checked in order: path, buffer, readable handle.

    Raises:
        RequestError: If the value matches no variant.
    """
    if isinstance(value, (str, os.PathLike)):
        return FilePathInput(path=Path(value))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BufferInput(data=bytes(value))
    if callable(getattr(value, "read", None)):
        return StreamInput(handle=value)
    raise RequestError(f"Unsupported input type: {type(value).__name__}")


def resolve_output(value: Any) -> OutputTarget:
    """Select the output variant for a caller-supplied value.

    An empty path counts as no output and collects in memory.

    Raises:
        RequestError: If the value matches no variant.
    """
    if value is None or (isinstance(value, (str, os.PathLike)) and not os.fspath(value)):
        return MemoryOutput()
    if isinstance(value, (str, os.PathLike)):
        return FilePathOutput(path=Path(value))
    if callable(getattr(value, "write", None)):
        return StreamOutput(handle=value)
    raise RequestError(f"Unsupported output type: {type(value).__name__}")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, os.PathLike)):
        return not os.fspath(value)
    if isinstance(value, (list, tuple)):
        return not value
    return False


class InvocationRequest(BaseModel):
    """One call of the external executable."""

    input: InputSource
    arguments: List[str]
    output: OutputTarget = Field(default_factory=MemoryOutput)
    verbose: bool = False
    diagnostic_handler: Optional[Callable[[bytes], Any]] = None
    executable_path: Optional[str] = None

    @classmethod
    def build(
        cls,
        input: Any,
        args: Union[str, Sequence[str], None],
        output: Any = None,
        *,
        verbose: bool = False,
        diagnostic_handler: Optional[Callable[[bytes], Any]] = None,
        executable_path: Optional[str] = None,
    ) -> "InvocationRequest":
        """Validate caller values and resolve the input/output variants.

        Args:
            input: File path, bytes-like buffer or readable handle.
            args: Arguments for the executable, as a space separated string
                or a sequence.
            output: File path, writable handle, or None to collect in memory.
            verbose: Whether diagnostic output is surfaced.
            diagnostic_handler: Receives raw diagnostic chunks when verbose.
            executable_path: Overrides the configured executable.

        Raises:
            RequestError: If input or args are missing, args contain "-i",
                or input/output have an unsupported type.
        """
        if _is_missing(input) or _is_missing(args):
            raise RequestError("Missing input or args.")

        arguments = normalize_arguments(args)
        if INPUT_FLAG in arguments:
            raise RequestError(
                "The -i argument is disallowed as the input and output are "
                "specified by quickff, please use the input option instead."
            )

        return cls(
            input=resolve_input(input),
            arguments=arguments,
            output=resolve_output(output),
            verbose=verbose,
            diagnostic_handler=diagnostic_handler,
            executable_path=executable_path or None,
        )


class ExitStatus(BaseModel):
    """How the external process finished."""

    returncode: int
    signal: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @classmethod
    def from_returncode(cls, returncode: int) -> "ExitStatus":
        """Create from an asyncio return code (negative means killed by a signal)."""
        signal_name = None
        if returncode < 0:
            try:
                signal_name = Signals(-returncode).name
            except ValueError:
                pass  # Unknown signal number
        return cls(returncode=returncode, signal=signal_name)
