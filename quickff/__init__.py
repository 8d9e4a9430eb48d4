"""Run ffmpeg over files, buffers and streams with piped stdio."""

from .config import (
    FALLBACK_EXECUTABLE,
    get_default_executable_path,
    set_default_executable_path,
)
from .diagnostics import DiagnosticStream
from .invoker import Invocation, Invoker, build_command, ff
from .models import ExitStatus, InvocationRequest, RequestError

__all__ = [
    "FALLBACK_EXECUTABLE",
    "DiagnosticStream",
    "ExitStatus",
    "Invocation",
    "InvocationRequest",
    "Invoker",
    "RequestError",
    "build_command",
    "ff",
    "get_default_executable_path",
    "set_default_executable_path",
]
