"""Tests for the command line entry point."""

import io
import sys
from unittest.mock import MagicMock, patch

import pytest

from quickff.main import main, parse_args, run

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="needs /bin/sh")


@pytest.fixture
def no_config(tmp_path):
    """Point --config at a file that does not exist, giving defaults."""
    return ["--config", str(tmp_path / "absent.toml")]


@pytest.fixture
def source(tmp_path):
    """Create an input file."""
    path = tmp_path / "in.mkv"
    path.write_bytes(b"input media")
    return path


def test_parse_args_passes_remainder():
    """Test that everything after INPUT is kept for ffmpeg."""
    args = parse_args(["-v", "-o", "out.mp4", "in.mkv", "-c", "copy", "-o", "x"])
    assert args.verbose is True
    assert str(args.output) == "out.mp4"
    assert args.input == "in.mkv"
    assert args.args == ["-c", "copy", "-o", "x"]


@pytest.mark.asyncio
async def test_file_output(no_config, cat_tool, source, tmp_path):
    """Test converting a file into another file."""
    destination = tmp_path / "out.mp4"

    exit_code = await main(
        no_config + ["--ffmpeg", cat_tool, "-o", str(destination), str(source), "-c", "copy"]
    )

    assert exit_code == 0
    assert destination.read_bytes() == b"input media"


@pytest.mark.asyncio
async def test_stdin_to_stdout(no_config, cat_tool, monkeypatch, capsysbinary):
    """Test reading stdin and writing the collected output to stdout."""
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"piped media")))

    exit_code = await main(no_config + ["--ffmpeg", cat_tool, "-", "-f", "mp4"])

    assert exit_code == 0
    assert capsysbinary.readouterr().out == b"piped media"


@pytest.mark.asyncio
async def test_separator_is_not_passed(no_config, args_tool, source, capsysbinary):
    """Test that a leading -- before ffmpeg arguments is dropped."""
    exit_code = await main(
        no_config + ["--ffmpeg", args_tool, str(source), "--", "-f", "mp4"]
    )

    assert exit_code == 0
    lines = capsysbinary.readouterr().out.decode().splitlines()
    assert "--" not in lines
    assert lines[-3:] == ["-f", "mp4", "pipe:1"]


@pytest.mark.asyncio
async def test_executable_from_config(tmp_path, cat_tool, source, capsysbinary):
    """Test that the config file can name the executable."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(f'[invoker]\nexecutable_path = "{cat_tool}"\n')

    exit_code = await main(["--config", str(config_path), str(source), "-f", "mp4"])

    assert exit_code == 0
    assert capsysbinary.readouterr().out == b"input media"


@pytest.mark.asyncio
async def test_tool_failure_exit_code(no_config, failing_tool, source, tmp_path):
    """Test that the tool's return code becomes the exit code."""
    exit_code = await main(
        no_config
        + ["--ffmpeg", failing_tool, "-o", str(tmp_path / "out.mp4"), str(source), "-f", "mp4"]
    )
    assert exit_code == 3


@pytest.mark.asyncio
async def test_input_flag_rejected(no_config, cat_tool, source):
    """Test that -i among the ffmpeg arguments fails the run."""
    with patch("asyncio.create_subprocess_exec") as mock_create_subprocess:
        exit_code = await main(
            no_config + ["--ffmpeg", cat_tool, str(source), "-i", "other.mkv"]
        )

    assert exit_code == 1
    mock_create_subprocess.assert_not_called()


@pytest.mark.asyncio
async def test_missing_executable(no_config, source, tmp_path):
    """Test that a missing executable fails the run."""
    exit_code = await main(
        no_config + ["--ffmpeg", str(tmp_path / "no-such-ffmpeg"), str(source), "-f", "mp4"]
    )
    assert exit_code == 1


@pytest.mark.asyncio
async def test_invalid_config(tmp_path, source):
    """Test that a broken config file fails the run before anything starts."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("[log]\nlog_level = 'LOUD'\n")

    with patch("asyncio.create_subprocess_exec") as mock_create_subprocess:
        exit_code = await main(["--config", str(config_path), str(source), "-f", "mp4"])

    assert exit_code == 1
    mock_create_subprocess.assert_not_called()


def test_run_exits_with_main_result():
    """Test that run() exits with the code main() returns."""
    main_coroutine = object()
    with patch("quickff.main.main", new=MagicMock(return_value=main_coroutine)), patch(
        "quickff.main.asyncio.run", return_value=3
    ) as mock_run:
        with pytest.raises(SystemExit) as exc_info:
            run()

    assert exc_info.value.code == 3
    mock_run.assert_called_once_with(main_coroutine)


def test_run_keyboard_interrupt():
    """Test that an interrupt exits with 130."""
    with patch("quickff.main.main", new=MagicMock()), patch(
        "quickff.main.asyncio.run", side_effect=KeyboardInterrupt
    ):
        with pytest.raises(SystemExit) as exc_info:
            run()

    assert exc_info.value.code == 130


@pytest.mark.asyncio
async def test_tool_failure_exit_code_with_stdout(no_config, failing_tool, source, capsysbinary):
    """Test that collected output still reports the tool's return code."""
    exit_code = await main(no_config + ["--ffmpeg", failing_tool, str(source), "-f", "mp4"])

    assert exit_code == 3
    assert capsysbinary.readouterr().out == b""
