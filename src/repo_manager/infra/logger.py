# Console logging: one timestamped line per event
#
# Main functions:
#   - log_info() / log_success() / log_warning(): progress lines on stdout
#   - log_error(): failures on stderr
#   - log_debug(): command echo for --verbose
#   - log_plain(): table rows and listings without a prefix
#
# Notes:
#   - colours through colorama (also on Windows consoles)
#   - plain text when stdout is not a TTY
#   - set_log_callback() lets tests capture lines

import sys
from datetime import datetime
from typing import Callable, Optional, Tuple

import colorama

colorama.init()

# ANSI colour codes
COLOR_RESET = '\033[0m'
COLOR_INFO = '\033[0;36m'      # cyan
COLOR_SUCCESS = '\033[0;32m'   # green
COLOR_ERROR = '\033[0;31m'     # red
COLOR_WARNING = '\033[0;33m'   # yellow
COLOR_DEBUG = '\033[0;90m'     # grey

LogCallback = Callable[[str, str], None]

_log_callback: Optional[LogCallback] = None
_log_to_stdout = True
_log_to_stderr = True


def set_log_callback(
    callback: Optional[LogCallback],
    log_to_stdout: bool = True,
    log_to_stderr: bool = True
) -> None:
    """Route log lines to ``callback(level, message)`` as well as (or instead of) the console."""
    global _log_callback, _log_to_stdout, _log_to_stderr
    _log_callback = callback
    _log_to_stdout = log_to_stdout
    _log_to_stderr = log_to_stderr


def get_log_state() -> Tuple[Optional[LogCallback], bool, bool]:
    """Return the current callback settings so callers can restore them."""
    return _log_callback, _log_to_stdout, _log_to_stderr


def _get_timestamp() -> str:
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _use_color(stream) -> bool:
    return hasattr(stream, "isatty") and stream.isatty()


def _format_message(level: str, color: str, message: str, stream) -> str:
    timestamp = _get_timestamp()
    if _use_color(stream):
        return f"{color}[{level}]{COLOR_RESET} [{timestamp}] {message}"
    return f"[{level}] [{timestamp}] {message}"


def _emit(level: str, color: str, message: str, to_stderr: bool = False) -> None:
    if _log_callback is not None:
        _log_callback(level, message)

    if to_stderr:
        if _log_to_stderr:
            print(_format_message(level, color, message, sys.stderr), file=sys.stderr)
    elif _log_to_stdout:
        print(_format_message(level, color, message, sys.stdout))


def log_info(message: str) -> None:
    _emit("INFO", COLOR_INFO, message)


def log_success(message: str) -> None:
    _emit("SUCCESS", COLOR_SUCCESS, message)


def log_error(message: str) -> None:
    """Errors go to stderr."""
    _emit("ERROR", COLOR_ERROR, message, to_stderr=True)


def log_warning(message: str) -> None:
    _emit("WARNING", COLOR_WARNING, message)


def log_debug(message: str) -> None:
    _emit("DEBUG", COLOR_DEBUG, message)


def log_plain(message: str = "", color: str = "") -> None:
    """Print a bare line (tables, listings), coloured when the terminal allows it."""
    if _log_callback is not None:
        _log_callback("PLAIN", message)
    if not _log_to_stdout:
        return
    if color and _use_color(sys.stdout):
        print(f"{color}{message}{COLOR_RESET}")
    else:
        print(message)
