"""The one external command in flight, so Ctrl-C can stop it instead of orphaning it."""

import subprocess
from typing import Optional

_running: Optional[subprocess.Popen] = None


def start_process(command, **kwargs) -> subprocess.Popen:
    global _running
    _running = subprocess.Popen(command, **kwargs)
    return _running


def finish_process(process: subprocess.Popen) -> None:
    global _running
    if _running is process:
        _running = None


def terminate_running(timeout: float = 2.0) -> bool:
    """Terminate the command in flight; returns whether one was still running."""
    global _running
    process, _running = _running, None
    if process is None or process.poll() is not None:
        return False

    process.terminate()
    try:
        process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()
    return True
