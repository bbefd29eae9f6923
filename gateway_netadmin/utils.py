import logging
import subprocess
import time
from typing import Callable, Optional

from gateway_netadmin.models.command_result import CommandResult
from gateway_netadmin.models.runcommand_error import RunCommandError

logger = logging.getLogger(__name__)


def run_command(cmd: list, shell=False, raise_on_fail=True, input: Optional[str] = None) -> CommandResult:
    """Run a single CLI command with subprocess and returns the output"""
    logger.debug(f"Running command: {cmd}")
    try:
        cp = subprocess.run(
            cmd,
            encoding="utf-8",
            shell=shell,
            check=False,
            capture_output=True,
            input=input,
        )
    except FileNotFoundError as e:
        # Missing binaries behave like a failing command
        if raise_on_fail:
            raise RunCommandError(str(e), 127) from e
        return CommandResult("", str(e), 127)
    if raise_on_fail and cp.returncode != 0:
        raise RunCommandError(cp.stderr, cp.returncode)
    return CommandResult(cp.stdout, cp.stderr, cp.returncode)


def get_full_class_name(obj: object) -> str:
    """
    Gets the full class name and path of an object for use in errors.
    :param obj: The object to get the name and path of
    :return: The full name and path as a string.
    """
    module = obj.__class__.__module__
    if module is None or module == str.__class__.__module__:
        return obj.__class__.__name__
    return module + "." + obj.__class__.__name__


def poll_until(predicate: Callable[[], bool], timeout: float, interval: float) -> bool:
    """
    Sleeps for `interval` and then checks `predicate`, until it returns True or
    `timeout` seconds worth of intervals have passed.
    :return: True if the predicate was satisfied, False on timeout.
    """
    attempts = max(1, int(timeout / interval)) if interval > 0 else 1
    for _ in range(attempts):
        time.sleep(interval)
        if predicate():
            return True
    return False


def is_process_running(pattern: str) -> bool:
    """True if any process command line matches the extended regex `pattern`"""
    return run_command(["pgrep", "-f", pattern], raise_on_fail=False).success


def kill_processes(pattern: str) -> bool:
    """
    Kills every process whose command line matches `pattern`.
    :return: True if anything was killed. Nothing matching is not an error.
    """
    result = run_command(["pkill", "-f", pattern], raise_on_fail=False)
    # pkill exits 1 when nothing matched
    if result.return_code > 1:
        raise RunCommandError(result.stderr, result.return_code)
    return result.success


def escape_pattern(text: str) -> str:
    """Escapes `text` for use in a pgrep/pkill extended regular expression"""
    return "".join("\\" + c if c in ".[]()*+?{}|^$\\" else c for c in text)
