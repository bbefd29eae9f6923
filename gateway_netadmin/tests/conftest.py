"""
Pytest configuration and shared fixtures for gateway-netadmin tests
"""
import logging

import pytest

from gateway_netadmin.busses import create_message_bus
from gateway_netadmin.lib.configuration.schemas import NetAdminConfig
from gateway_netadmin.lib.logging_utils import setup_logging
from gateway_netadmin.lib.network_config.store import ConfigStore
from gateway_netadmin.models.command_result import CommandResult
from gateway_netadmin.models.runcommand_error import RunCommandError


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Setup logging for tests with appropriate levels"""
    setup_logging(level=logging.INFO)


@pytest.fixture
def no_sleep(mocker):
    """Poll loops return immediately"""
    return mocker.patch("gateway_netadmin.utils.time.sleep")


@pytest.fixture
def bus():
    return create_message_bus()


@pytest.fixture
def settings(tmp_path) -> NetAdminConfig:
    return NetAdminConfig(
        General={"data_dir": str(tmp_path / "data")},
        Timeouts={
            "commit": 5,
            "commit_poll_interval": 0.05,
            "wifi_connect": 6,
            "wifi_connect_poll_interval": 2,
            "wifi_mode": 10,
            "wifi_mode_poll_interval": 1,
        },
        Paths={
            "daemon_config_dir": str(tmp_path / "run"),
            "pid_dir": str(tmp_path / "run"),
        },
    )


@pytest.fixture
def store(tmp_path, bus) -> ConfigStore:
    return ConfigStore(str(tmp_path / "data"), bus=bus, max_snapshots=3)


class FakeRunner:
    """
    Stands in for utils.run_command. Answers commands by the longest
    matching argv prefix and records everything it was asked to run.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.responses: dict[tuple, CommandResult] = {}

    def respond(self, prefix: list[str], stdout: str = "", return_code: int = 0, stderr: str = ""):
        self.responses[tuple(prefix)] = CommandResult(stdout, stderr, return_code)

    def __call__(self, cmd, shell=False, raise_on_fail=True, input=None):
        self.calls.append(list(cmd))
        result = CommandResult("", "", 0)
        matched = -1
        for prefix, response in self.responses.items():
            if tuple(cmd[: len(prefix)]) == prefix and len(prefix) > matched:
                result, matched = response, len(prefix)
        if raise_on_fail and not result.success:
            raise RunCommandError(result.stderr, result.return_code)
        return result


@pytest.fixture
def fake_runner(mocker) -> FakeRunner:
    runner = FakeRunner()
    mocker.patch("gateway_netadmin.utils.run_command", side_effect=runner)
    return runner
