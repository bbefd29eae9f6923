import logging
import os
from typing import Optional

from gateway_netadmin import utils
from gateway_netadmin.constants import RUN_DIR
from gateway_netadmin.lib.network_config.domain import (
    WifiConfig,
    WifiMode,
    WifiSecurity,
)
from gateway_netadmin.lib.wifi_control.domain import WpaState

CTRL_INTERFACE_DIR = "/run/wpa_supplicant"

PROTO = {
    WifiSecurity.WPA: "WPA",
    WifiSecurity.WPA2: "RSN",
    WifiSecurity.WPA_WPA2: "WPA RSN",
}


def channel_to_frequency(channel: int) -> int:
    if channel == 14:
        return 2484
    if channel < 14:
        return 2407 + channel * 5
    return 5000 + channel * 5


class WpaSupplicantManager:
    """
    Runs wpa_supplicant for station and ad-hoc modes. Each interface has a
    production instance and, while scanning or testing credentials, a
    temporary one started from a throwaway config file.
    """

    def __init__(
        self,
        config_dir: str = RUN_DIR,
        pid_dir: str = RUN_DIR,
        ctrl_interface_dir: str = CTRL_INTERFACE_DIR,
    ):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")
        self.config_dir = config_dir
        self.pid_dir = pid_dir
        self.ctrl_interface_dir = ctrl_interface_dir

    def config_file(self, interface_name: str, temp: bool = False) -> str:
        suffix = ".tmp.conf" if temp else ".conf"
        return os.path.join(self.config_dir, f"wpa_supplicant-{interface_name}{suffix}")

    def pid_file(self, interface_name: str, temp: bool = False) -> str:
        suffix = ".tmp.pid" if temp else ".pid"
        return os.path.join(self.pid_dir, f"wpa_supplicant-{interface_name}{suffix}")

    def process_pattern(self, interface_name: str, temp: bool = False) -> str:
        return f"wpa_supplicant .*{utils.escape_pattern(self.config_file(interface_name, temp))}"

    def render_config(self, config: Optional[WifiConfig] = None) -> str:
        """A config for `config`'s network, or a scan-only config if None."""
        lines = [f"ctrl_interface=DIR={self.ctrl_interface_dir}", "update_config=0"]
        if config is None:
            return "\n".join(lines) + "\n"

        network = [f"ssid={config.ssid.encode('utf-8').hex()}"]
        if config.mode == WifiMode.ADHOC:
            channel = config.channels[0] if config.channels else 1
            network += ["mode=1", f"frequency={channel_to_frequency(channel)}"]
        if not config.broadcast:
            network.append("scan_ssid=1")

        if config.security == WifiSecurity.NONE:
            network.append("key_mgmt=NONE")
        elif config.security == WifiSecurity.WEP:
            key = config.passkey or ""
            network += [
                "key_mgmt=NONE",
                f'wep_key0="{key}"' if len(key) in (5, 13) else f"wep_key0={key}",
                "wep_tx_keyidx=0",
            ]
        else:
            key = config.passkey or ""
            network += [
                "key_mgmt=WPA-PSK",
                f"proto={PROTO[config.security]}",
                f"psk={key}" if len(key) == 64 else f'psk="{key}"',
            ]
            if config.pairwise_ciphers:
                network.append(f"pairwise={config.pairwise_ciphers.value}")
            if config.group_ciphers:
                network.append(f"group={config.group_ciphers.value}")

        lines.append("network={")
        lines += [f"\t{line}" for line in network]
        lines.append("}")
        return "\n".join(lines) + "\n"

    def write_config(
        self, interface_name: str, config: Optional[WifiConfig], temp: bool = False
    ) -> str:
        os.makedirs(self.config_dir, exist_ok=True)
        config_file = self.config_file(interface_name, temp)
        with open(config_file, "w") as f:
            f.write(self.render_config(config))
        os.chmod(config_file, 0o600)
        return config_file

    def is_running(self, interface_name: str) -> bool:
        return utils.is_process_running(self.process_pattern(interface_name))

    def is_temp_running(self, interface_name: str) -> bool:
        return utils.is_process_running(self.process_pattern(interface_name, temp=True))

    def _start(self, interface_name: str, driver: str, temp: bool) -> None:
        config_file = self.config_file(interface_name, temp)
        if not os.path.exists(config_file):
            self.write_config(interface_name, None, temp)
        os.makedirs(self.pid_dir, exist_ok=True)
        utils.run_command(
            [
                "wpa_supplicant",
                "-B",
                "-i",
                interface_name,
                "-D",
                driver,
                "-c",
                config_file,
                "-P",
                self.pid_file(interface_name, temp),
            ]
        )

    def start(
        self, interface_name: str, driver: str, config: Optional[WifiConfig] = None
    ) -> None:
        """
        Starts the production instance, replacing any running one. The config
        file is rewritten when `config` is given.
        """
        self.stop(interface_name)
        if config is not None:
            self.write_config(interface_name, config)
        self.logger.info(f"Starting wpa_supplicant for {interface_name} ({driver})")
        self._start(interface_name, driver, temp=False)

    def start_temp(self, interface_name: str, driver: str) -> None:
        """Starts a temporary instance from the last written temporary config."""
        self.stop(interface_name)
        self.logger.info(f"Starting temporary wpa_supplicant for {interface_name} ({driver})")
        self._start(interface_name, driver, temp=True)

    def stop(self, interface_name: str) -> None:
        """Stops every instance running on the interface."""
        pattern = f"wpa_supplicant .*-i {utils.escape_pattern(interface_name)} "
        if utils.kill_processes(pattern):
            self.logger.info(f"Stopped wpa_supplicant for {interface_name}")

    def stop_temp(self, interface_name: str) -> None:
        if utils.kill_processes(self.process_pattern(interface_name, temp=True)):
            self.logger.info(f"Stopped temporary wpa_supplicant for {interface_name}")
        temp_config = self.config_file(interface_name, temp=True)
        if os.path.exists(temp_config):
            os.remove(temp_config)

    def status(self, interface_name: str) -> dict[str, str]:
        result = utils.run_command(
            ["wpa_cli", "-p", self.ctrl_interface_dir, "-i", interface_name, "status"],
            raise_on_fail=False,
        )
        if not result.success:
            return {}
        return result.key_values()

    def wpa_state(self, interface_name: str) -> Optional[str]:
        return self.status(interface_name).get("wpa_state")

    def is_connection_completed(self, interface_name: str) -> bool:
        state = self.wpa_state(interface_name)
        self.logger.debug(f"wpa_state of {interface_name}: {state}")
        return state == WpaState.COMPLETED
