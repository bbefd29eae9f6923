import logging
import os

from gateway_netadmin import utils
from gateway_netadmin.constants import RUN_DIR
from gateway_netadmin.lib.network_config.domain import (
    WifiCipher,
    WifiConfig,
    WifiSecurity,
)


class HostapdManager:
    """Access point mode, one hostapd per interface"""

    def __init__(self, config_dir: str = RUN_DIR, pid_dir: str = RUN_DIR):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")
        self.config_dir = config_dir
        self.pid_dir = pid_dir

    def config_file(self, interface_name: str) -> str:
        return os.path.join(self.config_dir, f"hostapd-{interface_name}.conf")

    def pid_file(self, interface_name: str) -> str:
        return os.path.join(self.pid_dir, f"hostapd-{interface_name}.pid")

    def process_pattern(self, interface_name: str) -> str:
        return f"hostapd .*{utils.escape_pattern(self.config_file(interface_name))}"

    @staticmethod
    def render_config(interface_name: str, config: WifiConfig) -> str:
        lines = [
            f"interface={interface_name}",
            f"driver={config.driver}",
            f"ssid={config.ssid}",
            f"hw_mode={config.hardware_mode}",
            f"channel={config.channels[0] if config.channels else 1}",
            f"ignore_broadcast_ssid={0 if config.broadcast else 1}",
        ]
        if config.security == WifiSecurity.WEP:
            lines += ["wep_default_key=0", f"wep_key0={config.passkey}"]
        elif config.security != WifiSecurity.NONE:
            wpa = {WifiSecurity.WPA: 1, WifiSecurity.WPA2: 2, WifiSecurity.WPA_WPA2: 3}
            pairwise = (config.pairwise_ciphers or WifiCipher.CCMP).value
            lines += [
                f"wpa={wpa[config.security]}",
                "wpa_key_mgmt=WPA-PSK",
                f"wpa_passphrase={config.passkey}",
                f"wpa_pairwise={pairwise}",
                f"rsn_pairwise={pairwise}",
            ]
        return "\n".join(lines) + "\n"

    def stop(self, interface_name: str) -> None:
        if utils.kill_processes(self.process_pattern(interface_name)):
            self.logger.info(f"Stopped hostapd for {interface_name}")

    def start(self, interface_name: str, config: WifiConfig) -> None:
        self.stop(interface_name)
        os.makedirs(self.config_dir, exist_ok=True)
        with open(self.config_file(interface_name), "w") as f:
            f.write(self.render_config(interface_name, config))
        self.logger.info(f"Starting hostapd for {interface_name} with SSID {config.ssid}")
        utils.run_command(
            [
                "hostapd",
                "-B",
                "-P",
                self.pid_file(interface_name),
                self.config_file(interface_name),
            ]
        )
