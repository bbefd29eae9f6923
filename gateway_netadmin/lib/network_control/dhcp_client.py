import logging
import os

from gateway_netadmin import utils
from gateway_netadmin.constants import RUN_DIR


class DhcpClientManager:
    """Handles dhclient for network interfaces"""

    def __init__(self, pid_dir: str = RUN_DIR):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")
        self.pid_dir = pid_dir

    def pid_file(self, interface_name: str) -> str:
        return os.path.join(self.pid_dir, f"dhclient.{interface_name}.pid")

    @staticmethod
    def process_pattern(interface_name: str) -> str:
        return f"dhclient .* {interface_name}$"

    def disable(self, interface_name: str) -> None:
        if utils.kill_processes(self.process_pattern(interface_name)):
            self.logger.info(f"Stopped DHCP client for {interface_name}")

    def release_current_lease(self, interface_name: str) -> None:
        self.logger.info(f"Releasing DHCP lease for {interface_name}")
        utils.run_command(["dhclient", "-r", interface_name])

    def enable(self, interface_name: str) -> None:
        self.logger.info(f"Starting DHCP client for {interface_name}")
        os.makedirs(self.pid_dir, exist_ok=True)
        utils.run_command(
            ["dhclient", "-nw", "-pf", self.pid_file(interface_name), interface_name]
        )

    def renew_lease(self, interface_name: str) -> None:
        self.release_current_lease(interface_name)
        self.enable(interface_name)
