import ipaddress
import logging
import os

from gateway_netadmin import utils
from gateway_netadmin.constants import RUN_DIR
from gateway_netadmin.lib.network_config.domain import DhcpServerConfig
from gateway_netadmin.models.exceptions import InternalError


class DhcpServerManager:
    """Runs one ISC dhcpd instance per interface"""

    def __init__(self, config_dir: str = RUN_DIR, pid_dir: str = RUN_DIR):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")
        self.config_dir = config_dir
        self.pid_dir = pid_dir

    def config_file(self, interface_name: str) -> str:
        return os.path.join(self.config_dir, f"dhcpd-{interface_name}.conf")

    def pid_file(self, interface_name: str) -> str:
        return os.path.join(self.pid_dir, f"dhcpd-{interface_name}.pid")

    def process_pattern(self, interface_name: str) -> str:
        return f"dhcpd .*{utils.escape_pattern(self.config_file(interface_name))}"

    @staticmethod
    def render_config(config: DhcpServerConfig) -> str:
        network = ipaddress.IPv4Network(f"{config.range_start}/{config.prefix}", strict=False)
        lines = [
            "# Generated by gateway-netadmin",
            f"default-lease-time {config.default_lease_time};",
            f"max-lease-time {config.max_lease_time};",
            f"subnet {network.network_address} netmask {network.netmask} {{",
            f"    range {config.range_start} {config.range_end};",
        ]
        if config.router:
            lines.append(f"    option routers {config.router};")
        if config.pass_dns and config.dns_servers:
            lines.append(
                f"    option domain-name-servers {', '.join(config.dns_servers)};"
            )
        lines.append("}")
        return "\n".join(lines) + "\n"

    def write_config(self, interface_name: str, config: DhcpServerConfig) -> None:
        os.makedirs(self.config_dir, exist_ok=True)
        with open(self.config_file(interface_name), "w") as f:
            f.write(self.render_config(config))

    def disable(self, interface_name: str) -> None:
        if utils.kill_processes(self.process_pattern(interface_name)):
            self.logger.info(f"Stopped DHCP server for {interface_name}")

    def enable(self, interface_name: str) -> None:
        config_file = self.config_file(interface_name)
        if not os.path.exists(config_file):
            raise InternalError(f"No DHCP server configuration for {interface_name}")
        self.logger.info(f"Starting DHCP server for {interface_name}")
        os.makedirs(self.pid_dir, exist_ok=True)
        utils.run_command(
            [
                "dhcpd",
                "-q",
                "-cf",
                config_file,
                "-pf",
                self.pid_file(interface_name),
                interface_name,
            ]
        )
