import logging
import os
from typing import Any, Optional

from gateway_netadmin import utils
from gateway_netadmin.constants import LOOPBACK_INTERFACE
from gateway_netadmin.lib.network_config.domain import InterfaceType, WifiMode

SYS_CLASS_NET = "/sys/class/net"

IW_TYPE_TO_MODE = {
    "managed": WifiMode.INFRA,
    "AP": WifiMode.MASTER,
    "IBSS": WifiMode.ADHOC,
}

# Module parameters some radio drivers need to come up in a given mode.
MODULE_MODE_PARAMETERS: dict[str, dict[WifiMode, list[str]]] = {
    "bcmdhd": {WifiMode.MASTER: ["op_mode=2"], WifiMode.INFRA: []},
    "8192cu": {WifiMode.MASTER: [], WifiMode.INFRA: []},
}


class LinuxNetwork:
    """Queries and changes link state through `ip`, `iw` and `modprobe`"""

    def __init__(self, sys_class_net: str = SYS_CLASS_NET):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")
        self.sys_class_net = sys_class_net

    def get_link(self, name: str) -> Optional[dict[str, Any]]:
        result = utils.run_command(
            ["ip", "-j", "link", "show", "dev", name], raise_on_fail=False
        )
        if not result.success:
            return None
        links = result.output_from_json()
        return links[0] if links else None

    def get_interface_type(self, name: str) -> InterfaceType:
        if name == LOOPBACK_INTERFACE:
            return InterfaceType.LOOPBACK
        if os.path.isdir(os.path.join(self.sys_class_net, name, "wireless")):
            return InterfaceType.WIFI
        link = self.get_link(name)
        if link is None:
            return InterfaceType.UNKNOWN
        link_type = link.get("link_type")
        if link_type == "loopback":
            return InterfaceType.LOOPBACK
        if link_type == "ppp" or name.startswith(("ppp", "wwan")):
            return InterfaceType.MODEM
        if link_type == "ether":
            return InterfaceType.ETHERNET
        return InterfaceType.UNKNOWN

    def get_ipv4_addresses(self, name: str) -> list[str]:
        result = utils.run_command(
            ["ip", "-j", "-4", "addr", "show", "dev", name], raise_on_fail=False
        )
        if not result.success:
            return []
        addresses = []
        for link in result.output_from_json() or []:
            for addr_info in link.get("addr_info", []):
                if addr_info.get("family") == "inet":
                    addresses.append(f"{addr_info['local']}/{addr_info['prefixlen']}")
        return addresses

    def has_address(self, name: str) -> bool:
        return bool(self.get_ipv4_addresses(name))

    def is_link_up(self, name: str) -> bool:
        link = self.get_link(name)
        if link is None:
            return False
        return "LOWER_UP" in link.get("flags", []) or link.get("operstate") == "UP"

    def enable_interface(self, name: str) -> None:
        self.logger.info(f"Bringing {name} up")
        utils.run_command(["ip", "link", "set", "dev", name, "up"])

    def disable_interface(self, name: str) -> None:
        self.logger.info(f"Bringing {name} down")
        utils.run_command(["ip", "link", "set", "dev", name, "down"])

    def bring_up_deleting_address(self, name: str) -> None:
        self.logger.info(f"Flushing addresses of {name} and forcing it up")
        utils.run_command(["ip", "addr", "flush", "dev", name])
        utils.run_command(["ip", "link", "set", "dev", name, "up"])

    def get_wifi_mode(self, name: str) -> WifiMode:
        """Mode the radio is actually in, as reported by `iw`"""
        result = utils.run_command(["iw", "dev", name, "info"], raise_on_fail=False)
        if not result.success:
            return WifiMode.UNKNOWN
        for line in result.grep_stdout_for_string("type ", split=True):
            iw_type = line.strip().split(" ", 1)[1].strip()
            return IW_TYPE_TO_MODE.get(iw_type, WifiMode.UNKNOWN)
        return WifiMode.UNKNOWN

    def get_kernel_module(self, name: str) -> Optional[str]:
        module_link = os.path.join(self.sys_class_net, name, "device", "driver", "module")
        if not os.path.exists(module_link):
            return None
        return os.path.basename(os.path.realpath(module_link))

    def reload_kernel_module(self, name: str, mode: WifiMode) -> None:
        module = self.get_kernel_module(name)
        if module is None:
            self.logger.debug(f"No kernel module found for {name}, not reloading")
            return
        parameters = MODULE_MODE_PARAMETERS.get(module, {}).get(mode, [])
        self.logger.info(f"Reloading {module} for {name} in {mode.value} mode")
        utils.run_command(["modprobe", "-r", module])
        utils.run_command(["modprobe", module] + parameters)
