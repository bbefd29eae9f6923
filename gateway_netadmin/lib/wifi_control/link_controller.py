import logging
from typing import Optional

from gateway_netadmin import utils
from gateway_netadmin.constants import (
    IGNORED_WIFI_PREFIXES,
    LOOPBACK_INTERFACE,
    WIFI_CONNECT_POLL_INTERVAL,
    WIFI_CONNECT_TIMEOUT,
)
from gateway_netadmin.lib.network_config.domain import (
    InterfaceType,
    NetInterfaceStatus,
    NetworkConfiguration,
    WifiConfig,
    WifiMode,
)
from gateway_netadmin.lib.network_config.store import ConfigStore
from gateway_netadmin.lib.network_control.dhcp_client import DhcpClientManager
from gateway_netadmin.lib.network_control.dhcp_server import DhcpServerManager
from gateway_netadmin.lib.network_control.linux_network import LinuxNetwork
from gateway_netadmin.lib.wifi_control.domain import LinkState
from gateway_netadmin.lib.wifi_control.hostapd import HostapdManager
from gateway_netadmin.lib.wifi_control.wpa_supplicant import WpaSupplicantManager
from gateway_netadmin.models.exceptions import InternalError
from gateway_netadmin.models.runcommand_error import RunCommandError


def wifi_settings(
    config: NetworkConfiguration, interface_name: str
) -> tuple[NetInterfaceStatus, WifiMode, Optional[WifiConfig]]:
    """(status, selected mode, WifiConfig of that mode) from the committed configuration"""
    interface = config.get(interface_name)
    if interface is None or interface.address_config is None:
        return NetInterfaceStatus.UNKNOWN, WifiMode.UNKNOWN, None
    address = interface.address_config
    mode = address.wifi_mode or WifiMode.UNKNOWN
    return address.status, mode, address.wifi_config(mode)


class WifiLinkController:
    """
    Brings interfaces up and down, starting hostapd or wpa_supplicant on
    radios according to the committed configuration.

    Interfaces move DOWN -> BRINGING_UP -> UP on enable and back to DOWN on
    disable or on a failed enable.
    """

    def __init__(
        self,
        store: ConfigStore,
        network: Optional[LinuxNetwork] = None,
        dhcp_client: Optional[DhcpClientManager] = None,
        dhcp_server: Optional[DhcpServerManager] = None,
        hostapd: Optional[HostapdManager] = None,
        wpa_supplicant: Optional[WpaSupplicantManager] = None,
        connect_timeout: float = WIFI_CONNECT_TIMEOUT,
        connect_poll_interval: float = WIFI_CONNECT_POLL_INTERVAL,
        loopback_interface: str = LOOPBACK_INTERFACE,
    ):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")

        self.store = store
        self.network = network or LinuxNetwork()
        self.dhcp_client = dhcp_client or DhcpClientManager()
        self.dhcp_server = dhcp_server or DhcpServerManager()
        self.hostapd = hostapd or HostapdManager()
        self.wpa_supplicant = wpa_supplicant or WpaSupplicantManager()
        self.connect_timeout = connect_timeout
        self.connect_poll_interval = connect_poll_interval
        self.loopback_interface = loopback_interface

        self.states: dict[str, LinkState] = {}

    def state(self, interface_name: str) -> LinkState:
        return self.states.get(interface_name, LinkState.DOWN)

    def wait_for_connection(self, interface_name: str, timeout: float) -> bool:
        return utils.poll_until(
            lambda: self.wpa_supplicant.is_connection_completed(interface_name),
            timeout,
            self.connect_poll_interval,
        )

    def enable(self, interface_name: str, use_dhcp: bool) -> None:
        try:
            self._enable(interface_name, use_dhcp)
        except (RunCommandError, OSError) as e:
            self.states[interface_name] = LinkState.DOWN
            raise InternalError(f"Failed to enable {interface_name}: {e}") from e

    def _enable(self, interface_name: str, use_dhcp: bool) -> None:
        interface_type = self.network.get_interface_type(interface_name)

        status, mode, wifi_config = NetInterfaceStatus.UNKNOWN, WifiMode.UNKNOWN, None
        if interface_type == InterfaceType.WIFI:
            status, mode, wifi_config = wifi_settings(self.store.load(), interface_name)

        if not self.network.has_address(interface_name) or (
            interface_type == InterfaceType.WIFI
            and not self.network.is_link_up(interface_name)
        ):
            self.logger.info(f"Bringing interface {interface_name} up")
            self.states[interface_name] = LinkState.BRINGING_UP

            if interface_type == InterfaceType.WIFI:
                self.start_radio(interface_name, status, mode, wifi_config)
            if use_dhcp:
                self.dhcp_client.renew_lease(interface_name)
            else:
                self.network.enable_interface(interface_name)

            # Make sure the controller is at least powered on
            if not self.network.has_address(interface_name):
                self.network.bring_up_deleting_address(interface_name)
        else:
            self.logger.info(
                f"Not bringing interface {interface_name} up because it is already up"
            )
            if use_dhcp:
                self.dhcp_client.renew_lease(interface_name)

        self.states[interface_name] = LinkState.UP

    def start_radio(
        self,
        interface_name: str,
        status: NetInterfaceStatus,
        mode: WifiMode,
        wifi_config: Optional[WifiConfig],
    ) -> None:
        if interface_name.startswith(IGNORED_WIFI_PREFIXES):
            return

        self.logger.debug(f"Configuring {interface_name} for {mode.value} mode")
        self.hostapd.stop(interface_name)
        self.wpa_supplicant.stop(interface_name)

        if status == NetInterfaceStatus.ENABLED_LAN and mode == WifiMode.MASTER:
            if wifi_config is None:
                self.logger.warning(f"No WifiConfig configured for mode {mode.value}")
                return
            self.hostapd.start(interface_name, wifi_config)

        elif status.is_enabled and mode in (WifiMode.INFRA, WifiMode.ADHOC):
            if wifi_config is None:
                self.logger.warning(f"No WifiConfig configured for mode {mode.value}")
                return
            self.wpa_supplicant.start(interface_name, wifi_config.driver, wifi_config)
            if self.wait_for_connection(interface_name, self.connect_timeout):
                self.logger.info(f"WiFi connection completed on {interface_name}")
            else:
                self.logger.warning(f"Failed to complete WiFi connection on {interface_name}")
        else:
            self.logger.info(
                f"Invalid wifi configuration on {interface_name}, status: {status.value}, mode: {mode.value}"
            )

    def disable(self, interface_name: str) -> None:
        if interface_name == self.loopback_interface:
            return
        try:
            self._disable(interface_name)
        except (RunCommandError, OSError) as e:
            raise InternalError(f"Failed to disable {interface_name}: {e}") from e
        self.states[interface_name] = LinkState.DOWN

    def _disable(self, interface_name: str) -> None:
        if not self.network.has_address(interface_name):
            self.logger.info(f"Not bringing interface {interface_name} down, it has no address")
            self.dhcp_client.disable(interface_name)
            self.dhcp_server.disable(interface_name)
            return

        self.logger.info(f"Bringing interface {interface_name} down")
        self.dhcp_client.disable(interface_name)
        self.dhcp_server.disable(interface_name)
        if self.network.get_interface_type(interface_name) == InterfaceType.WIFI:
            self.hostapd.stop(interface_name)
            self.wpa_supplicant.stop(interface_name)
        self.network.disable_interface(interface_name)
