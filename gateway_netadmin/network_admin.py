import contextlib
import logging
import threading
import typing as t
from typing import Optional

from gateway_netadmin.busses import message_bus
from gateway_netadmin.lib.configuration.netadmin_config_file import NetAdminConfigFile
from gateway_netadmin.lib.configuration.schemas import NetAdminConfig
from gateway_netadmin.lib.network_config.commit import CommitCoordinator
from gateway_netadmin.lib.network_config.domain import (
    AutoNatConfig,
    ConfigItemBase,
    DhcpServerConfig,
    FirewallConfiguration,
    FirewallNatConfig,
    FirewallOpenPortConfig,
    FirewallPortForwardConfig,
    InterfaceConfig,
    InterfaceType,
    InterfaceUpdate,
    WifiConfig,
)
from gateway_netadmin.lib.network_config.merger import ConfigMerger
from gateway_netadmin.lib.network_config.store import ConfigStore
from gateway_netadmin.lib.network_control.dhcp_client import DhcpClientManager
from gateway_netadmin.lib.network_control.dhcp_server import DhcpServerManager
from gateway_netadmin.lib.network_control.firewall import FirewallManager, NatRule
from gateway_netadmin.lib.network_control.linux_network import LinuxNetwork
from gateway_netadmin.lib.wifi_control.credential_verifier import CredentialVerifier
from gateway_netadmin.lib.wifi_control.domain import WifiHotspotInfo
from gateway_netadmin.lib.wifi_control.hostapd import HostapdManager
from gateway_netadmin.lib.wifi_control.link_controller import WifiLinkController
from gateway_netadmin.lib.wifi_control.scan_session import WifiScanSession
from gateway_netadmin.lib.wifi_control.scan_tool import ScanTool
from gateway_netadmin.lib.wifi_control.wifi_options import WifiOptions
from gateway_netadmin.lib.wifi_control.wpa_supplicant import WpaSupplicantManager
from gateway_netadmin.models.exceptions import InternalError
from gateway_netadmin.models.runcommand_error import RunCommandError


def load_settings() -> NetAdminConfig:
    config_file = NetAdminConfigFile()
    config_file.load_or_create_defaults()
    return config_file.settings


class NetworkAdminService:
    """
    Entry point for the rest of the gateway: configuration updates, link
    control, DHCP, firewall and Wi-Fi operations.

    Operations on one interface never overlap, and configuration updates are
    applied one at a time so concurrent callers cannot lose each other's changes.
    """

    def __init__(
        self,
        settings: Optional[NetAdminConfig] = None,
        bus=None,
        store: Optional[ConfigStore] = None,
        network: Optional[LinuxNetwork] = None,
        dhcp_client: Optional[DhcpClientManager] = None,
        dhcp_server: Optional[DhcpServerManager] = None,
        hostapd: Optional[HostapdManager] = None,
        wpa_supplicant: Optional[WpaSupplicantManager] = None,
        firewall: Optional[FirewallManager] = None,
        scan_tool: Optional[ScanTool] = None,
        wifi_options: Optional[WifiOptions] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")

        self.settings = settings or load_settings()
        timeouts = self.settings.Timeouts
        paths = self.settings.Paths
        bus = bus if bus is not None else message_bus

        self.store = store or ConfigStore(
            self.settings.General.data_dir,
            bus=bus,
            max_snapshots=self.settings.General.max_snapshots,
        )
        self.network = network or LinuxNetwork()
        self.dhcp_client = dhcp_client or DhcpClientManager(pid_dir=paths.pid_dir)
        self.dhcp_server = dhcp_server or DhcpServerManager(
            config_dir=paths.daemon_config_dir, pid_dir=paths.pid_dir
        )
        self.hostapd = hostapd or HostapdManager(
            config_dir=paths.daemon_config_dir, pid_dir=paths.pid_dir
        )
        self.wpa_supplicant = wpa_supplicant or WpaSupplicantManager(
            config_dir=paths.daemon_config_dir, pid_dir=paths.pid_dir
        )
        self.firewall = firewall or FirewallManager()
        self.wifi_options = wifi_options or WifiOptions()

        self.merger = ConfigMerger()
        self.coordinator = CommitCoordinator(
            self.store,
            bus=bus,
            timeout=timeouts.commit,
            poll_interval=timeouts.commit_poll_interval,
        )
        self.link_controller = WifiLinkController(
            self.store,
            network=self.network,
            dhcp_client=self.dhcp_client,
            dhcp_server=self.dhcp_server,
            hostapd=self.hostapd,
            wpa_supplicant=self.wpa_supplicant,
            connect_timeout=timeouts.wifi_connect,
            connect_poll_interval=timeouts.wifi_connect_poll_interval,
            loopback_interface=self.settings.General.loopback_interface,
        )
        self.scan_session = WifiScanSession(
            self.store,
            network=self.network,
            wpa_supplicant=self.wpa_supplicant,
            scan_tool=scan_tool,
            mode_timeout=timeouts.wifi_mode,
            mode_poll_interval=timeouts.wifi_mode_poll_interval,
        )
        self.credential_verifier = CredentialVerifier(
            self.store,
            network=self.network,
            wpa_supplicant=self.wpa_supplicant,
            dhcp_client=self.dhcp_client,
            connect_poll_interval=timeouts.wifi_connect_poll_interval,
            mode_timeout=timeouts.wifi_mode,
            mode_poll_interval=timeouts.wifi_mode_poll_interval,
        )

        self.config_lock = threading.Lock()
        self._interface_locks: dict[str, threading.RLock] = {}
        self._interface_locks_lock = threading.Lock()

    def interface_lock(self, interface_name: str) -> threading.RLock:
        with self._interface_locks_lock:
            if interface_name not in self._interface_locks:
                self._interface_locks[interface_name] = threading.RLock()
            return self._interface_locks[interface_name]

    @contextlib.contextmanager
    def _daemon_operation(self, interface_name: str, description: str):
        with self.interface_lock(interface_name):
            try:
                yield
            except (RunCommandError, OSError) as e:
                raise InternalError(f"Failed to {description} on {interface_name}: {e}") from e

    # Configuration

    def get_network_interface_configs(self) -> tuple[InterfaceConfig, ...]:
        return self.store.load().interfaces

    def get_network_interface_items(self, interface_name: str) -> tuple:
        interface = self.store.load().get(interface_name)
        return interface.items if interface is not None else ()

    def _update_interface_config(
        self,
        interface_name: str,
        update: InterfaceUpdate,
        items: t.Sequence[ConfigItemBase],
    ) -> frozenset:
        with self.interface_lock(interface_name), self.config_lock:
            result = self.merger.merge(interface_name, update, items, self.store.load())
            if not result.modified:
                self.logger.info(f"No configuration changes for {interface_name}")
                return result.modified_interfaces
            self.logger.info(
                f"Submitting configuration changes for {sorted(result.modified_interfaces)}"
            )
            self.coordinator.submit(result.modified_interfaces, result.configuration)
            return result.modified_interfaces

    def update_ethernet_interface_config(
        self,
        interface_name: str,
        auto_connect: bool,
        mtu: int,
        items: t.Sequence[ConfigItemBase],
    ) -> frozenset:
        return self._update_interface_config(
            interface_name,
            InterfaceUpdate(type=InterfaceType.ETHERNET, mtu=mtu, auto_connect=auto_connect),
            items,
        )

    def update_wifi_interface_config(
        self,
        interface_name: str,
        auto_connect: bool,
        items: t.Sequence[ConfigItemBase],
    ) -> frozenset:
        return self._update_interface_config(
            interface_name,
            InterfaceUpdate(type=InterfaceType.WIFI, auto_connect=auto_connect),
            items,
        )

    def update_modem_interface_config(
        self,
        interface_name: str,
        modem_identifier: Optional[str],
        ppp_number: int,
        auto_connect: bool,
        mtu: int,
        items: t.Sequence[ConfigItemBase],
    ) -> frozenset:
        return self._update_interface_config(
            interface_name,
            InterfaceUpdate(
                type=InterfaceType.MODEM,
                modem_identifier=modem_identifier or "",
                ppp_number=ppp_number,
                auto_connect=auto_connect,
                mtu=mtu,
            ),
            items,
        )

    # Links and DHCP

    def enable_interface(self, interface_name: str, use_dhcp: bool) -> None:
        with self.interface_lock(interface_name):
            self.link_controller.enable(interface_name, use_dhcp)

    def disable_interface(self, interface_name: str) -> None:
        with self.interface_lock(interface_name):
            self.link_controller.disable(interface_name)

    def manage_dhcp_client(self, interface_name: str, enable: bool) -> None:
        with self._daemon_operation(interface_name, "manage the DHCP client"):
            self.dhcp_client.disable(interface_name)
            if enable:
                self.dhcp_client.renew_lease(interface_name)

    def manage_dhcp_server(self, interface_name: str, enable: bool) -> None:
        with self._daemon_operation(interface_name, "manage the DHCP server"):
            self.dhcp_server.disable(interface_name)
            if not enable:
                return
            interface = self.store.load().get(interface_name)
            server_config = None
            if interface is not None and interface.address_config is not None:
                server_config = interface.address_config.find("dhcp_server")
            if isinstance(server_config, DhcpServerConfig):
                self.dhcp_server.write_config(interface_name, server_config)
            self.dhcp_server.enable(interface_name)

    def renew_dhcp_lease(self, interface_name: str) -> None:
        with self._daemon_operation(interface_name, "renew the DHCP lease"):
            self.dhcp_client.renew_lease(interface_name)

    # Firewall

    def manage_firewall(self, gateway_interface: Optional[str]) -> None:
        rules: dict[NatRule, None] = {}
        if gateway_interface:
            for interface in self.store.load().interfaces:
                for item in interface.items:
                    if isinstance(item, AutoNatConfig):
                        rules[NatRule(interface.name, gateway_interface, True)] = None

        try:
            if rules:
                self.firewall.replace_all_nat_rules(rules)
            else:
                self.firewall.delete_all_auto_nat_rules()
            self.firewall.enable(self.store.load_firewall())
        except (RunCommandError, OSError) as e:
            raise InternalError(f"Failed to manage the firewall: {e}") from e

    def get_firewall_configuration(self) -> FirewallConfiguration:
        return self.store.load_firewall()

    def _update_firewall(self, **changes) -> None:
        with self.config_lock:
            config = self.store.load_firewall().model_copy(update=changes)
            self.coordinator.submit_firewall(config)

    def set_firewall_open_port_configuration(
        self, open_ports: t.Sequence[FirewallOpenPortConfig]
    ) -> None:
        self._update_firewall(open_ports=tuple(open_ports))

    def set_firewall_port_forwarding_configuration(
        self, port_forwards: t.Sequence[FirewallPortForwardConfig]
    ) -> None:
        self._update_firewall(port_forwards=tuple(port_forwards))

    def set_firewall_nat_configuration(self, nat: t.Sequence[FirewallNatConfig]) -> None:
        self._update_firewall(nat=tuple(nat))

    # Wi-Fi

    def get_wifi_hotspot_list(self, interface_name: str) -> list[WifiHotspotInfo]:
        with self.interface_lock(interface_name):
            return self.scan_session.scan(interface_name)

    def get_wifi_hotspots(self, interface_name: str) -> dict[str, WifiHotspotInfo]:
        hotspots: dict[str, WifiHotspotInfo] = {}
        for hotspot in self.get_wifi_hotspot_list(interface_name):
            # Same SSID on several channels: keep the first
            hotspots.setdefault(hotspot.ssid, hotspot)
        return hotspots

    def verify_wifi_credentials(
        self, interface_name: str, candidate: WifiConfig, timeout_seconds: float
    ) -> bool:
        with self.interface_lock(interface_name):
            return self.credential_verifier.verify(interface_name, candidate, timeout_seconds)

    def get_supported_wifi_drivers(self, interface_name: str) -> list[str]:
        return self.wifi_options.get_supported_drivers(interface_name)
