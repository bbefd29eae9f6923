import contextlib
import logging
from typing import Iterable, Iterator, Optional

from gateway_netadmin import utils
from gateway_netadmin.constants import WIFI_MODE_POLL_INTERVAL, WIFI_MODE_TIMEOUT
from gateway_netadmin.lib.network_config.domain import WifiMode, WifiSecurity
from gateway_netadmin.lib.network_config.store import ConfigStore
from gateway_netadmin.lib.network_control.linux_network import LinuxNetwork
from gateway_netadmin.lib.wifi_control.domain import (
    SecurityFlag,
    WifiAccessPoint,
    WifiHotspotInfo,
)
from gateway_netadmin.lib.wifi_control.scan_tool import ScanTool
from gateway_netadmin.lib.wifi_control.wifi_options import DRIVER_NL80211
from gateway_netadmin.lib.wifi_control.wpa_supplicant import WpaSupplicantManager
from gateway_netadmin.models.exceptions import InternalError, NetAdminException
from gateway_netadmin.models.runcommand_error import RunCommandError


# Only CCMP and TKIP are reported; WEP ciphers of legacy networks are left out
REPORTED_PAIR_CIPHERS = frozenset({SecurityFlag.PAIR_CCMP, SecurityFlag.PAIR_TKIP})
REPORTED_GROUP_CIPHERS = frozenset({SecurityFlag.GROUP_CCMP, SecurityFlag.GROUP_TKIP})


def frequency_to_channel(frequency_mhz: int) -> int:
    # 2.4 GHz band only; 5 GHz frequencies do not map to their channel numbers.
    return (frequency_mhz - 2407) // 5


def format_mac_address(hardware_address: bytes) -> str:
    return ":".join(f"{octet:02X}" for octet in hardware_address)


def classify_security(access_point: WifiAccessPoint) -> WifiSecurity:
    if access_point.wpa_security and access_point.rsn_security:
        return WifiSecurity.WPA_WPA2
    if access_point.rsn_security:
        return WifiSecurity.WPA2
    if access_point.wpa_security:
        return WifiSecurity.WPA
    if "Privacy" in access_point.capabilities:
        return WifiSecurity.WEP
    return WifiSecurity.NONE


def cipher_flags(
    access_point: WifiAccessPoint, security: WifiSecurity
) -> tuple[frozenset[SecurityFlag], frozenset[SecurityFlag]]:
    """(pairwise, group) ciphers from the security sets the classification used"""
    if security == WifiSecurity.WPA_WPA2:
        flags: Iterable[SecurityFlag] = access_point.wpa_security | access_point.rsn_security
    elif security == WifiSecurity.WPA2:
        flags = access_point.rsn_security
    elif security == WifiSecurity.WPA:
        flags = access_point.wpa_security
    else:
        flags = ()
    flags = frozenset(flags)
    return flags & REPORTED_PAIR_CIPHERS, flags & REPORTED_GROUP_CIPHERS


def to_hotspots(access_points: Iterable[WifiAccessPoint]) -> list[WifiHotspotInfo]:
    """Hidden networks are skipped and only the first sighting per (ssid, channel) is kept."""
    seen = set()
    hotspots = []
    for access_point in access_points:
        channel = frequency_to_channel(access_point.frequency_mhz)
        if not access_point.ssid or (access_point.ssid, channel) in seen:
            continue
        seen.add((access_point.ssid, channel))

        security = classify_security(access_point)
        pair, group = cipher_flags(access_point, security)
        hotspots.append(
            WifiHotspotInfo(
                ssid=access_point.ssid,
                mac_address=format_mac_address(access_point.hardware_address),
                signal_dbm=0 - access_point.strength,
                channel=channel,
                frequency_mhz=access_point.frequency_mhz,
                security=security,
                pair_ciphers=pair,
                group_ciphers=group,
            )
        )
    return hotspots


class WifiScanSession:
    """
    Scans for hotspots. A radio serving as an access point is switched to
    station mode with a temporary wpa_supplicant for the scan and switched
    back afterwards, whatever the outcome.
    """

    def __init__(
        self,
        store: ConfigStore,
        network: Optional[LinuxNetwork] = None,
        wpa_supplicant: Optional[WpaSupplicantManager] = None,
        scan_tool: Optional[ScanTool] = None,
        mode_timeout: float = WIFI_MODE_TIMEOUT,
        mode_poll_interval: float = WIFI_MODE_POLL_INTERVAL,
    ):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")

        self.store = store
        self.network = network or LinuxNetwork()
        self.wpa_supplicant = wpa_supplicant or WpaSupplicantManager()
        self.scan_tool = scan_tool or ScanTool()
        self.mode_timeout = mode_timeout
        self.mode_poll_interval = mode_poll_interval

    def configured_mode(self, interface_name: str) -> WifiMode:
        interface = self.store.load().get(interface_name)
        if interface is None or interface.address_config is None:
            return WifiMode.UNKNOWN
        return interface.address_config.wifi_mode or WifiMode.UNKNOWN

    def infra_driver(self, interface_name: str) -> str:
        interface = self.store.load().get(interface_name)
        if interface is not None and interface.address_config is not None:
            infra = interface.address_config.wifi_config(WifiMode.INFRA)
            if infra is not None:
                return infra.driver
        return DRIVER_NL80211

    def wait_for_mode(self, interface_name: str, mode: WifiMode) -> bool:
        reached = utils.poll_until(
            lambda: self.network.get_wifi_mode(interface_name) == mode,
            self.mode_timeout,
            self.mode_poll_interval,
        )
        if not reached:
            self.logger.warning(
                f"{interface_name} did not switch to {mode.value} mode within {self.mode_timeout} seconds"
            )
        return reached

    @contextlib.contextmanager
    def temporary_infra_session(self, interface_name: str) -> Iterator[None]:
        self.logger.debug(f"Switching {interface_name} to INFRA mode for scanning")
        try:
            self.network.reload_kernel_module(interface_name, WifiMode.INFRA)
            self.wpa_supplicant.write_config(interface_name, None, temp=True)
            self.wpa_supplicant.start_temp(interface_name, self.infra_driver(interface_name))
            self.wait_for_mode(interface_name, WifiMode.INFRA)
            yield
        finally:
            self.restore_master(interface_name)

    def restore_master(self, interface_name: str) -> None:
        try:
            if self.wpa_supplicant.is_temp_running(interface_name):
                self.wpa_supplicant.stop_temp(interface_name)
            self.network.reload_kernel_module(interface_name, WifiMode.MASTER)
        except (RunCommandError, OSError):
            self.logger.exception(f"Failed to switch {interface_name} back to MASTER mode")

    def scan(self, interface_name: str) -> list[WifiHotspotInfo]:
        try:
            if self.configured_mode(interface_name) == WifiMode.MASTER:
                with self.temporary_infra_session(interface_name):
                    access_points = self.scan_tool.scan(interface_name)
            else:
                access_points = self.scan_tool.scan(interface_name)
        except (NetAdminException, RunCommandError, OSError, ValueError) as e:
            raise InternalError(f"scan operation has failed: {e}") from e

        hotspots = to_hotspots(access_points)
        self.logger.info(f"Found {len(hotspots)} hotspots on {interface_name}")
        return hotspots
