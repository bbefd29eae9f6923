import logging
from typing import Optional

from gateway_netadmin import utils
from gateway_netadmin.constants import (
    WIFI_CONNECT_POLL_INTERVAL,
    WIFI_MODE_POLL_INTERVAL,
    WIFI_MODE_TIMEOUT,
)
from gateway_netadmin.lib.network_config.domain import WifiConfig, WifiMode
from gateway_netadmin.lib.network_config.store import ConfigStore
from gateway_netadmin.lib.network_control.dhcp_client import DhcpClientManager
from gateway_netadmin.lib.network_control.linux_network import LinuxNetwork
from gateway_netadmin.lib.wifi_control.wpa_supplicant import WpaSupplicantManager
from gateway_netadmin.models.exceptions import NetAdminException


class CredentialVerifier:
    """
    Tries a candidate Wi-Fi configuration with a temporary wpa_supplicant,
    then puts the production wpa_supplicant back if one was running.
    """

    def __init__(
        self,
        store: ConfigStore,
        network: Optional[LinuxNetwork] = None,
        wpa_supplicant: Optional[WpaSupplicantManager] = None,
        dhcp_client: Optional[DhcpClientManager] = None,
        connect_poll_interval: float = WIFI_CONNECT_POLL_INTERVAL,
        mode_timeout: float = WIFI_MODE_TIMEOUT,
        mode_poll_interval: float = WIFI_MODE_POLL_INTERVAL,
    ):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")

        self.store = store
        self.network = network or LinuxNetwork()
        self.wpa_supplicant = wpa_supplicant or WpaSupplicantManager()
        self.dhcp_client = dhcp_client or DhcpClientManager()
        self.connect_poll_interval = connect_poll_interval
        self.mode_timeout = mode_timeout
        self.mode_poll_interval = mode_poll_interval

    def production_driver(self, interface_name: str, fallback: str) -> str:
        try:
            interface = self.store.load().get(interface_name)
        except NetAdminException:
            self.logger.exception("Unable to read the committed Wi-Fi driver")
            return fallback
        if interface is not None and interface.address_config is not None:
            infra = interface.address_config.wifi_config(WifiMode.INFRA)
            if infra is not None:
                return infra.driver
        return fallback

    def wait_for_connection(self, interface_name: str, timeout: float) -> bool:
        return utils.poll_until(
            lambda: self.wpa_supplicant.is_connection_completed(interface_name),
            timeout,
            self.connect_poll_interval,
        )

    def verify(
        self, interface_name: str, candidate: WifiConfig, timeout_seconds: float
    ) -> bool:
        connected = False
        restart_production = False
        try:
            self.wpa_supplicant.write_config(interface_name, candidate, temp=True)

            if self.wpa_supplicant.is_running(interface_name):
                self.logger.debug(f"Stopping wpa_supplicant on {interface_name}")
                self.wpa_supplicant.stop(interface_name)
                restart_production = True

            try:
                self.logger.debug(f"Starting temporary wpa_supplicant on {interface_name}")
                self.wpa_supplicant.start_temp(interface_name, candidate.driver)
                utils.poll_until(
                    lambda: self.network.get_wifi_mode(interface_name) == WifiMode.INFRA,
                    self.mode_timeout,
                    self.mode_poll_interval,
                )
                connected = self.wait_for_connection(interface_name, timeout_seconds)
            finally:
                self.logger.debug(f"Stopping temporary wpa_supplicant on {interface_name}")
                self.wpa_supplicant.stop_temp(interface_name)
        except Exception:
            # Verification must never take the caller down with it.
            self.logger.warning(
                "Error while managing the temporary wpa_supplicant", exc_info=True
            )

        if restart_production:
            try:
                self.logger.debug(f"Restarting wpa_supplicant on {interface_name}")
                self.wpa_supplicant.start(
                    interface_name,
                    self.production_driver(interface_name, candidate.driver),
                )
                if self.wait_for_connection(interface_name, timeout_seconds):
                    self.dhcp_client.renew_lease(interface_name)
            except Exception:
                self.logger.warning("Error while restarting wpa_supplicant", exc_info=True)

        self.logger.info(
            f"Credentials for {candidate.ssid} on {interface_name} {'verified' if connected else 'not verified'}"
        )
        return connected
