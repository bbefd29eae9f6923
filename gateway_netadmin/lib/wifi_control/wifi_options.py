import logging

from gateway_netadmin import utils
from gateway_netadmin.models.exceptions import InternalError
from gateway_netadmin.models.runcommand_error import RunCommandError

DRIVER_NL80211 = "nl80211"
DRIVER_WEXT = "wext"


class WifiOptions:
    """Works out which wpa_supplicant drivers a radio supports"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def get_supported_drivers(self, interface_name: str) -> list[str]:
        drivers = []
        if utils.run_command(
            ["iw", "dev", interface_name, "info"], raise_on_fail=False
        ).success:
            drivers.append(DRIVER_NL80211)

        try:
            iwconfig = utils.run_command(["iwconfig", interface_name])
        except RunCommandError as e:
            raise InternalError(
                f"Failed to get wireless extensions of {interface_name}: {e.error_msg}"
            ) from e
        if iwconfig.grep_stdout_for_string("IEEE 802.11"):
            drivers.append(DRIVER_WEXT)

        self.logger.debug(f"Supported drivers for {interface_name}: {drivers}")
        return drivers
