from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from gateway_netadmin.lib.network_config.domain import WifiSecurity


class LinkState(Enum):
    DOWN = "DOWN"
    BRINGING_UP = "BRINGING_UP"
    UP = "UP"


class WpaState:
    COMPLETED = "COMPLETED"
    DISCONNECTED = "DISCONNECTED"
    SCANNING = "SCANNING"
    INTERFACE_DISABLED = "INTERFACE_DISABLED"


class SecurityFlag(str, Enum):
    PAIR_CCMP = "PAIR_CCMP"
    PAIR_TKIP = "PAIR_TKIP"
    PAIR_WEP40 = "PAIR_WEP40"
    PAIR_WEP104 = "PAIR_WEP104"
    GROUP_CCMP = "GROUP_CCMP"
    GROUP_TKIP = "GROUP_TKIP"
    GROUP_WEP40 = "GROUP_WEP40"
    GROUP_WEP104 = "GROUP_WEP104"
    KEY_MGMT_PSK = "KEY_MGMT_PSK"
    KEY_MGMT_802_1X = "KEY_MGMT_802_1X"


class WifiAccessPoint(BaseModel):
    """One sighting from a scan"""

    model_config = ConfigDict(frozen=True)

    ssid: str = ""
    hardware_address: bytes = b""
    frequency_mhz: int = 0
    # Absolute value of the signal in dBm
    strength: int = 0
    wpa_security: frozenset[SecurityFlag] = frozenset()
    rsn_security: frozenset[SecurityFlag] = frozenset()
    capabilities: tuple[str, ...] = ()


class WifiHotspotInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    ssid: str
    mac_address: str
    signal_dbm: int
    channel: int
    frequency_mhz: int
    security: WifiSecurity = WifiSecurity.NONE
    pair_ciphers: frozenset[SecurityFlag] = Field(default_factory=frozenset)
    group_ciphers: frozenset[SecurityFlag] = Field(default_factory=frozenset)
