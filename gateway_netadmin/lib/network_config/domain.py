import ipaddress
import re
import typing as t
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

# Linux limits interface names to 15 characters
INTERFACE_NAME_PATTERN = re.compile(r"^[^\s/:]{1,15}$")
HEX_PATTERN = re.compile(r"^[0-9a-fA-F]+$")


class InterfaceType(str, Enum):
    ETHERNET = "ETHERNET"
    WIFI = "WIFI"
    MODEM = "MODEM"
    LOOPBACK = "LOOPBACK"
    UNKNOWN = "UNKNOWN"


class NetInterfaceStatus(str, Enum):
    DISABLED = "DISABLED"
    UNMANAGED = "UNMANAGED"
    L2ONLY = "L2ONLY"
    ENABLED_LAN = "ENABLED_LAN"
    ENABLED_WAN = "ENABLED_WAN"
    UNKNOWN = "UNKNOWN"

    @property
    def is_enabled(self) -> bool:
        return self in (NetInterfaceStatus.ENABLED_LAN, NetInterfaceStatus.ENABLED_WAN)


class WifiMode(str, Enum):
    INFRA = "INFRA"
    MASTER = "MASTER"
    ADHOC = "ADHOC"
    UNKNOWN = "UNKNOWN"


class WifiSecurity(str, Enum):
    NONE = "NONE"
    WEP = "WEP"
    WPA = "WPA"
    WPA2 = "WPA2"
    WPA_WPA2 = "WPA_WPA2"


class WifiCipher(str, Enum):
    CCMP = "CCMP"
    TKIP = "TKIP"
    CCMP_TKIP = "CCMP TKIP"


class ModemAuthType(str, Enum):
    NONE = "NONE"
    AUTO = "AUTO"
    PAP = "PAP"
    CHAP = "CHAP"


def is_valid_interface_name(name: t.Optional[str]) -> bool:
    return bool(name) and INTERFACE_NAME_PATTERN.match(name) is not None


class NetConfigModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class ConfigItemBase(NetConfigModel):
    kind: str

    def is_valid(self) -> bool:
        return True


class _IPConfigBase(ConfigItemBase):
    ip_version: t.ClassVar[int] = 4

    status: NetInterfaceStatus = NetInterfaceStatus.ENABLED_LAN
    dhcp: bool = False
    address: t.Optional[str] = None
    gateway: t.Optional[str] = None
    dns_servers: tuple[str, ...] = ()

    def is_valid(self) -> bool:
        try:
            if self.address is not None:
                if ipaddress.ip_interface(self.address).version != self.ip_version:
                    return False
            elif self.status.is_enabled and not self.dhcp:
                # A static, enabled configuration needs an address
                return False
            if self.gateway is not None:
                if ipaddress.ip_address(self.gateway).version != self.ip_version:
                    return False
            for server in self.dns_servers:
                ipaddress.ip_address(server)
        except ValueError:
            return False
        return True


class IPv4Config(_IPConfigBase):
    kind: t.Literal["ipv4"] = "ipv4"
    ip_version: t.ClassVar[int] = 4


class IPv6Config(_IPConfigBase):
    kind: t.Literal["ipv6"] = "ipv6"
    ip_version: t.ClassVar[int] = 6


class WifiConfig(ConfigItemBase):
    kind: t.Literal["wifi"] = "wifi"
    mode: WifiMode
    ssid: str
    driver: str = "nl80211"
    security: WifiSecurity = WifiSecurity.NONE
    passkey: t.Optional[str] = None
    channels: tuple[int, ...] = ()
    pairwise_ciphers: t.Optional[WifiCipher] = None
    group_ciphers: t.Optional[WifiCipher] = None
    hardware_mode: str = "g"
    broadcast: bool = True

    def is_valid(self) -> bool:
        if self.mode == WifiMode.UNKNOWN:
            return False
        if not 0 < len(self.ssid.encode("utf-8")) <= 32:
            return False
        if any(channel < 1 or channel > 196 for channel in self.channels):
            return False
        passkey = self.passkey or ""
        if self.security == WifiSecurity.NONE:
            return True
        if self.security == WifiSecurity.WEP:
            if len(passkey) in (5, 13):
                return True
            return len(passkey) in (10, 26) and HEX_PATTERN.match(passkey) is not None
        # WPA family
        if 8 <= len(passkey) <= 63:
            return True
        return len(passkey) == 64 and HEX_PATTERN.match(passkey) is not None


class DhcpServerConfig(ConfigItemBase):
    kind: t.Literal["dhcp_server"] = "dhcp_server"
    enabled: bool = True
    router: t.Optional[str] = None
    prefix: int = 24
    range_start: str
    range_end: str
    default_lease_time: int = 7200
    max_lease_time: int = 7200
    dns_servers: tuple[str, ...] = ()
    pass_dns: bool = False

    def is_valid(self) -> bool:
        if not 0 <= self.prefix <= 32:
            return False
        if not 0 < self.default_lease_time <= self.max_lease_time:
            return False
        try:
            start = ipaddress.IPv4Address(self.range_start)
            end = ipaddress.IPv4Address(self.range_end)
            if self.router is not None:
                ipaddress.IPv4Address(self.router)
            for server in self.dns_servers:
                ipaddress.ip_address(server)
        except ValueError:
            return False
        return start <= end


class AutoNatConfig(ConfigItemBase):
    kind: t.Literal["auto_nat"] = "auto_nat"
    source_interface: t.Optional[str] = None
    destination_interface: t.Optional[str] = None
    masquerade: bool = True

    def is_valid(self) -> bool:
        for name in (self.source_interface, self.destination_interface):
            if name is not None and not is_valid_interface_name(name):
                return False
        return True


class ModemConfig(ConfigItemBase):
    kind: t.Literal["modem"] = "modem"
    apn: str = ""
    dial_string: str
    auth_type: ModemAuthType = ModemAuthType.NONE
    username: t.Optional[str] = None
    password: t.Optional[str] = None
    pdp_type: str = "IP"
    persist: bool = True
    enabled: bool = True

    def is_valid(self) -> bool:
        if not self.dial_string.strip():
            return False
        if self.auth_type in (ModemAuthType.PAP, ModemAuthType.CHAP):
            return bool(self.username)
        return True


ConfigItem = t.Annotated[
    t.Union[
        IPv4Config, IPv6Config, WifiConfig, DhcpServerConfig, AutoNatConfig, ModemConfig
    ],
    Field(discriminator="kind"),
]


class AddressConfig(NetConfigModel):
    items: tuple[ConfigItem, ...] = ()
    # Selected mode of a WIFI interface; None for everything else
    wifi_mode: t.Optional[WifiMode] = None

    def find(self, kind: str) -> t.Optional[ConfigItemBase]:
        for item in self.items:
            if item.kind == kind:
                return item
        return None

    def wifi_config(self, mode: t.Optional[WifiMode] = None) -> t.Optional[WifiConfig]:
        """The WifiConfig for `mode`, or for the selected mode if not given."""
        mode = mode or self.wifi_mode
        for item in self.items:
            if isinstance(item, WifiConfig) and item.mode == mode:
                return item
        return None

    @property
    def status(self) -> NetInterfaceStatus:
        """Status of the first IP configuration, preferring IPv4."""
        for kind in ("ipv4", "ipv6"):
            item = self.find(kind)
            if item is not None:
                return item.status
        return NetInterfaceStatus.UNKNOWN


class InterfaceConfig(NetConfigModel):
    name: str
    type: InterfaceType
    mtu: t.Optional[int] = None
    auto_connect: bool = False
    addresses: tuple[AddressConfig, ...] = ()
    # MODEM only
    modem_identifier: t.Optional[str] = None
    ppp_number: t.Optional[int] = None

    @property
    def address_config(self) -> t.Optional[AddressConfig]:
        return self.addresses[0] if self.addresses else None

    @property
    def items(self) -> tuple:
        return tuple(item for address in self.addresses for item in address.items)


class NetworkConfiguration(NetConfigModel):
    version: int = 1
    interfaces: tuple[InterfaceConfig, ...] = ()
    modified_interface_names: frozenset[str] = frozenset()

    @field_validator("interfaces")
    def unique_names(cls, v):  # noqa: N805
        names = [interface.name for interface in v]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(f"Duplicate interface names: {sorted(duplicates)}")
        return v

    @field_serializer("modified_interface_names")
    def sorted_names(self, v):
        return sorted(v)

    def get(self, name: str) -> t.Optional[InterfaceConfig]:
        for interface in self.interfaces:
            if interface.name == name:
                return interface
        return None


class InterfaceUpdate(NetConfigModel):
    """Scalar interface fields to change; None leaves the stored value alone."""

    type: InterfaceType
    mtu: t.Optional[int] = None
    auto_connect: t.Optional[bool] = None
    modem_identifier: t.Optional[str] = None
    ppp_number: t.Optional[int] = None


class FirewallOpenPortConfig(NetConfigModel):
    port: str
    protocol: t.Literal["tcp", "udp"] = "tcp"
    permitted_network: str = "0.0.0.0/0"
    permitted_interface: t.Optional[str] = None
    unpermitted_interface: t.Optional[str] = None


class FirewallPortForwardConfig(NetConfigModel):
    inbound_interface: str
    outbound_interface: str
    address: str
    protocol: t.Literal["tcp", "udp"] = "tcp"
    in_port: int
    out_port: int
    masquerade: bool = False
    permitted_network: str = "0.0.0.0/0"


class FirewallNatConfig(NetConfigModel):
    source_interface: str
    destination_interface: str
    protocol: t.Optional[t.Literal["tcp", "udp"]] = None
    source: t.Optional[str] = None
    destination: t.Optional[str] = None
    masquerade: bool = True


class FirewallConfiguration(NetConfigModel):
    version: int = 1
    open_ports: tuple[FirewallOpenPortConfig, ...] = ()
    port_forwards: tuple[FirewallPortForwardConfig, ...] = ()
    nat: tuple[FirewallNatConfig, ...] = ()
