import pytest

from gateway_netadmin.lib.network_config.domain import (
    AddressConfig,
    AutoNatConfig,
    DhcpServerConfig,
    InterfaceConfig,
    InterfaceType,
    InterfaceUpdate,
    IPv4Config,
    IPv6Config,
    ModemConfig,
    NetInterfaceStatus,
    NetworkConfiguration,
    WifiConfig,
    WifiMode,
    WifiSecurity,
)
from gateway_netadmin.lib.network_config.merger import ConfigMerger
from gateway_netadmin.models.exceptions import (
    ConfigurationError,
    RequiredAttributeMissingError,
)

ETHERNET = InterfaceUpdate(type=InterfaceType.ETHERNET)
WIFI = InterfaceUpdate(type=InterfaceType.WIFI)
MODEM = InterfaceUpdate(type=InterfaceType.MODEM)

DHCP_IPV4 = IPv4Config(status=NetInterfaceStatus.ENABLED_WAN, dhcp=True)
STATIC_IPV4 = IPv4Config(
    status=NetInterfaceStatus.ENABLED_LAN, address="1.2.3.4/24", gateway="1.2.3.1"
)
DHCP_SERVER = DhcpServerConfig(
    router="1.2.3.4", prefix=24, range_start="1.2.3.100", range_end="1.2.3.200"
)


def wifi(mode: WifiMode, ssid: str, passkey: str = "correct horse") -> WifiConfig:
    return WifiConfig(mode=mode, ssid=ssid, security=WifiSecurity.WPA2, passkey=passkey)


def configuration(*interfaces: InterfaceConfig) -> NetworkConfiguration:
    return NetworkConfiguration(interfaces=interfaces)


def ethernet(name: str, *items, mtu=1500, auto_connect=True) -> InterfaceConfig:
    return InterfaceConfig(
        name=name,
        type=InterfaceType.ETHERNET,
        mtu=mtu,
        auto_connect=auto_connect,
        addresses=(AddressConfig(items=items),),
    )


@pytest.fixture
def merger():
    return ConfigMerger()


def test_empty_address_config_gets_every_slot(merger):
    current = configuration(ethernet("eth0"))

    result = merger.merge("eth0", ETHERNET, [STATIC_IPV4, DHCP_SERVER], current)

    assert result.modified_interfaces == {"eth0"}
    assert result.configuration.get("eth0").items == (STATIC_IPV4, DHCP_SERVER)


def test_interface_without_address_config_gets_one(merger):
    current = configuration(InterfaceConfig(name="eth0", type=InterfaceType.ETHERNET))

    result = merger.merge("eth0", ETHERNET, [STATIC_IPV4], current)

    assert result.modified
    assert len(result.configuration.get("eth0").addresses) == 1
    assert result.configuration.get("eth0").items == (STATIC_IPV4,)


def test_identical_items_are_not_a_modification(merger):
    current = configuration(ethernet("eth0", STATIC_IPV4, DHCP_SERVER))
    desired = [
        IPv4Config(
            status=NetInterfaceStatus.ENABLED_LAN, address="1.2.3.4/24", gateway="1.2.3.1"
        ),
        DhcpServerConfig(
            router="1.2.3.4", prefix=24, range_start="1.2.3.100", range_end="1.2.3.200"
        ),
    ]

    result = merger.merge(
        "eth0", InterfaceUpdate(type=InterfaceType.ETHERNET, mtu=1500, auto_connect=True), desired, current
    )

    assert result.modified_interfaces == frozenset()
    assert result.configuration == current


def test_ethernet_update_drops_omitted_slots_and_replaces_ipv4(merger):
    current = configuration(ethernet("eth0", DHCP_IPV4, AutoNatConfig()))

    result = merger.merge(
        "eth0",
        InterfaceUpdate(type=InterfaceType.ETHERNET, mtu=1500, auto_connect=True),
        [STATIC_IPV4],
        current,
    )

    assert result.modified_interfaces == {"eth0"}
    assert result.configuration.get("eth0").items == (STATIC_IPV4,)
    # The snapshot passed in is left as it was
    assert current.get("eth0").items == (DHCP_IPV4, AutoNatConfig())


def test_other_wifi_modes_are_left_alone(merger):
    infra = wifi(WifiMode.INFRA, "Upstream")
    master = wifi(WifiMode.MASTER, "Gateway")
    new_master = wifi(WifiMode.MASTER, "Gateway", passkey="battery staple")
    interface = InterfaceConfig(
        name="wlan0",
        type=InterfaceType.WIFI,
        addresses=(
            AddressConfig(items=(STATIC_IPV4, infra, master), wifi_mode=WifiMode.MASTER),
        ),
    )

    result = merger.merge("wlan0", WIFI, [STATIC_IPV4, new_master], configuration(interface))

    assert result.modified_interfaces == {"wlan0"}
    address = result.configuration.get("wlan0").address_config
    assert address.wifi_config(WifiMode.INFRA) == infra
    assert address.wifi_config(WifiMode.MASTER) == new_master
    assert address.wifi_mode == WifiMode.MASTER


def test_unselected_wifi_mode_does_not_count_as_a_modification(merger):
    infra = wifi(WifiMode.INFRA, "Upstream")
    master = wifi(WifiMode.MASTER, "Gateway")
    interface = InterfaceConfig(
        name="wlan0",
        type=InterfaceType.WIFI,
        addresses=(
            AddressConfig(items=(STATIC_IPV4, infra, master), wifi_mode=WifiMode.MASTER),
        ),
    )

    result = merger.merge(
        "wlan0", WIFI, [STATIC_IPV4, wifi(WifiMode.MASTER, "Gateway")], configuration(interface)
    )

    assert not result.modified


def test_switching_wifi_mode_keeps_the_previous_mode(merger):
    master = wifi(WifiMode.MASTER, "Gateway")
    infra = wifi(WifiMode.INFRA, "Upstream")
    interface = InterfaceConfig(
        name="wlan0",
        type=InterfaceType.WIFI,
        addresses=(AddressConfig(items=(STATIC_IPV4, master), wifi_mode=WifiMode.MASTER),),
    )

    result = merger.merge("wlan0", WIFI, [STATIC_IPV4, infra], configuration(interface))

    address = result.configuration.get("wlan0").address_config
    assert result.modified
    assert address.items == (STATIC_IPV4, master, infra)
    assert address.wifi_mode == WifiMode.INFRA


def test_new_slots_are_appended_in_caller_order(merger):
    current = configuration(ethernet("eth0", DHCP_IPV4))
    ipv6 = IPv6Config(address="2001:db8::1/64")

    result = merger.merge("eth0", ETHERNET, [AutoNatConfig(), ipv6, STATIC_IPV4], current)

    assert result.configuration.get("eth0").items == (STATIC_IPV4, AutoNatConfig(), ipv6)


def test_unsupported_items_are_carried_through(merger):
    modem = ModemConfig(dial_string="*99***1#")
    current = configuration(ethernet("eth0", DHCP_IPV4, modem))

    result = merger.merge("eth0", ETHERNET, [STATIC_IPV4], current)

    assert result.configuration.get("eth0").items == (STATIC_IPV4, modem)


def test_unsupported_desired_items_are_ignored(merger):
    current = configuration(ethernet("eth0", STATIC_IPV4))

    result = merger.merge(
        "eth0", ETHERNET, [STATIC_IPV4, ModemConfig(dial_string="*99#")], current
    )

    assert not result.modified


def test_other_interfaces_are_copied_through(merger):
    eth1 = ethernet("eth1", DHCP_IPV4, AutoNatConfig())
    current = configuration(ethernet("eth0", DHCP_IPV4), eth1)

    result = merger.merge("eth0", ETHERNET, [STATIC_IPV4], current)

    assert result.modified_interfaces == {"eth0"}
    assert result.configuration.get("eth1") is current.get("eth1")


def test_scalar_change_alone_marks_modified(merger):
    current = configuration(ethernet("eth0", STATIC_IPV4, mtu=1500))

    result = merger.merge(
        "eth0", InterfaceUpdate(type=InterfaceType.ETHERNET, mtu=9000), [STATIC_IPV4], current
    )

    assert result.modified_interfaces == {"eth0"}
    assert result.configuration.get("eth0").mtu == 9000
    assert result.configuration.get("eth0").items == (STATIC_IPV4,)


def test_modem_scalars(merger):
    modem_config = ModemConfig(dial_string="*99***1#", apn="internet")
    current = configuration(
        InterfaceConfig(
            name="ppp0",
            type=InterfaceType.MODEM,
            modem_identifier="",
            ppp_number=0,
            addresses=(AddressConfig(items=(DHCP_IPV4, modem_config)),),
        )
    )

    result = merger.merge(
        "ppp0",
        InterfaceUpdate(type=InterfaceType.MODEM, modem_identifier="1-1.2", ppp_number=1),
        [DHCP_IPV4, modem_config],
        current,
    )

    assert result.modified_interfaces == {"ppp0"}
    assert result.configuration.get("ppp0").modem_identifier == "1-1.2"
    assert result.configuration.get("ppp0").ppp_number == 1


def test_unknown_interface_is_a_no_op(merger):
    current = configuration(ethernet("eth0", STATIC_IPV4))

    result = merger.merge("eth9", ETHERNET, [STATIC_IPV4], current)

    assert not result.modified
    assert result.configuration is current


def test_interface_of_another_type_is_left_alone(merger):
    current = configuration(ethernet("eth0", DHCP_IPV4))

    result = merger.merge("eth0", WIFI, [STATIC_IPV4, wifi(WifiMode.INFRA, "Upstream")], current)

    assert not result.modified


def test_invalid_item_fails_before_merging(merger):
    current = configuration(ethernet("eth0", DHCP_IPV4))
    invalid = IPv4Config(status=NetInterfaceStatus.ENABLED_LAN, address="999.1.1.1/24")

    with pytest.raises(ConfigurationError) as exc_info:
        merger.merge("eth0", ETHERNET, [invalid], current)

    assert exc_info.value.item is invalid
    assert "IPv4Config" in str(exc_info.value)


def test_duplicate_slot_is_rejected(merger):
    current = configuration(ethernet("eth0", DHCP_IPV4))

    with pytest.raises(ConfigurationError):
        merger.merge("eth0", ETHERNET, [STATIC_IPV4, DHCP_IPV4], current)


@pytest.mark.parametrize(
    "update,items,message",
    [
        (ETHERNET, [AutoNatConfig()], "IPv4 or IPv6"),
        (WIFI, [STATIC_IPV4], "WiFi configuration"),
        (MODEM, [DHCP_IPV4], "Modem configuration"),
    ],
)
def test_required_items(merger, update, items, message):
    with pytest.raises(RequiredAttributeMissingError, match=message):
        merger.merge("eth0", update, items, configuration())
