import threading
import time

import pytest

from gateway_netadmin.lib.network_config.domain import (
    AddressConfig,
    AutoNatConfig,
    DhcpServerConfig,
    FirewallNatConfig,
    FirewallOpenPortConfig,
    InterfaceConfig,
    InterfaceType,
    IPv4Config,
    ModemConfig,
    NetInterfaceStatus,
    NetworkConfiguration,
)
from gateway_netadmin.lib.network_control.firewall import NatRule
from gateway_netadmin.lib.wifi_control.domain import WifiHotspotInfo
from gateway_netadmin.models.exceptions import InternalError
from gateway_netadmin.models.runcommand_error import RunCommandError
from gateway_netadmin.network_admin import NetworkAdminService

DHCP_IPV4 = IPv4Config(status=NetInterfaceStatus.ENABLED_WAN, dhcp=True)
STATIC_IPV4 = IPv4Config(
    status=NetInterfaceStatus.ENABLED_LAN, address="1.2.3.4/24", gateway="1.2.3.1"
)


def ethernet(name, *items):
    return InterfaceConfig(
        name=name,
        type=InterfaceType.ETHERNET,
        mtu=1500,
        auto_connect=True,
        addresses=(AddressConfig(items=items),),
    )


@pytest.fixture
def parts(mocker):
    return {
        name: mocker.Mock(name=name)
        for name in (
            "network",
            "dhcp_client",
            "dhcp_server",
            "hostapd",
            "wpa_supplicant",
            "firewall",
            "scan_tool",
        )
    }


@pytest.fixture
def service(settings, bus, store, parts):
    return NetworkAdminService(settings=settings, bus=bus, store=store, **parts)


def test_update_ethernet_interface_config(service, store, mocker):
    store.commit(NetworkConfiguration(interfaces=(ethernet("eth0", DHCP_IPV4, AutoNatConfig()),)))
    commit = mocker.spy(store, "commit")

    modified = service.update_ethernet_interface_config("eth0", True, 1500, [STATIC_IPV4])

    assert modified == {"eth0"}
    commit.assert_called_once()
    committed = commit.call_args.args[0]
    assert committed.modified_interface_names == {"eth0"}
    assert store.load().get("eth0").items == (STATIC_IPV4,)
    assert service.get_network_interface_items("eth0") == (STATIC_IPV4,)


def test_update_without_changes_does_not_commit(service, store, mocker):
    store.commit(NetworkConfiguration(interfaces=(ethernet("eth0", STATIC_IPV4),)))
    commit = mocker.spy(store, "commit")

    modified = service.update_ethernet_interface_config("eth0", True, 1500, [STATIC_IPV4])

    assert modified == frozenset()
    commit.assert_not_called()


def test_concurrent_updates_of_different_interfaces_are_both_kept(service, store, mocker):
    store.commit(
        NetworkConfiguration(
            interfaces=(ethernet("eth0", DHCP_IPV4), ethernet("eth1", DHCP_IPV4))
        )
    )
    eth1_ipv4 = IPv4Config(status=NetInterfaceStatus.ENABLED_LAN, address="10.0.1.1/24")

    # Confirmation events are held back until released
    release = threading.Event()
    notify = store._notify

    def held_notify(event):
        threading.Thread(
            target=lambda: release.wait(5) and notify(event), daemon=True
        ).start()

    mocker.patch.object(store, "_notify", side_effect=held_notify)
    commit = mocker.spy(store, "commit")

    errors = []

    def update(name, item):
        try:
            service.update_ethernet_interface_config(name, True, 1500, [item])
        except Exception as e:
            errors.append(e)

    threads = [
        threading.Thread(target=update, args=("eth0", STATIC_IPV4)),
        threading.Thread(target=update, args=("eth1", eth1_ipv4)),
    ]
    for thread in threads:
        thread.start()

    deadline = time.monotonic() + 5
    while commit.call_count == 0 and time.monotonic() < deadline:
        time.sleep(0.01)
    time.sleep(0.2)
    # The second update waits until the first commit is confirmed
    assert commit.call_count == 1

    release.set()
    for thread in threads:
        thread.join(timeout=10)

    assert errors == []
    assert commit.call_count == 2
    config = store.load()
    assert config.get("eth0").items == (STATIC_IPV4,)
    assert config.get("eth1").items == (eth1_ipv4,)


def test_repeated_modem_update_is_not_a_modification(service, store, mocker):
    modem = ModemConfig(dial_string="*99***1#", apn="internet")
    store.commit(
        NetworkConfiguration(
            interfaces=(
                InterfaceConfig(
                    name="ppp0",
                    type=InterfaceType.MODEM,
                    mtu=1500,
                    auto_connect=True,
                    ppp_number=0,
                    addresses=(AddressConfig(items=(DHCP_IPV4, modem)),),
                ),
            )
        )
    )
    commit = mocker.spy(store, "commit")

    modified = service.update_modem_interface_config(
        "ppp0", None, 0, True, 1500, [DHCP_IPV4, modem]
    )

    assert modified == frozenset()
    commit.assert_not_called()


def test_unknown_interface_items(service):
    assert service.get_network_interface_items("eth9") == ()


def test_disable_loopback_runs_nothing(service, parts, fake_runner):
    service.disable_interface("lo")

    assert fake_runner.calls == []
    parts["network"].has_address.assert_not_called()


def test_manage_dhcp_client(service, parts, mocker):
    manager = mocker.Mock()
    manager.attach_mock(parts["dhcp_client"].disable, "disable")
    manager.attach_mock(parts["dhcp_client"].renew_lease, "renew_lease")

    service.manage_dhcp_client("eth0", True)

    assert manager.mock_calls == [mocker.call.disable("eth0"), mocker.call.renew_lease("eth0")]


def test_manage_dhcp_client_failure(service, parts):
    parts["dhcp_client"].disable.side_effect = RunCommandError("pkill failed", 3)

    with pytest.raises(InternalError):
        service.manage_dhcp_client("eth0", False)


def test_manage_dhcp_server_writes_committed_config(service, parts, store):
    server = DhcpServerConfig(
        router="1.2.3.4", prefix=24, range_start="1.2.3.100", range_end="1.2.3.200"
    )
    store.commit(NetworkConfiguration(interfaces=(ethernet("eth1", STATIC_IPV4, server),)))

    service.manage_dhcp_server("eth1", True)

    parts["dhcp_server"].disable.assert_called_once_with("eth1")
    parts["dhcp_server"].write_config.assert_called_once_with("eth1", server)
    parts["dhcp_server"].enable.assert_called_once_with("eth1")


def test_manage_firewall_builds_nat_rules(service, parts, store):
    store.commit(
        NetworkConfiguration(
            interfaces=(
                ethernet("eth0", DHCP_IPV4),
                ethernet("eth1", STATIC_IPV4, AutoNatConfig()),
                ethernet("eth2", STATIC_IPV4, AutoNatConfig()),
            )
        )
    )

    service.manage_firewall("eth0")

    (rules,), _ = parts["firewall"].replace_all_nat_rules.call_args
    assert list(rules) == [NatRule("eth1", "eth0", True), NatRule("eth2", "eth0", True)]
    parts["firewall"].delete_all_auto_nat_rules.assert_not_called()
    parts["firewall"].enable.assert_called_once()


def test_manage_firewall_without_gateway_deletes_rules(service, parts, store):
    store.commit(NetworkConfiguration(interfaces=(ethernet("eth1", STATIC_IPV4, AutoNatConfig()),)))

    service.manage_firewall(None)

    parts["firewall"].delete_all_auto_nat_rules.assert_called_once_with()
    parts["firewall"].replace_all_nat_rules.assert_not_called()


def test_firewall_settings_are_persisted(service):
    open_port = FirewallOpenPortConfig(port="443")
    nat = FirewallNatConfig(source_interface="eth1", destination_interface="eth0")

    service.set_firewall_open_port_configuration([open_port])
    service.set_firewall_nat_configuration([nat])

    config = service.get_firewall_configuration()
    assert config.open_ports == (open_port,)
    assert config.nat == (nat,)
    assert config.port_forwards == ()


def test_get_wifi_hotspots_keeps_first_per_ssid(service, mocker):
    def hotspot(ssid, channel):
        return WifiHotspotInfo(
            ssid=ssid,
            mac_address="00:11:22:33:44:55",
            signal_dbm=-50,
            channel=channel,
            frequency_mhz=2407 + 5 * channel,
        )

    mocker.patch.object(
        service.scan_session,
        "scan",
        return_value=[hotspot("Cafe", 1), hotspot("Cafe", 6), hotspot("Guest", 11)],
    )

    hotspots = service.get_wifi_hotspots("wlan0")

    assert set(hotspots) == {"Cafe", "Guest"}
    assert hotspots["Cafe"].channel == 1


def test_get_supported_wifi_drivers(service, fake_runner):
    fake_runner.respond(["iwconfig", "wlan0"], stdout="wlan0     IEEE 802.11  ESSID:off/any")

    assert service.get_supported_wifi_drivers("wlan0") == ["nl80211", "wext"]


def test_get_supported_wifi_drivers_without_iw(service, fake_runner):
    fake_runner.respond(["iw", "dev", "wlan0", "info"], return_code=237)
    fake_runner.respond(["iwconfig", "wlan0"], stdout="wlan0     IEEE 802.11  ESSID:off/any")

    assert service.get_supported_wifi_drivers("wlan0") == ["wext"]
