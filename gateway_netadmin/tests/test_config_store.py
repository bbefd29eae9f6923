import json
import os
import threading

import pytest

from gateway_netadmin.lib.domain import Messages
from gateway_netadmin.lib.network_config.domain import (
    AddressConfig,
    FirewallConfiguration,
    FirewallOpenPortConfig,
    InterfaceConfig,
    InterfaceType,
    IPv4Config,
    NetInterfaceStatus,
    NetworkConfiguration,
)
from gateway_netadmin.models.exceptions import InternalError

ETH0 = InterfaceConfig(
    name="eth0",
    type=InterfaceType.ETHERNET,
    addresses=(
        AddressConfig(
            items=(IPv4Config(status=NetInterfaceStatus.ENABLED_WAN, dhcp=True),)
        ),
    ),
)


def test_empty_store_loads_defaults(store):
    assert store.load() == NetworkConfiguration()
    assert store.load_firewall() == FirewallConfiguration()


def test_committed_configuration_is_loaded_back(store):
    config = NetworkConfiguration(interfaces=(ETH0,))

    store.commit(config)

    assert store.load().interfaces == (ETH0,)
    assert not os.path.exists(store.network_file.config_file + ".tmp")


def test_commit_publishes_modified_interfaces(store, bus):
    received = []
    published = threading.Event()

    def handler(event):
        received.append(event)
        published.set()

    bus.add_handler(Messages.NetworkConfigurationChanged, handler)

    store.commit(
        NetworkConfiguration(interfaces=(ETH0,), modified_interface_names=frozenset({"eth0"}))
    )

    assert published.wait(timeout=5)
    assert received[0].modified_interfaces == frozenset({"eth0"})


def test_firewall_commit_publishes_its_own_event(store, bus):
    published = threading.Event()
    bus.add_handler(Messages.FirewallConfigurationChanged, lambda event: published.set())

    open_port = FirewallOpenPortConfig(port="22", protocol="tcp")
    store.commit_firewall(FirewallConfiguration(open_ports=(open_port,)))

    assert published.wait(timeout=5)
    assert store.load_firewall().open_ports == (open_port,)


def test_invalid_stored_configuration_is_an_internal_error(store):
    os.makedirs(os.path.dirname(store.network_file.config_file), exist_ok=True)
    with open(store.network_file.config_file, "w") as f:
        json.dump({"interfaces": [{"name": "eth0", "type": "not-a-type"}]}, f)

    with pytest.raises(InternalError):
        store.load()


def test_checkpoint_keeps_the_newest_snapshots(store):
    store.commit(NetworkConfiguration(interfaces=(ETH0,)))

    ids = [store.checkpoint() for _ in range(5)]

    assert store.snapshots() == ids[-3:]
    snapshot = store.load_snapshot(ids[-1])
    assert snapshot["network"].interfaces == (ETH0,)
    assert snapshot["firewall"] == FirewallConfiguration()


def test_missing_snapshot(store):
    assert store.load_snapshot(1) is None
