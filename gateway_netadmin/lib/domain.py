import typing as t


class Messages:
    class NetworkConfigurationChanged(t.NamedTuple):
        """Emitted once a committed network configuration has been applied."""

        modified_interfaces: frozenset = frozenset()

    class FirewallConfigurationChanged(t.NamedTuple):
        pass
