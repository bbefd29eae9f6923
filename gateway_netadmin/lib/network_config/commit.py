import logging
import threading
import time
from typing import Iterable

from gateway_netadmin.busses import message_bus
from gateway_netadmin.constants import COMMIT_POLL_INTERVAL, COMMIT_TIMEOUT
from gateway_netadmin.lib.domain import Messages
from gateway_netadmin.lib.network_config.domain import (
    FirewallConfiguration,
    NetworkConfiguration,
)
from gateway_netadmin.lib.network_config.store import ConfigStore
from gateway_netadmin.models.exceptions import InternalError, NetAdminException


class PendingCommit:
    """
    Marks a commit that is waiting for its confirmation event. Set by the
    committing thread, cleared by whichever thread delivers the event.
    """

    def __init__(self, domain: str):
        self.domain = domain
        self._pending = False
        self._condition = threading.Condition()

    @property
    def pending(self) -> bool:
        with self._condition:
            return self._pending

    def begin(self) -> None:
        with self._condition:
            self._pending = True

    def resolve(self) -> None:
        with self._condition:
            self._pending = False
            self._condition.notify_all()

    def wait(self, timeout: float, poll_interval: float) -> bool:
        """
        Blocks until resolved or until `timeout` seconds have passed.
        :return: True if resolved, False on timeout.
        """
        deadline = time.monotonic() + timeout
        with self._condition:
            while self._pending:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._condition.wait(min(poll_interval, remaining))
            return True


class CommitCoordinator:
    def __init__(
        self,
        store: ConfigStore,
        bus=None,
        timeout: float = COMMIT_TIMEOUT,
        poll_interval: float = COMMIT_POLL_INTERVAL,
    ):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")

        self.store = store
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.network_pending = PendingCommit("network")
        self.firewall_pending = PendingCommit("firewall")

        self.bus = bus if bus is not None else message_bus
        self.setup_listeners()

    def setup_listeners(self):
        self.logger.info("Setting up listeners")
        self.bus.add_handler(
            Messages.NetworkConfigurationChanged, self.network_configuration_changed
        )
        self.bus.add_handler(
            Messages.FirewallConfigurationChanged, self.firewall_configuration_changed
        )

    def network_configuration_changed(
        self, event: Messages.NetworkConfigurationChanged
    ) -> None:
        self.logger.debug(
            f"Network configuration applied for {sorted(event.modified_interfaces)}"
        )
        self.network_pending.resolve()

    def firewall_configuration_changed(
        self, event: Messages.FirewallConfigurationChanged
    ) -> None:
        self.logger.debug("Firewall configuration applied")
        self.firewall_pending.resolve()

    def submit(
        self, modified_interfaces: Iterable[str], new_config: NetworkConfiguration
    ) -> None:
        config = new_config.model_copy(
            update={"modified_interface_names": frozenset(modified_interfaces)}
        )
        self.network_pending.begin()
        try:
            self.store.commit(config)
            self.store.checkpoint()
        except NetAdminException:
            self.network_pending.resolve()
            raise
        except OSError as e:
            self.network_pending.resolve()
            raise InternalError(f"Failed to commit network configuration: {e}") from e
        self._wait_for_confirmation(self.network_pending, "network configuration")

    def submit_firewall(self, new_config: FirewallConfiguration) -> None:
        # Always waits, even when nothing differs from the stored configuration.
        self.firewall_pending.begin()
        try:
            self.store.commit_firewall(new_config)
            self.store.checkpoint()
        except NetAdminException:
            self.firewall_pending.resolve()
            raise
        except OSError as e:
            self.firewall_pending.resolve()
            raise InternalError(f"Failed to commit firewall configuration: {e}") from e
        self._wait_for_confirmation(self.firewall_pending, "firewall configuration")

    def _wait_for_confirmation(self, pending: PendingCommit, description: str) -> None:
        if pending.wait(self.timeout, self.poll_interval):
            self.logger.debug(f"Received {description} change event")
            return
        self.logger.warning(
            f"Did not receive a {description} change event after {self.timeout} seconds"
        )
        pending.resolve()
