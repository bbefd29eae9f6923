import json
import logging
import os
import threading
import time
from typing import Optional

from pydantic import ValidationError

from gateway_netadmin.busses import message_bus
from gateway_netadmin.constants import MAX_SNAPSHOTS
from gateway_netadmin.lib.configuration.config_file import ConfigFile
from gateway_netadmin.lib.domain import Messages
from gateway_netadmin.lib.network_config.domain import (
    FirewallConfiguration,
    NetworkConfiguration,
)
from gateway_netadmin.models.exceptions import InternalError

SNAPSHOT_PREFIX = "snapshot_"


class ConfigStore:
    """
    Persists the network and firewall configuration as JSON documents and
    announces every commit on the message bus once it has been written.
    """

    def __init__(self, data_dir: str, bus=None, max_snapshots: int = MAX_SNAPSHOTS):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__} in {data_dir}")

        self.bus = bus if bus is not None else message_bus
        self.max_snapshots = max_snapshots
        self.snapshot_dir = os.path.join(data_dir, "snapshots")
        self.network_file = ConfigFile(
            os.path.join(data_dir, "network.json"),
            defaults=NetworkConfiguration().model_dump(mode="json"),
        )
        self.firewall_file = ConfigFile(
            os.path.join(data_dir, "firewall.json"),
            defaults=FirewallConfiguration().model_dump(mode="json"),
        )
        self.lock = threading.RLock()

    def load(self) -> NetworkConfiguration:
        with self.lock:
            self.network_file.load_or_create_defaults()
            try:
                return NetworkConfiguration.model_validate(self.network_file.data)
            except ValidationError as e:
                raise InternalError(
                    f"Stored network configuration is invalid: {e}"
                ) from e

    def load_firewall(self) -> FirewallConfiguration:
        with self.lock:
            self.firewall_file.load_or_create_defaults()
            try:
                return FirewallConfiguration.model_validate(self.firewall_file.data)
            except ValidationError as e:
                raise InternalError(
                    f"Stored firewall configuration is invalid: {e}"
                ) from e

    def commit(self, config: NetworkConfiguration) -> None:
        with self.lock:
            self.network_file.data = config.model_dump(mode="json")
            self.network_file.save()
        self.logger.info(
            f"Committed network configuration, modified: {sorted(config.modified_interface_names)}"
        )
        self._notify(
            Messages.NetworkConfigurationChanged(
                modified_interfaces=frozenset(config.modified_interface_names)
            )
        )

    def commit_firewall(self, config: FirewallConfiguration) -> None:
        with self.lock:
            self.firewall_file.data = config.model_dump(mode="json")
            self.firewall_file.save()
        self.logger.info("Committed firewall configuration")
        self._notify(Messages.FirewallConfigurationChanged())

    def _notify(self, event) -> None:
        # Listeners run on their own thread, as the commit caller may be waiting on them.
        threading.Thread(
            target=self._publish,
            args=(event,),
            name=f"notify-{type(event).__name__}",
            daemon=True,
        ).start()

    def _publish(self, event) -> None:
        try:
            self.bus.handle(event)
        except Exception:
            self.logger.exception(f"Error while publishing {type(event).__name__}")

    def snapshots(self) -> list[int]:
        if not os.path.isdir(self.snapshot_dir):
            return []
        ids = []
        for file_name in os.listdir(self.snapshot_dir):
            if file_name.startswith(SNAPSHOT_PREFIX) and file_name.endswith(".json"):
                try:
                    ids.append(int(file_name[len(SNAPSHOT_PREFIX) : -len(".json")]))
                except ValueError:
                    continue
        return sorted(ids)

    def snapshot_path(self, snapshot_id: int) -> str:
        return os.path.join(self.snapshot_dir, f"{SNAPSHOT_PREFIX}{snapshot_id}.json")

    def checkpoint(self) -> int:
        """
        Writes the committed network and firewall configuration to a new
        numbered snapshot, dropping the oldest beyond max_snapshots.
        :return: The snapshot id.
        """
        with self.lock:
            existing = self.snapshots()
            snapshot_id = int(time.time() * 1000)
            if existing and snapshot_id <= existing[-1]:
                snapshot_id = existing[-1] + 1

            snapshot = ConfigFile(self.snapshot_path(snapshot_id))
            snapshot.data = {
                "network": self.load().model_dump(mode="json"),
                "firewall": self.load_firewall().model_dump(mode="json"),
            }
            snapshot.save()
            self.logger.debug(f"Wrote snapshot {snapshot_id}")

            for old_id in (existing + [snapshot_id])[: -self.max_snapshots]:
                os.remove(self.snapshot_path(old_id))
            return snapshot_id

    def load_snapshot(self, snapshot_id: int) -> Optional[dict]:
        try:
            with open(self.snapshot_path(snapshot_id), "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        return {
            "network": NetworkConfiguration.model_validate(data["network"]),
            "firewall": FirewallConfiguration.model_validate(data["firewall"]),
        }
