import logging
import typing as t
from dataclasses import dataclass

from gateway_netadmin.lib.network_config.domain import (
    AddressConfig,
    ConfigItemBase,
    InterfaceConfig,
    InterfaceType,
    InterfaceUpdate,
    NetworkConfiguration,
    WifiConfig,
    WifiMode,
)
from gateway_netadmin.models.exceptions import (
    ConfigurationError,
    RequiredAttributeMissingError,
)
from gateway_netadmin.utils import get_full_class_name

# Item kinds the merge manages for each interface type. Anything else in a
# stored AddressConfig is carried through untouched.
SLOTS_BY_TYPE: dict[InterfaceType, tuple[str, ...]] = {
    InterfaceType.ETHERNET: ("ipv4", "ipv6", "dhcp_server", "auto_nat"),
    InterfaceType.WIFI: ("ipv4", "ipv6", "dhcp_server", "auto_nat", "wifi"),
    InterfaceType.MODEM: ("ipv4", "ipv6", "modem"),
}

SCALAR_FIELDS: dict[InterfaceType, tuple[str, ...]] = {
    InterfaceType.ETHERNET: ("mtu", "auto_connect"),
    InterfaceType.WIFI: ("auto_connect",),
    InterfaceType.MODEM: ("mtu", "auto_connect", "modem_identifier", "ppp_number"),
}

# Stored None compares equal to these update values
UNSET_SCALARS = {"modem_identifier": ""}


@dataclass(frozen=True)
class MergeResult:
    configuration: NetworkConfiguration
    modified_interfaces: frozenset

    @property
    def modified(self) -> bool:
        return bool(self.modified_interfaces)


class ConfigMerger:
    """
    Merges the desired items of one interface into a committed
    NetworkConfiguration. Works on copies only; committing is up to the caller.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def merge(
        self,
        interface_name: str,
        update: InterfaceUpdate,
        desired_items: t.Sequence[ConfigItemBase],
        current: NetworkConfiguration,
    ) -> MergeResult:
        desired = self.classify(update.type, desired_items)
        active_mode = desired["wifi"].mode if "wifi" in desired else None

        interfaces = []
        modified_interfaces = set()
        for interface in current.interfaces:
            if interface.name != interface_name:
                interfaces.append(interface)
                continue
            if interface.type != update.type:
                self.logger.warning(
                    f"{interface_name} is a {interface.type.value} interface, not {update.type.value}. Leaving it alone."
                )
                interfaces.append(interface)
                continue

            new_interface, changed = self.merge_interface(
                interface, update, desired, active_mode
            )
            interfaces.append(new_interface)
            if changed:
                modified_interfaces.add(interface_name)

        if current.get(interface_name) is None:
            self.logger.warning(f"No configuration found for {interface_name}")

        if not modified_interfaces:
            return MergeResult(current, frozenset())
        return MergeResult(
            current.model_copy(update={"interfaces": tuple(interfaces)}),
            frozenset(modified_interfaces),
        )

    def classify(
        self, interface_type: InterfaceType, desired_items: t.Sequence[ConfigItemBase]
    ) -> dict[str, ConfigItemBase]:
        """
        Validates the desired items and sorts them into slots, keeping caller order.
        Raises before anything is merged.
        """
        for item in desired_items:
            if not item.is_valid():
                raise ConfigurationError(
                    f"Invalid {get_full_class_name(item)}: {item!r}", item=item
                )

        slots: dict[str, ConfigItemBase] = {}
        for item in desired_items:
            if item.kind in slots:
                raise ConfigurationError(
                    f"More than one {item.kind} configuration given", item=item
                )
            slots[item.kind] = item

        if "ipv4" not in slots and "ipv6" not in slots:
            raise RequiredAttributeMissingError(
                "Either IPv4 or IPv6 configuration must be defined"
            )
        if interface_type == InterfaceType.WIFI and "wifi" not in slots:
            raise RequiredAttributeMissingError("WiFi configuration must be defined")
        if interface_type == InterfaceType.MODEM and "modem" not in slots:
            raise RequiredAttributeMissingError("Modem configuration must be defined")

        recognized = SLOTS_BY_TYPE[interface_type]
        for kind in list(slots):
            if kind not in recognized:
                self.logger.info(
                    f"Ignoring {kind} configuration, not supported on {interface_type.value} interfaces"
                )
                del slots[kind]
        return slots

    def merge_interface(
        self,
        interface: InterfaceConfig,
        update: InterfaceUpdate,
        desired: dict[str, ConfigItemBase],
        active_mode: t.Optional[WifiMode],
    ) -> tuple[InterfaceConfig, bool]:
        changed = False
        scalars = {}
        for field in SCALAR_FIELDS[update.type]:
            value = getattr(update, field)
            if value is None:
                continue
            stored = getattr(interface, field)
            if stored is None:
                stored = UNSET_SCALARS.get(field)
            if stored != value:
                self.logger.debug(f"{interface.name}: {field} {stored!r} -> {value!r}")
                scalars[field] = value
                changed = True

        addresses = []
        for address in interface.addresses or (AddressConfig(),):
            new_address, address_changed = self.merge_address(
                interface, address, desired, active_mode
            )
            addresses.append(new_address)
            changed = changed or address_changed

        if not changed:
            return interface, False
        scalars["addresses"] = tuple(addresses)
        return interface.model_copy(update=scalars), True

    def merge_address(
        self,
        interface: InterfaceConfig,
        address: AddressConfig,
        desired: dict[str, ConfigItemBase],
        active_mode: t.Optional[WifiMode],
    ) -> tuple[AddressConfig, bool]:
        recognized = SLOTS_BY_TYPE[interface.type]
        items = []
        matched = set()
        changed = False

        for existing in address.items:
            kind = existing.kind
            if kind not in recognized:
                self.logger.info(
                    f"{interface.name}: carrying unsupported {kind} configuration through"
                )
                items.append(existing)
                continue

            # Other Wi-Fi modes keep their configuration
            if isinstance(existing, WifiConfig) and existing.mode != active_mode:
                items.append(existing)
                continue

            if kind in matched:
                self.logger.warning(
                    f"{interface.name}: dropping duplicate {kind} configuration"
                )
                changed = True
                continue

            replacement = desired.get(kind)
            if replacement is None:
                self.logger.debug(f"{interface.name}: removing {kind} configuration")
                changed = True
                continue

            items.append(replacement)
            matched.add(kind)
            if existing != replacement:
                self.logger.debug(f"{interface.name}: replacing {kind} configuration")
                changed = True

        for kind, item in desired.items():
            if kind not in matched:
                self.logger.debug(f"{interface.name}: adding {kind} configuration")
                items.append(item)
                changed = True

        wifi_mode = address.wifi_mode
        if interface.type == InterfaceType.WIFI and wifi_mode != active_mode:
            wifi_mode = active_mode
            changed = True

        if not changed:
            return address, False
        return AddressConfig(items=tuple(items), wifi_mode=wifi_mode), True
