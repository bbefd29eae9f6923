import logging
import typing as t
from dataclasses import dataclass
from typing import Optional

from gateway_netadmin import utils
from gateway_netadmin.lib.network_config.domain import FirewallConfiguration

# (table, chain, parent chain)
AUTO_NAT_CHAINS = (
    ("nat", "NETADMIN-AUTONAT", "POSTROUTING"),
    ("filter", "NETADMIN-AUTOFWD", "FORWARD"),
)
RULE_CHAINS = (
    ("filter", "NETADMIN-INPUT", "INPUT"),
    ("filter", "NETADMIN-FORWARD", "FORWARD"),
    ("nat", "NETADMIN-PREROUTING", "PREROUTING"),
    ("nat", "NETADMIN-POSTROUTING", "POSTROUTING"),
)


@dataclass(frozen=True)
class NatRule:
    source_interface: str
    destination_interface: str
    masquerade: bool = True


def nat_rule_commands(rule: NatRule) -> list[list[str]]:
    commands = [
        [
            "iptables", "-A", "NETADMIN-AUTOFWD",
            "-i", rule.source_interface, "-o", rule.destination_interface,
            "-j", "ACCEPT",
        ],
        [
            "iptables", "-A", "NETADMIN-AUTOFWD",
            "-i", rule.destination_interface, "-o", rule.source_interface,
            "-m", "state", "--state", "RELATED,ESTABLISHED",
            "-j", "ACCEPT",
        ],
    ]
    if rule.masquerade:
        commands.append(
            [
                "iptables", "-t", "nat", "-A", "NETADMIN-AUTONAT",
                "-o", rule.destination_interface, "-j", "MASQUERADE",
            ]
        )
    return commands


def firewall_rule_commands(config: FirewallConfiguration) -> list[list[str]]:
    """iptables commands for the user defined open ports, forwards and NAT rules"""
    commands = []
    for open_port in config.open_ports:
        command = ["iptables", "-A", "NETADMIN-INPUT", "-p", open_port.protocol]
        if open_port.permitted_interface:
            command += ["-i", open_port.permitted_interface]
        if open_port.unpermitted_interface:
            command += ["!", "-i", open_port.unpermitted_interface]
        command += [
            "-s", open_port.permitted_network,
            "--dport", open_port.port,
            "-j", "ACCEPT",
        ]
        commands.append(command)

    for forward in config.port_forwards:
        commands.append(
            [
                "iptables", "-t", "nat", "-A", "NETADMIN-PREROUTING",
                "-i", forward.inbound_interface, "-p", forward.protocol,
                "-s", forward.permitted_network,
                "--dport", str(forward.in_port),
                "-j", "DNAT", "--to-destination", f"{forward.address}:{forward.out_port}",
            ]
        )
        commands.append(
            [
                "iptables", "-A", "NETADMIN-FORWARD",
                "-i", forward.inbound_interface, "-o", forward.outbound_interface,
                "-p", forward.protocol, "-d", forward.address,
                "--dport", str(forward.out_port),
                "-j", "ACCEPT",
            ]
        )
        if forward.masquerade:
            commands.append(
                [
                    "iptables", "-t", "nat", "-A", "NETADMIN-POSTROUTING",
                    "-o", forward.outbound_interface, "-p", forward.protocol,
                    "-d", forward.address, "--dport", str(forward.out_port),
                    "-j", "MASQUERADE",
                ]
            )

    for nat in config.nat:
        command = [
            "iptables", "-A", "NETADMIN-FORWARD",
            "-i", nat.source_interface, "-o", nat.destination_interface,
        ]
        if nat.protocol:
            command += ["-p", nat.protocol]
        if nat.source:
            command += ["-s", nat.source]
        if nat.destination:
            command += ["-d", nat.destination]
        commands.append(command + ["-j", "ACCEPT"])
        if nat.masquerade:
            command = [
                "iptables", "-t", "nat", "-A", "NETADMIN-POSTROUTING",
                "-o", nat.destination_interface,
            ]
            if nat.source:
                command += ["-s", nat.source]
            commands.append(command + ["-j", "MASQUERADE"])
    return commands


class FirewallManager:
    """
    Keeps our rules in dedicated iptables chains hooked into the built-in ones,
    so other rules on the host are never touched.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.logger.info(f"Initializing {__name__}")

    def ensure_chains(self, chains: t.Iterable[tuple[str, str, str]]) -> None:
        for table, chain, parent in chains:
            # -N fails if the chain already exists
            utils.run_command(["iptables", "-t", table, "-N", chain], raise_on_fail=False)
            hooked = utils.run_command(
                ["iptables", "-t", table, "-C", parent, "-j", chain], raise_on_fail=False
            )
            if not hooked.success:
                utils.run_command(["iptables", "-t", table, "-A", parent, "-j", chain])

    def flush_chains(self, chains: t.Iterable[tuple[str, str, str]]) -> None:
        for table, chain, _ in chains:
            utils.run_command(["iptables", "-t", table, "-F", chain])

    def replace_all_nat_rules(self, rules: t.Iterable[NatRule]) -> None:
        rules = list(rules)
        self.logger.info(f"Replacing automatic NAT rules with {len(rules)} rule(s)")
        self.ensure_chains(AUTO_NAT_CHAINS)
        self.flush_chains(AUTO_NAT_CHAINS)
        for rule in rules:
            for command in nat_rule_commands(rule):
                utils.run_command(command)

    def delete_all_auto_nat_rules(self) -> None:
        self.logger.info("Deleting all automatic NAT rules")
        self.ensure_chains(AUTO_NAT_CHAINS)
        self.flush_chains(AUTO_NAT_CHAINS)

    def enable(self, config: Optional[FirewallConfiguration] = None) -> None:
        """Turns on forwarding and (re)applies the user defined rules."""
        self.logger.info("Enabling firewall")
        self.ensure_chains(RULE_CHAINS)
        self.flush_chains(RULE_CHAINS)
        if config is not None:
            for command in firewall_rule_commands(config):
                utils.run_command(command)
        utils.run_command(["sysctl", "-w", "net.ipv4.ip_forward=1"])
