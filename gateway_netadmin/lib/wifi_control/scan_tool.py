import logging
import re
from typing import Optional

from gateway_netadmin import utils
from gateway_netadmin.lib.wifi_control.domain import SecurityFlag, WifiAccessPoint

BSS_PATTERN = re.compile(r"^BSS ([0-9a-fA-F:]{17})")

CIPHERS = {
    "CCMP": "CCMP",
    "TKIP": "TKIP",
    "WEP-40": "WEP40",
    "WEP-104": "WEP104",
}
AUTH_SUITES = {
    "PSK": SecurityFlag.KEY_MGMT_PSK,
    "IEEE 802.1X": SecurityFlag.KEY_MGMT_802_1X,
}


def _cipher_flags(prefix: str, value: str) -> set[SecurityFlag]:
    flags = set()
    for cipher in value.split():
        if cipher in CIPHERS:
            flags.add(SecurityFlag[f"{prefix}_{CIPHERS[cipher]}"])
    return flags


def _security_flags(field: str, value: str) -> set[SecurityFlag]:
    if field == "Group cipher":
        return _cipher_flags("GROUP", value)
    if field == "Pairwise ciphers":
        return _cipher_flags("PAIR", value)
    if field == "Authentication suites":
        return {flag for suite, flag in AUTH_SUITES.items() if suite in value}
    return set()


def parse_scan_output(output: str) -> list[WifiAccessPoint]:
    """Parses the output of `iw dev <interface> scan`"""
    access_points = []
    current: Optional[dict] = None
    section: Optional[str] = None

    def finish():
        if current is not None:
            access_points.append(
                WifiAccessPoint(
                    ssid=current["ssid"],
                    hardware_address=current["hardware_address"],
                    frequency_mhz=current["frequency_mhz"],
                    strength=current["strength"],
                    wpa_security=frozenset(current["WPA"]),
                    rsn_security=frozenset(current["RSN"]),
                    capabilities=tuple(current["capabilities"]),
                )
            )

    for line in output.split("\n"):
        bss = BSS_PATTERN.match(line)
        if bss:
            finish()
            current = {
                "ssid": "",
                "hardware_address": bytes.fromhex(bss.group(1).replace(":", "")),
                "frequency_mhz": 0,
                "strength": 0,
                "WPA": set(),
                "RSN": set(),
                "capabilities": [],
            }
            section = None
            continue
        if current is None or not line.strip():
            continue

        stripped = line.strip()
        if line.startswith("\t") and not line.startswith("\t\t"):
            key, _, value = stripped.partition(":")
            value = value.strip()
            section = None
            if key == "freq":
                current["frequency_mhz"] = int(float(value))
            elif key == "signal":
                current["strength"] = abs(int(float(value.split()[0])))
            elif key == "SSID":
                current["ssid"] = value
            elif key == "capability":
                current["capabilities"] = [
                    word for word in value.split() if not word.startswith("(")
                ]
            elif key in ("WPA", "RSN"):
                section = key
                # The first sub field is printed on the same line
                stripped = value
            else:
                continue

        if section and stripped.startswith("*"):
            field, _, value = stripped.lstrip("* ").partition(":")
            current[section] |= _security_flags(field.strip(), value.strip())

    finish()
    return access_points


class ScanTool:
    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def scan(self, interface_name: str) -> list[WifiAccessPoint]:
        self.logger.info(f"Scanning for access points on {interface_name}")
        result = utils.run_command(["iw", "dev", interface_name, "scan"])
        access_points = parse_scan_output(result.stdout)
        self.logger.debug(f"Found {len(access_points)} access points")
        return access_points
