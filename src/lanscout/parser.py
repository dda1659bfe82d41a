# lanscout - Scanner Output Parser
"""
Converts nmap output into host and port records.

Two input encodings are accepted:
- raw nmap XML (``-oX -``)
- the JSON produced by an XML-to-JSON converter piped after nmap

Both decode to the same nested dict shape: attributes become keys,
repeated child elements become lists, and element text is stored under
``"_"`` when the element also has attributes. Because the converter only
produces a list when an element repeats, most fields can arrive either as
a single object or as a list; ``classify`` and ``as_list`` give every
field one iteration path.
"""

import json
import logging
import time
import xml.etree.ElementTree as ET
from enum import Enum
from typing import Any

from .errors import ParseError, PartialRecordSkipped
from .models import HostRecord, PortRecord, ScanResult

logger = logging.getLogger("lanscout.parser")


class Shape(Enum):
    """How many values a converted field holds."""
    NONE = "none"
    SINGLE = "single"
    MULTIPLE = "multiple"


def classify(value: Any) -> Shape:
    """Classify a converted field as absent, a single object, or a list."""
    if isinstance(value, list):
        return Shape.MULTIPLE if value else Shape.NONE
    if isinstance(value, dict):
        return Shape.SINGLE
    return Shape.NONE


def as_list(value: Any) -> list:
    """Normalize a field that may be missing, a single object, or a list."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


def _element_to_value(elem: ET.Element) -> Any:
    children = list(elem)
    text = (elem.text or "").strip()
    if not elem.attrib and not children:
        return text

    node: dict[str, Any] = dict(elem.attrib)
    for child in children:
        value = _element_to_value(child)
        if child.tag in node:
            existing = node[child.tag]
            if isinstance(existing, list):
                existing.append(value)
            else:
                node[child.tag] = [existing, value]
        else:
            node[child.tag] = value
    if text:
        node["_"] = text
    return node


def xml_to_dict(raw: str) -> dict[str, Any]:
    """Convert an XML document into the converter's nested dict shape."""
    root = ET.fromstring(raw.encode("utf-8"))
    return {root.tag: _element_to_value(root)}


def decode(raw: str | bytes) -> dict[str, Any] | None:
    """Decode scanner output (XML or JSON). Returns None for empty output."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    text = raw.strip()
    if not text:
        return None

    try:
        if text.startswith("<"):
            data = xml_to_dict(text)
        else:
            data = json.loads(text)
    except (ET.ParseError, json.JSONDecodeError) as e:
        raise ParseError(f"Undecodable scanner output: {e}") from e

    if data is not None and not isinstance(data, dict):
        raise ParseError(f"Unexpected top-level output type: {type(data).__name__}")
    return data


def _to_int(value: Any) -> int | str | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


class OutputParser:
    """Tolerant parser for nmap run reports."""

    def __init__(self, clock=time.time):
        self._clock = clock

    def parse(self, raw: str | bytes, require_mac: bool = False) -> ScanResult:
        """
        Parse scanner output into a ScanResult.

        Raises ParseError only when the output cannot be decoded at all. A
        missing run report or host list yields an empty result, and a
        malformed host entry is logged and skipped.
        """
        data = decode(raw)
        if not data:
            return ScanResult()

        run = data.get("nmaprun")
        if not isinstance(run, dict):
            logger.debug("No nmaprun report in scanner output")
            return ScanResult()

        result = ScanResult()
        for entry in as_list(run.get("host")):
            try:
                host, ports = self.parse_host(entry, require_mac)
            except PartialRecordSkipped as e:
                logger.warning(f"Skipping host entry: {e}")
                continue
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed host entry: {e!r}")
                continue
            if host is None:
                continue
            result.hosts.append(host)
            result.ports.extend(ports)
        return result

    def parse_host(
        self, entry: dict[str, Any], require_mac: bool = False
    ) -> tuple[HostRecord | None, list[PortRecord]]:
        """Build a host record and its ports from one converted host entry."""
        if not isinstance(entry, dict):
            raise PartialRecordSkipped(f"host entry is {type(entry).__name__}, not an object")

        fields: dict[str, Any] = {}

        # More than one hostname is ambiguous, so only a single entry is used
        hostnames = entry.get("hostnames")
        if classify(hostnames) == Shape.SINGLE:
            hostname = hostnames.get("hostname")
            if classify(hostname) == Shape.SINGLE:
                fields["hostname"] = hostname.get("name")
                fields["hostname_type"] = hostname.get("type")

        for addr in as_list(entry.get("address")):
            addrtype = addr.get("addrtype")
            if addrtype == "ipv4":
                fields["ipv4_addr"] = addr.get("addr")
            elif addrtype == "ipv6":
                fields["ipv6_addr"] = addr.get("addr")
            elif addrtype == "mac":
                mac = addr.get("addr")
                fields["mac"] = mac.upper() if mac else None
                if addr.get("vendor"):
                    fields["mac_vendor"] = addr["vendor"]

        uid = fields.get("ipv4_addr") or fields.get("ipv6_addr")
        if not uid:
            raise PartialRecordSkipped("host entry has no IP address")

        if require_mac and not fields.get("mac"):
            logger.info(f"Skipping host {uid}, no mac address")
            return None, []

        now = self._clock()
        host = HostRecord(uid=uid, last_active_timestamp=now, first_found_timestamp=now, **fields)

        ports_section = entry.get("ports")
        ports = []
        if classify(ports_section) == Shape.SINGLE:
            for port_entry in as_list(ports_section.get("port")):
                ports.append(self.parse_port(host.uid, port_entry))

        self._parse_os(entry, host)

        uptime = entry.get("uptime")
        if classify(uptime) == Shape.SINGLE and uptime.get("seconds") is not None:
            host.uptime = _to_int(uptime["seconds"])

        host.nname = self._parse_netbios_name(entry)
        return host, ports

    def parse_port(self, host_id: str, entry: dict[str, Any]) -> PortRecord:
        portid = _to_int(entry.get("portid"))
        port = PortRecord(
            host_id=host_id,
            uid=f"{host_id}.{portid}",
            protocol=entry.get("protocol"),
            portid=portid,
        )
        service = entry.get("service")
        if classify(service) == Shape.SINGLE:
            port.service_name = service.get("name")
            port.last_active_timestamp = self._clock()
        state = entry.get("state")
        if classify(state) == Shape.SINGLE:
            port.state = state.get("state")
        return port

    def _parse_os(self, entry: dict[str, Any], host: HostRecord) -> None:
        os_section = entry.get("os")
        if classify(os_section) != Shape.SINGLE:
            return
        matches = as_list(os_section.get("osmatch"))
        if not matches or not isinstance(matches[0], dict):
            return
        # nmap lists matches best first
        best = matches[0]
        host.os_match = best.get("name")
        host.os_accuracy = best.get("accuracy")
        if best.get("osclass") is not None:
            host.os_class = json.dumps(best["osclass"])

    def _parse_netbios_name(self, entry: dict[str, Any]) -> str | None:
        hostscript = entry.get("hostscript")
        if classify(hostscript) != Shape.SINGLE:
            return None
        try:
            for script in as_list(hostscript.get("script")):
                if not isinstance(script, dict) or script.get("id") != "nbstat":
                    continue
                for elem in as_list(script.get("elem")):
                    if isinstance(elem, dict) and elem.get("key") == "server_name":
                        return elem.get("_")
        except (AttributeError, TypeError) as e:
            logger.info(f"NetBIOS name extraction failed: {e!r}")
        return None
