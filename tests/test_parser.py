"""Tests for the scanner output parser."""

import json

import pytest

from lanscout.errors import ParseError
from lanscout.parser import OutputParser, Shape, as_list, classify, xml_to_dict


NOW = 1_700_000_000.0

SAMPLE_NMAP_XML = '''<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE nmaprun>
<nmaprun scanner="nmap" args="nmap -sU -n --script nbstat.nse -p 137 192.168.1.0/24 -oX -" start="1700000000" version="7.94">
<scaninfo type="udp" protocol="udp" numservices="1" services="137"/>
<host starttime="1700000001" endtime="1700000002"><status state="up" reason="udp-response" reason_ttl="128"/>
<address addr="192.168.1.10" addrtype="ipv4"/>
<address addr="b8:27:eb:12:34:56" addrtype="mac" vendor="Raspberry Pi Foundation"/>
<hostnames>
<hostname name="pi.lan" type="PTR"/>
</hostnames>
<ports><port protocol="udp" portid="137"><state state="open" reason="udp-response" reason_ttl="128"/><service name="netbios-ns" method="table" conf="3"/></port>
<port protocol="tcp" portid="22"><state state="open" reason="syn-ack" reason_ttl="64"/></port>
</ports>
<os><osmatch name="Linux 5.0 - 5.14" accuracy="98" line="1"><osclass type="general purpose" vendor="Linux" osfamily="Linux" osgen="5.X" accuracy="98"/></osmatch>
<osmatch name="Linux 4.15" accuracy="91" line="2"/></os>
<uptime seconds="86400" lastboot="Tue Nov 14 00:00:00 2023"/>
<hostscript><script id="nbstat" output="NetBIOS name: PI, NetBIOS user: &lt;unknown&gt;"><elem key="server_name">PI</elem>
<elem key="user">&lt;unknown&gt;</elem>
</script></hostscript>
</host>
<host><status state="up" reason="arp-response" reason_ttl="0"/>
<address addr="192.168.1.20" addrtype="ipv4"/>
<hostnames/>
</host>
<runstats><finished time="1700000010" elapsed="9.50"/><hosts up="2" down="254" total="256"/></runstats>
</nmaprun>
'''


def host_entry(ip="10.0.0.5", mac=None, **extra):
    addresses = [{"addr": ip, "addrtype": "ipv4"}]
    if mac:
        addresses.append({"addr": mac, "addrtype": "mac", "vendor": "Acme"})
    entry = {"status": {"state": "up"}, "address": addresses}
    entry.update(extra)
    return entry


def payload(hosts):
    return json.dumps({"nmaprun": {"scanner": "nmap", "host": hosts}})


@pytest.fixture
def parser():
    return OutputParser(clock=lambda: NOW)


class TestShapes:
    """Test field shape classification."""

    def test_classify(self):
        assert classify(None) == Shape.NONE
        assert classify("") == Shape.NONE
        assert classify([]) == Shape.NONE
        assert classify({"name": "a"}) == Shape.SINGLE
        assert classify([{"name": "a"}, {"name": "b"}]) == Shape.MULTIPLE

    def test_as_list(self):
        assert as_list(None) == []
        assert as_list("") == []
        assert as_list({"a": 1}) == [{"a": 1}]
        assert as_list([1, 2]) == [1, 2]

    def test_xml_to_dict_shape(self):
        data = xml_to_dict('<a x="1"><b>text</b><c y="2">inner</c><d/><d/></a>')
        assert data == {"a": {"x": "1", "b": "text", "c": {"y": "2", "_": "inner"}, "d": ["", ""]}}


class TestOutputParser:
    """Test host and port extraction."""

    def test_parse_nmap_xml(self, parser):
        """Full XML report with hostname, ports, OS and NetBIOS name."""
        result = parser.parse(SAMPLE_NMAP_XML)

        assert [h.uid for h in result.hosts] == ["192.168.1.10", "192.168.1.20"]
        pi = result.hosts[0]
        assert pi.ipv4_addr == "192.168.1.10"
        assert pi.mac == "B8:27:EB:12:34:56"
        assert pi.mac_vendor == "Raspberry Pi Foundation"
        assert pi.hostname == "pi.lan"
        assert pi.hostname_type == "PTR"
        assert pi.os_match == "Linux 5.0 - 5.14"
        assert pi.os_accuracy == "98"
        assert json.loads(pi.os_class)["osfamily"] == "Linux"
        assert pi.uptime == 86400
        assert pi.nname == "PI"
        assert pi.first_found_timestamp == NOW
        assert pi.last_active_timestamp == NOW

    def test_parse_ports(self, parser):
        result = parser.parse(SAMPLE_NMAP_XML)

        assert len(result.ports) == 2
        netbios, ssh = result.ports
        assert netbios.uid == "192.168.1.10.137"
        assert netbios.host_id == "192.168.1.10"
        assert netbios.protocol == "udp"
        assert netbios.portid == 137
        assert netbios.state == "open"
        assert netbios.service_name == "netbios-ns"
        assert netbios.last_active_timestamp == NOW
        assert ssh.uid == "192.168.1.10.22"
        assert ssh.service_name is None
        assert ssh.last_active_timestamp is None

    def test_empty_hostnames_element(self, parser):
        result = parser.parse(SAMPLE_NMAP_XML)
        assert result.hosts[1].hostname is None

    def test_single_host_matches_one_element_list(self, parser):
        """A single host object and a one-element host list parse identically."""
        entry = host_entry(
            mac="aa:bb:cc:dd:ee:ff",
            hostnames={"hostname": {"name": "printer", "type": "PTR"}},
            ports={"port": {"protocol": "tcp", "portid": "631", "state": {"state": "open"}}},
        )

        single = parser.parse(payload(entry))
        listed = parser.parse(payload([entry]))

        assert [h.to_dict() for h in single.hosts] == [h.to_dict() for h in listed.hosts]
        assert [p.to_dict() for p in single.ports] == [p.to_dict() for p in listed.ports]
        assert len(single.hosts) == 1

    def test_minimal_host(self, parser):
        """A host with no optional sections keeps only identity and timestamps."""
        entry = {"address": {"addr": "10.0.0.5", "addrtype": "ipv4"}}

        result = parser.parse(payload(entry))

        assert result.ports == []
        assert result.hosts[0].to_dict() == {
            "uid": "10.0.0.5",
            "ipv4_addr": "10.0.0.5",
            "last_active_timestamp": NOW,
            "first_found_timestamp": NOW,
        }

    def test_require_mac_filters_hosts(self, parser):
        raw = payload([host_entry("10.0.0.5"), host_entry("10.0.0.6", mac="aa:bb:cc:dd:ee:ff")])

        result = parser.parse(raw, require_mac=True)

        assert len(result.hosts) == 1
        assert result.hosts[0].uid == "10.0.0.6"
        assert result.hosts[0].mac == "AA:BB:CC:DD:EE:FF"

    def test_require_mac_drops_ports_of_skipped_host(self, parser):
        entry = host_entry("10.0.0.5", ports={"port": {"protocol": "tcp", "portid": "80"}})
        result = parser.parse(payload(entry), require_mac=True)
        assert result.hosts == []
        assert result.ports == []

    def test_multiple_hostnames_are_skipped(self, parser):
        entry = host_entry(hostnames={"hostname": [
            {"name": "a.lan", "type": "PTR"},
            {"name": "b.lan", "type": "user"},
        ]})

        result = parser.parse(payload(entry))

        assert result.hosts[0].hostname is None
        assert result.hosts[0].hostname_type is None

    def test_ipv6_solicit_result(self, parser):
        """Neighbor solicitation reports carry an IPv6 address instead of IPv4."""
        entry = {"address": [
            {"addr": "fe80::1", "addrtype": "ipv6"},
            {"addr": "aa:bb:cc:dd:ee:ff", "addrtype": "mac"},
        ]}

        result = parser.parse(payload(entry), require_mac=True)

        assert result.hosts[0].uid == "fe80::1"
        assert result.hosts[0].ipv4_addr is None
        assert result.hosts[0].mac == "AA:BB:CC:DD:EE:FF"

    def test_malformed_host_is_skipped(self, parser):
        """One bad entry never aborts the batch."""
        raw = payload([
            "garbage",
            {"address": ["not-an-object"]},
            {"status": {"state": "up"}},
            host_entry("10.0.0.7"),
        ])

        result = parser.parse(raw)

        assert [h.uid for h in result.hosts] == ["10.0.0.7"]

    def test_netbios_script_matched_by_id(self, parser):
        entry = host_entry(hostscript={"script": [
            {"id": "smb-os-discovery", "elem": {"key": "server_name", "_": "WRONG"}},
            {"id": "nbstat", "elem": [{"key": "user", "_": "bob"}, {"key": "server_name", "_": "DESKTOP-1"}]},
        ]})

        result = parser.parse(payload(entry))

        assert result.hosts[0].nname == "DESKTOP-1"

    def test_netbios_other_script_ignored(self, parser):
        entry = host_entry(hostscript={"script": {"id": "smb-os-discovery", "elem": {"key": "server_name", "_": "X"}}})
        result = parser.parse(payload(entry))
        assert result.hosts[0].nname is None

    def test_missing_run_report_is_empty(self, parser):
        assert parser.parse("").hosts == []
        assert parser.parse(json.dumps({"other": {}})).hosts == []
        assert parser.parse(json.dumps({"nmaprun": {"scanner": "nmap"}})).hosts == []
        assert parser.parse("<nmaprun scanner=\"nmap\"/>").hosts == []

    def test_undecodable_output_raises(self, parser):
        with pytest.raises(ParseError):
            parser.parse("this is not scanner output")
        with pytest.raises(ParseError):
            parser.parse("<nmaprun><host>")
        with pytest.raises(ParseError):
            parser.parse("[1, 2, 3]")

    def test_bytes_input(self, parser):
        result = parser.parse(SAMPLE_NMAP_XML.encode())
        assert len(result.hosts) == 2
