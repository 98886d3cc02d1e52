"""QoS rules and packet filters sent to the UE (TS 24.501 9.11.4.13)."""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from smfcore.models import FlowDirection, FlowInformation, PccRule, QosData
from smfcore.qos_flow import get_qos_data_from_policy_decision, get_qos_flow_id_from_qos_id
from smfcore.updates import PolicyUpdate

log = logging.getLogger(__name__)

# Rule operation codes.
OPERATION_CODE_CREATE_NEW_QOS_RULE = 1
OPERATION_CODE_DELETE_EXISTING_QOS_RULE = 2
OPERATION_CODE_MODIFY_AND_ADD_PACKET_FILTERS = 3
OPERATION_CODE_MODIFY_AND_REPLACE_ALL_PACKET_FILTERS = 4
OPERATION_CODE_MODIFY_AND_DELETE_PACKET_FILTERS = 5
OPERATION_CODE_MODIFY_WITHOUT_MODIFYING_PACKET_FILTERS = 6

# Packet filter directions.
PACKET_FILTER_DIRECTION_DOWNLINK = 1
PACKET_FILTER_DIRECTION_UPLINK = 2
PACKET_FILTER_DIRECTION_BIDIRECTIONAL = 3

# Packet filter component types (TS 24.501 Table 9.11.4.13.1).
PFC_TYPE_MATCH_ALL = 0x01
PFC_TYPE_IPV4_REMOTE_ADDRESS = 0x10
PFC_TYPE_IPV4_LOCAL_ADDRESS = 0x11
PFC_TYPE_IPV6_REMOTE_ADDRESS = 0x21
PFC_TYPE_IPV6_LOCAL_ADDRESS = 0x23
PFC_TYPE_PROTOCOL_ID_OR_NEXT_HEADER = 0x30
PFC_TYPE_SINGLE_LOCAL_PORT = 0x40
PFC_TYPE_LOCAL_PORT_RANGE = 0x41
PFC_TYPE_SINGLE_REMOTE_PORT = 0x50
PFC_TYPE_REMOTE_PORT_RANGE = 0x51
PFC_TYPE_SECURITY_PARAMETER_INDEX = 0x60
PFC_TYPE_TYPE_OF_SERVICE_OR_TRAFFIC_CLASS = 0x70
PFC_TYPE_FLOW_LABEL = 0x80
PFC_TYPE_DESTINATION_MAC_ADDRESS = 0x81
PFC_TYPE_SOURCE_MAC_ADDRESS = 0x82
PFC_TYPE_8021Q_CTAG_VID = 0x83
PFC_TYPE_8021Q_STAG_VID = 0x84
PFC_TYPE_8021Q_CTAG_PCP_OR_DEI = 0x85
PFC_TYPE_8021Q_STAG_PCP_OR_DEI = 0x86
PFC_TYPE_ETHERTYPE = 0x87

PACKET_FILTER_ID_BITMASK = 0x0F

# Encoded lengths of each component kind (type octet included).
_PROTOCOL_ID_LEN = 2
_ADDRESS_LEN = 9
_PORT_LEN = 3
_PORT_RANGE_LEN = 5

_INTEGER = re.compile(r"[+-]?\d+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

_DIRECTIONS = {
    FlowDirection.UPLINK: PACKET_FILTER_DIRECTION_UPLINK,
    FlowDirection.DOWNLINK: PACKET_FILTER_DIRECTION_DOWNLINK,
    FlowDirection.BIDIRECTIONAL: PACKET_FILTER_DIRECTION_BIDIRECTIONAL,
}


def _atoi(text: str) -> Optional[int]:
    if not _INTEGER.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def _uint16_bytes(value: int) -> bytes:
    value &= 0xFFFF
    return bytes([value >> 8, value & 0xFF])


@dataclass
class PortRange:
    low: str = ""
    high: str = ""


@dataclass
class Ipv4Filter:
    """Address part of an IP filter: a dotted address or keyword, and mask bits."""

    addr: str = ""
    mask: str = ""


@dataclass
class IPFilterRule:
    """Decoded IPFilterRule flow description (TS 29.212 5.4.2)."""

    protocol_id: str = ""
    source: Ipv4Filter = field(default_factory=Ipv4Filter)
    destination: Ipv4Filter = field(default_factory=Ipv4Filter)
    source_port: str = ""
    destination_port: str = ""
    source_port_range: PortRange = field(default_factory=PortRange)
    destination_port_range: PortRange = field(default_factory=PortRange)

    def is_match_all(self) -> bool:
        return self.source.addr == "any" and self.destination.addr == "assigned"


@dataclass
class PacketFilterComponent:
    component_type: int = 0
    value: bytes = b""


@dataclass
class PacketFilter:
    direction: int = 0
    identifier: int = 0
    content_length: int = 0
    content: list[PacketFilterComponent] = field(default_factory=list)

    def set_content(self, flow_desc: str) -> None:
        """Replace the components with those of a flow description.

        The encoded size of the new components is added to ``content_length``.
        """
        ipf = decode_flow_desc_to_ip_filters(flow_desc)
        if ipf.is_match_all():
            self.content = [PacketFilterComponent(PFC_TYPE_MATCH_ALL)]
            self.content_length = (self.content_length + 1) & 0xFF
            return

        candidates = [
            (build_pfc_protocol_id(ipf.protocol_id), _PROTOCOL_ID_LEN),
            (_build_address(False, ipf.source), _ADDRESS_LEN),
            (_build_port(False, ipf.source_port), _PORT_LEN),
            (_build_port_range(False, ipf.source_port_range), _PORT_RANGE_LEN),
            (_build_address(True, ipf.destination), _ADDRESS_LEN),
            (_build_port(True, ipf.destination_port), _PORT_LEN),
            (_build_port_range(True, ipf.destination_port_range), _PORT_RANGE_LEN),
        ]
        components = [component for component, _ in candidates if component is not None]
        length = sum(size for component, size in candidates if component is not None)
        self.content = components
        self.content_length = (self.content_length + length) & 0xFF

    def to_bytes(self) -> bytes:
        header = ((self.direction << 4) | self.identifier) & 0xFF
        out = bytearray([header, self.content_length & 0xFF])
        for component in self.content:
            out.append(component.component_type & 0xFF)
            out += component.value
        return bytes(out)


@dataclass
class QosRule:
    identifier: int = 0
    operation_code: int = 0
    dqr: int = 0
    segregation: int = 0
    packet_filter_list: list[PacketFilter] = field(default_factory=list)
    precedence: int = 0
    qfi: int = 0
    length: int = 0

    def build_packet_filter_list(self, pcc_rule: PccRule) -> None:
        self.packet_filter_list = [
            get_packet_filter_from_flow_info(flow) for flow in pcc_rule.flow_infos
        ]

    def to_bytes(self) -> bytes:
        header = (
            (self.operation_code << 5) | (self.dqr << 4) | len(self.packet_filter_list)
        ) & 0xFF
        content = bytearray([header])
        for packet_filter in self.packet_filter_list:
            content += packet_filter.to_bytes()
        content.append(self.precedence & 0xFF)
        content.append(((self.segregation << 6) | self.qfi) & 0xFF)
        return bytes([self.identifier & 0xFF]) + _uint16_bytes(len(content)) + bytes(content)


class QosRules(list):
    """An ordered list of QoS rules forming the QoS rules IE content."""

    def to_bytes(self) -> bytes:
        return b"".join(rule.to_bytes() for rule in self)


def build_add_default_qos_rule(def_qfi: int) -> QosRule:
    """Match-all default rule with the highest precedence value."""
    packet_filter = PacketFilter(
        direction=PACKET_FILTER_DIRECTION_BIDIRECTIONAL,
        identifier=255,
        content_length=0x01,
        content=[PacketFilterComponent(PFC_TYPE_MATCH_ALL)],
    )
    return QosRule(
        identifier=255,
        dqr=0x01,
        operation_code=OPERATION_CODE_CREATE_NEW_QOS_RULE,
        precedence=255,
        qfi=def_qfi,
        packet_filter_list=[packet_filter],
    )


def build_qos_rules(policy_update: PolicyUpdate) -> QosRules:
    """Build a QoS rule for every PCC rule being added."""
    rules = QosRules()
    update = policy_update.pcc_rule_update
    if update is None:
        return rules
    decision = policy_update.sm_policy_decision
    for name, pcc_rule in update.add.items():
        log.info("Building QoS Rule from PCC rule [%s]", name)
        if not pcc_rule.ref_qos_data:
            raise LookupError(f"PCC rule {name!r} references no QoS data")
        ref = pcc_rule.ref_qos_data[0]
        qos_data = None if decision is None else get_qos_data_from_policy_decision(decision, ref)
        if qos_data is None:
            raise LookupError(f"QoS data {ref!r} of PCC rule {name!r} not in policy decision")
        rules.append(
            build_add_qos_rule_from_pcc_rule(pcc_rule, qos_data, OPERATION_CODE_CREATE_NEW_QOS_RULE)
        )
    return rules


def build_add_qos_rule_from_pcc_rule(pcc_rule: PccRule, qos_data: QosData, op_code: int) -> QosRule:
    rule = QosRule(
        identifier=get_qos_rule_id_from_pcc_rule_id(pcc_rule.pcc_rule_id),
        dqr=1 if qos_data.def_qos_flow_indication else 0,
        operation_code=op_code,
        precedence=pcc_rule.precedence & 0xFF,
        qfi=get_qos_flow_id_from_qos_id(qos_data.qos_id),
    )
    rule.build_packet_filter_list(pcc_rule)
    return rule


def get_qos_rule_id_from_pcc_rule_id(pcc_rule_id: str) -> int:
    """Numeric PCC rule id as an octet; 0 when the id is not a number."""
    value = _atoi(pcc_rule_id)
    return 0 if value is None else value & 0xFF


def get_packet_filter_from_flow_info(flow_info: FlowInformation) -> PacketFilter:
    packet_filter = PacketFilter(
        identifier=get_pf_id(flow_info.pack_filt_id),
        direction=get_pf_direction(flow_info.flow_direction),
    )
    packet_filter.set_content(flow_info.flow_description)
    return packet_filter


def get_pf_id(value: str) -> int:
    """Packet filter identifier (low four bits); 0 when not a number."""
    number = _atoi(value)
    return 0 if number is None else number & PACKET_FILTER_ID_BITMASK


def get_pf_direction(flow_direction) -> int:
    """Packet filter direction; unknown directions count as bidirectional."""
    try:
        return _DIRECTIONS.get(FlowDirection(flow_direction), PACKET_FILTER_DIRECTION_BIDIRECTIONAL)
    except ValueError:
        return PACKET_FILTER_DIRECTION_BIDIRECTIONAL


def decode_flow_desc_to_ip_filters(flow_desc: str) -> IPFilterRule:
    """Decode ``permit out <proto> from <src> [port] to <dst> [port]``."""
    tags = flow_desc.split()
    if len(tags) < 7:
        raise ValueError(f"incomplete flow description: {flow_desc!r}")
    rule = IPFilterRule(protocol_id=tags[2])
    rule.source = _decode_address(tags[4])
    if tags[6] == "to":
        if len(tags) < 8:
            raise ValueError(f"flow description lacks a destination: {flow_desc!r}")
        _decode_port(rule, True, tags[5])
        rule.destination = _decode_address(tags[7])
        if len(tags) == 9:
            _decode_port(rule, False, tags[8])
    else:
        rule.destination = _decode_address(tags[6])
        if len(tags) == 8:
            _decode_port(rule, False, tags[7])
    return rule


def _decode_address(tag: str) -> Ipv4Filter:
    parts = tag.split("/")
    return Ipv4Filter(addr=parts[0], mask=parts[1] if len(parts) > 1 else "")


def _decode_port(rule: IPFilterRule, source: bool, tag: str) -> None:
    ports = tag.split("-")
    if len(ports) > 1:
        port_range = PortRange(ports[0], ports[1])
        if source:
            rule.source_port_range = port_range
        else:
            rule.destination_port_range = port_range
    elif source:
        rule.source_port = ports[0]
    else:
        rule.destination_port = ports[0]


def _parse_ipv4(text: str) -> Optional[bytes]:
    if "%" in text:
        return None
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv4Address):
        return address.packed
    mapped = address.ipv4_mapped
    return mapped.packed if mapped is not None else None


def _cidr_mask(ones: int) -> bytes:
    if not 0 <= ones <= 32:
        return b""
    return ((0xFFFFFFFF << (32 - ones)) & 0xFFFFFFFF).to_bytes(4, "big")


def _build_address(local: bool, value: Ipv4Filter) -> Optional[PacketFilterComponent]:
    if local:
        component_type = PFC_TYPE_IPV4_LOCAL_ADDRESS
        if value.addr == "assigned":
            return None
    else:
        component_type = PFC_TYPE_IPV4_REMOTE_ADDRESS
        if value.addr == "any":
            return None
    addr = _parse_ipv4(value.addr)
    if addr is None:
        return None
    if value.mask:
        ones = _atoi(value.mask)
        mask = _cidr_mask(0 if ones is None else ones)
    else:
        mask = _cidr_mask(32)
    return PacketFilterComponent(component_type, addr + mask)


def _build_port(local: bool, value: str) -> Optional[PacketFilterComponent]:
    if not value:
        return None
    component_type = PFC_TYPE_SINGLE_LOCAL_PORT if local else PFC_TYPE_SINGLE_REMOTE_PORT
    port = _atoi(value)
    encoded = bytes(2) if port is None else _uint16_bytes(port)
    return PacketFilterComponent(component_type, encoded)


def _build_port_range(local: bool, value: PortRange) -> Optional[PacketFilterComponent]:
    if not value.low or not value.high:
        return None
    component_type = PFC_TYPE_LOCAL_PORT_RANGE if local else PFC_TYPE_REMOTE_PORT_RANGE
    encoded = bytes(4)
    low = _atoi(value.low)
    if low is not None:
        encoded = _uint16_bytes(low)
    high = _atoi(value.high)
    if high is not None:
        encoded += _uint16_bytes(high)
    return PacketFilterComponent(component_type, encoded)


def build_pfc_protocol_id(value: str) -> Optional[PacketFilterComponent]:
    """Protocol identifier component; None for ``ip`` or a non-numeric value."""
    if value == "ip":
        return None
    number = _atoi(value)
    if number is None:
        return None
    return PacketFilterComponent(PFC_TYPE_PROTOCOL_ID_OR_NEXT_HEADER, bytes([number & 0xFF]))