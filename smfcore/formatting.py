"""Human-readable renderings of policy data, QoS rules and flow descriptions."""

from __future__ import annotations

from typing import Callable, Iterable, Optional

from smfcore.models import (
    Ambr,
    Arp,
    AuthorizedDefaultQos,
    FlowDirection,
    FlowInformation,
    FlowStatus,
    PccRule,
    PreemptionCapability,
    PreemptionVulnerability,
    QosData,
    SessionRule,
    SmPolicyDecision,
    TrafficControlData,
)
from smfcore.qos_flow import QosFlowDescription, QosFlowParameter
from smfcore.qos_rule import (
    OPERATION_CODE_CREATE_NEW_QOS_RULE,
    OPERATION_CODE_DELETE_EXISTING_QOS_RULE,
    OPERATION_CODE_MODIFY_AND_ADD_PACKET_FILTERS,
    OPERATION_CODE_MODIFY_AND_DELETE_PACKET_FILTERS,
    OPERATION_CODE_MODIFY_AND_REPLACE_ALL_PACKET_FILTERS,
    OPERATION_CODE_MODIFY_WITHOUT_MODIFYING_PACKET_FILTERS,
    PACKET_FILTER_DIRECTION_BIDIRECTIONAL,
    PACKET_FILTER_DIRECTION_DOWNLINK,
    PACKET_FILTER_DIRECTION_UPLINK,
    PFC_TYPE_8021Q_CTAG_PCP_OR_DEI,
    PFC_TYPE_8021Q_CTAG_VID,
    PFC_TYPE_8021Q_STAG_PCP_OR_DEI,
    PFC_TYPE_8021Q_STAG_VID,
    PFC_TYPE_DESTINATION_MAC_ADDRESS,
    PFC_TYPE_ETHERTYPE,
    PFC_TYPE_FLOW_LABEL,
    PFC_TYPE_IPV4_LOCAL_ADDRESS,
    PFC_TYPE_IPV4_REMOTE_ADDRESS,
    PFC_TYPE_IPV6_LOCAL_ADDRESS,
    PFC_TYPE_IPV6_REMOTE_ADDRESS,
    PFC_TYPE_LOCAL_PORT_RANGE,
    PFC_TYPE_MATCH_ALL,
    PFC_TYPE_PROTOCOL_ID_OR_NEXT_HEADER,
    PFC_TYPE_REMOTE_PORT_RANGE,
    PFC_TYPE_SECURITY_PARAMETER_INDEX,
    PFC_TYPE_SINGLE_LOCAL_PORT,
    PFC_TYPE_SINGLE_REMOTE_PORT,
    PFC_TYPE_SOURCE_MAC_ADDRESS,
    PFC_TYPE_TYPE_OF_SERVICE_OR_TRAFFIC_CLASS,
    IPFilterRule,
    PacketFilter,
    PacketFilterComponent,
    QosRule,
)
from smfcore.updates import Changes, PolicyUpdate

_NIL = "<nil>"

_RULE_OPERATIONS = {
    OPERATION_CODE_CREATE_NEW_QOS_RULE: "CreateNewQoSRule",
    OPERATION_CODE_DELETE_EXISTING_QOS_RULE: "DeleteExistingQoSRule",
    OPERATION_CODE_MODIFY_AND_ADD_PACKET_FILTERS: "ModifyExistingQoSRuleAndAddPacketFilters",
    OPERATION_CODE_MODIFY_AND_REPLACE_ALL_PACKET_FILTERS:
        "ModifyExistingQoSRuleAndReplaceAllPacketFilters",
    OPERATION_CODE_MODIFY_AND_DELETE_PACKET_FILTERS: "ModifyExistingQoSRuleAndDeletePacketFilters",
    OPERATION_CODE_MODIFY_WITHOUT_MODIFYING_PACKET_FILTERS:
        "ModifyExistingQoSRuleWithoutModifyingPacketFilters",
}

_DIRECTIONS = {
    PACKET_FILTER_DIRECTION_DOWNLINK: "Downlink",
    PACKET_FILTER_DIRECTION_UPLINK: "Uplink",
    PACKET_FILTER_DIRECTION_BIDIRECTIONAL: "Bidirectional",
}

_PFC_TYPES = {
    PFC_TYPE_MATCH_ALL: "MatchAll",
    PFC_TYPE_IPV4_REMOTE_ADDRESS: "IPv4RemoteAddress",
    PFC_TYPE_IPV4_LOCAL_ADDRESS: "IPv4LocalAddress",
    PFC_TYPE_IPV6_REMOTE_ADDRESS: "IPv6RemoteAddress",
    PFC_TYPE_IPV6_LOCAL_ADDRESS: "IPv6LocalAddress",
    PFC_TYPE_PROTOCOL_ID_OR_NEXT_HEADER: "ProtocolIdentifierOrNextHeader",
    PFC_TYPE_SINGLE_LOCAL_PORT: "SingleLocalPort",
    PFC_TYPE_LOCAL_PORT_RANGE: "LocalPortRange",
    PFC_TYPE_SINGLE_REMOTE_PORT: "SingleRemotePort",
    PFC_TYPE_REMOTE_PORT_RANGE: "RemotePortRange",
    PFC_TYPE_SECURITY_PARAMETER_INDEX: "SecurityParameterIndex",
    PFC_TYPE_TYPE_OF_SERVICE_OR_TRAFFIC_CLASS: "TypeOfServiceOrTrafficClass",
    PFC_TYPE_FLOW_LABEL: "FlowLabel",
    PFC_TYPE_DESTINATION_MAC_ADDRESS: "DestinationMACAddress",
    PFC_TYPE_SOURCE_MAC_ADDRESS: "SourceMACAddress",
    PFC_TYPE_8021Q_CTAG_VID: "8021Q_CTAG_VID",
    PFC_TYPE_8021Q_STAG_VID: "8021Q_STAG_VID",
    PFC_TYPE_8021Q_CTAG_PCP_OR_DEI: "8021Q_CTAG_PCPOrDEI",
    PFC_TYPE_8021Q_STAG_PCP_OR_DEI: "8021Q_STAG_PCPOrDEI",
    PFC_TYPE_ETHERTYPE: "Ethertype",
}


def _value(value) -> str:
    """Render a scalar the way the rest of these strings expect."""
    if value is None:
        return _NIL
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        return _bytes(value)
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value
    return str(value)


def _bytes(data: bytes) -> str:
    return "[" + " ".join(str(octet) for octet in data) + "]"


def _list(items: Iterable[str]) -> str:
    return "[" + " ".join(items) + "]"


def _arp(arp: Optional[Arp]) -> str:
    if arp is None:
        return _NIL
    return f"&{{{arp.priority_level} {_value(arp.preempt_cap)} {_value(arp.preempt_vuln)}}}"


def _uint16(data: bytes) -> int:
    if len(data) < 2:
        raise ValueError(f"component value too short for a 16-bit number: {bytes(data)!r}")
    return int.from_bytes(data[:2], "big")


def rule_operation_name(op: int) -> str:
    return _RULE_OPERATIONS.get(op, "invalid")


def pf_direction_name(direction: int) -> str:
    return _DIRECTIONS.get(direction, "Unspecified")


def pfc_type_name(pfc_type: int) -> str:
    return _PFC_TYPES.get(pfc_type, "invalid")


def ip_filter_string(rule: IPFilterRule) -> str:
    # The destination mask column reports the source mask.
    return (
        f"IPFilter content: ProtocolId:[{rule.protocol_id}], "
        f"Source:[Ip:[{rule.source.addr}], Mask:[{rule.source.mask}], "
        f"Port:[{rule.source_port}] Port-range "
        f"[{rule.source_port_range.low}-{rule.source_port_range.high}]],"
        f"Destination [Ip [{rule.destination.addr}], Mask [{rule.source.mask}], "
        f"Port [{rule.destination_port}], Port-range "
        f"[{rule.destination_port_range.low}-{rule.destination_port_range.high}]]"
    )


def qos_rule_string(rule: QosRule) -> str:
    filters = _list(packet_filter_string(pf) for pf in rule.packet_filter_list)
    return (
        f"QosRule:[Id:[{rule.identifier}], Precedence:[{rule.precedence}], "
        f"OpCode:[{rule_operation_name(rule.operation_code)}]], DQR:[{rule.dqr}], "
        f"QFI:[{rule.qfi}], PacketFilters:[{filters}]"
    )


def packet_filter_string(packet_filter: PacketFilter) -> str:
    content = _list(packet_filter_component_string(c) for c in packet_filter.content)
    return (
        f"\nPacketFilter:[Id:[{packet_filter.identifier}], "
        f"direction:[{pf_direction_name(packet_filter.direction)}], content:[\n{content}]]"
    )


def packet_filter_component_string(component: PacketFilterComponent) -> str:
    """Describe a component; ports are shown as numbers, other values as octets."""
    name = pfc_type_name(component.component_type)
    kind = component.component_type
    value = bytes(component.value)
    if kind in (PFC_TYPE_SINGLE_LOCAL_PORT, PFC_TYPE_SINGLE_REMOTE_PORT):
        return f"PFComponent content: type:[{name}] value:[{_uint16(value)}]\n"
    if kind in (PFC_TYPE_LOCAL_PORT_RANGE, PFC_TYPE_REMOTE_PORT_RANGE):
        low = _uint16(value[:2])
        high = _uint16(value[2:])
        return f"PFComponent content: type:[{name}] value:[{low}-{high}]\n"
    return f"PFComponent content: type:[{name}] value:[{_bytes(value)}]\n"


def sm_policy_decision_string(decision: SmPolicyDecision) -> str:
    parts = ["\nPCC Rules: "]
    parts += [f"\n[name:[{n}], {pcc_rule_string(r)}]" for n, r in decision.pcc_rules.items()]
    parts.append("\nSession Rules: ")
    parts += [f"\n[name:[{n}], {session_rule_string(r)}]" for n, r in decision.sess_rules.items()]
    parts.append("\nQosData: ")
    parts += [f"\n[name:[{n}], {qos_data_string(q)}]" for n, q in decision.qos_decs.items()]
    parts.append("\nTCData: ")
    parts += [
        f"\n[name:[{n}], {tc_data_string(t)}]" for n, t in decision.traff_cont_decs.items()
    ]
    return "".join(parts)


def qos_data_string(qos_data: Optional[QosData]) -> str:
    if qos_data is None:
        return ""
    q = qos_data
    return (
        f"QosData:[QosId:[{q.qos_id}], Var5QI:[{q.var5qi}], MaxBrUl:[{q.maxbr_ul}], "
        f"MaxBrDl:[{q.maxbr_dl}], GBrUl:[{q.gbr_ul}], GBrDl:[{q.gbr_dl}], "
        f"PriorityLevel:[{q.priority_level}], ARP:[{_arp(q.arp)}], "
        f"DQFI:[{_value(q.def_qos_flow_indication)}]]"
    )


def session_rule_string(rule: Optional[SessionRule]) -> str:
    """Describe a session rule; its AMBR and default QoS must be present."""
    if rule is None:
        return ""
    if rule.auth_sess_ambr is None or rule.auth_def_qos is None:
        raise ValueError(f"session rule {rule.sess_rule_id!r} lacks AMBR or default QoS")
    ambr = rule.auth_sess_ambr
    qos = rule.auth_def_qos
    return (
        f"SessRule:[RuleId:[{rule.sess_rule_id}], Ambr:[Dl:[{ambr.downlink}], "
        f"Ul:[{ambr.uplink}]], AuthDefQos:[Var5QI:[{qos.var5qi}], "
        f"PriorityLevel:[{qos.priority_level}], ARP:[{_arp(qos.arp)}]]]"
    )


def pcc_rule_string(rule: Optional[PccRule]) -> str:
    """Describe a PCC rule; it must reference at least one QoS data entry."""
    if rule is None:
        return ""
    if not rule.ref_qos_data:
        raise IndexError(f"PCC rule {rule.pcc_rule_id!r} references no QoS data")
    flows = _list(pcc_flow_infos_string(rule.flow_infos))
    return (
        f"PccRule:[RuleId:[{rule.pcc_rule_id}], Precdence:[{rule.precedence}], "
        f"RefQosData:[{rule.ref_qos_data[0]}], flow:[{flows}]]"
    )


def tc_data_string(tc_data: Optional[TrafficControlData]) -> str:
    if tc_data is None:
        return ""
    return f"TC Data:[Id:[{tc_data.tc_id}], FlowStatus:[{_value(tc_data.flow_status)}]]"


def pcc_flow_infos_string(flows: Iterable[FlowInformation]) -> list[str]:
    return [
        f"\nFlowInfo:[flowDesc:[{flow.flow_description}], PFId:[{flow.pack_filt_id}], "
        f"direction:[{_value(flow.flow_direction)}]]"
        for flow in flows
    ]


def qos_flow_description_string(qfd: QosFlowDescription) -> str:
    params = _list(qos_flow_parameter_string(p) for p in qfd.param_list)
    return f"QosFlowDesc:[QFI:[{qfd.qfi}], OpCode:[{qfd.op_code}], FlowParam:[{params}]], "


def qos_flow_parameter_string(param: QosFlowParameter) -> str:
    return (
        f"QFParam:[Id:[{param.param_id}], Len:[{param.param_len}], "
        f"content:[{_bytes(param.content)}]]"
    )


def changes_string(title: str, changes: Changes, describe: Callable[[object], str]) -> str:
    """List the added, modified and deleted entries of a delta."""
    sections = []
    for label, entries in (("add", changes.add), ("mod", changes.mod), ("del", changes.delete)):
        body = "".join(f"\n[name:[{name}], {describe(value)}" for name, value in entries.items())
        sections.append(f"\n[to {label}:[{body}]]")
    return f"\n{title}:" + "".join(sections)


def _optional_changes(title, changes, describe) -> str:
    return _NIL if changes is None else changes_string(title, changes, describe)


def policy_update_string(update: PolicyUpdate) -> str:
    pcc = _optional_changes("PCC Rule Changes", update.pcc_rule_update, pcc_rule_string)
    sess = _optional_changes("Sess Rule Changes", update.sess_rule_update, session_rule_string)
    qos = _optional_changes("Qos Data Changes", update.qos_flow_update, qos_data_string)
    tc = _optional_changes("TC Data Changes", update.tc_update, tc_data_string)
    return (
        f"Policy Update:[\nPccRule:[{pcc}], \nSessRules:[{sess}], "
        f"\nQosData:[{qos}], \nTcData:[{tc}]]"
    )


def make_sample_policy_decision() -> SmPolicyDecision:
    """A locally generated policy decision for trying out the session logic."""
    return SmPolicyDecision(
        pcc_rules=make_sample_pcc_rules(),
        sess_rules=make_sample_session_rules(),
        qos_decs=make_sample_qos_data(),
        traff_cont_decs=make_sample_traffic_control_data(),
    )


def _flow(description: str, pf_id: str) -> FlowInformation:
    return FlowInformation(
        flow_description=description,
        pack_filt_id=pf_id,
        packet_filter_usage=True,
        flow_direction=FlowDirection.BIDIRECTIONAL,
    )


def make_sample_pcc_rules() -> dict[str, PccRule]:
    default_rule = PccRule(
        pcc_rule_id="255",
        precedence=255,
        ref_qos_data=["QosData1"],
        ref_tc_data=["TC1"],
        flow_infos=[_flow("permit out ip from any to assigned", "1")],
    )
    rule1 = PccRule(
        pcc_rule_id="1",
        precedence=111,
        ref_qos_data=["QosData1"],
        ref_tc_data=["TC1"],
        flow_infos=[
            _flow("permit out ip from 1.1.1.1 1000-1200 to assigned", "1"),
            _flow("permit out 17 from 3.3.3.3/24 3000 to 4.4.4.4/24 4000", "2"),
        ],
    )
    rule2 = PccRule(
        pcc_rule_id="2",
        precedence=222,
        ref_qos_data=["QosData2"],
        ref_tc_data=["TC2"],
        flow_infos=[
            _flow("permit out ip from 5.5.5.5 1000-1200 to assigned", "1"),
            _flow("permit out 17 from 3.3.3.3/24 3000 to 4.4.4.4/24 4000", "2"),
        ],
    )
    return {"PccRule1": rule1, "PccRule2": rule2, "PccRuleDef": default_rule}


def make_sample_qos_data() -> dict[str, QosData]:
    qos_data1 = QosData(
        qos_id="1",
        var5qi=9,
        maxbr_ul="101 Mbps",
        maxbr_dl="201 Mbps",
        gbr_ul="11 Mbps",
        gbr_dl="21 Mbps",
        priority_level=5,
        def_qos_flow_indication=True,
        arp=Arp(3, PreemptionCapability.MAY_PREEMPT, PreemptionVulnerability.PREEMPTABLE),
    )
    qos_data2 = QosData(
        qos_id="2",
        var5qi=9,
        maxbr_ul="301 Mbps",
        maxbr_dl="401 Mbps",
        gbr_ul="31 Mbps",
        gbr_dl="41 Mbps",
        priority_level=3,
        def_qos_flow_indication=False,
        arp=Arp(3, PreemptionCapability.NOT_PREEMPT, PreemptionVulnerability.NOT_PREEMPTABLE),
    )
    return {"QosData1": qos_data1, "QosData2": qos_data2}


def make_sample_session_rules() -> dict[str, SessionRule]:
    rule1 = SessionRule(
        sess_rule_id="RuleId-1",
        auth_sess_ambr=Ambr(uplink="77 Mbps", downlink="99 Mbps"),
        auth_def_qos=AuthorizedDefaultQos(
            var5qi=9,
            arp=Arp(8, PreemptionCapability.MAY_PREEMPT, PreemptionVulnerability.NOT_PREEMPTABLE),
            priority_level=8,
        ),
    )
    rule2 = SessionRule(
        sess_rule_id="RuleId-2",
        auth_sess_ambr=Ambr(uplink="55 Mbps", downlink="33 Mbps"),
        auth_def_qos=AuthorizedDefaultQos(
            var5qi=9,
            arp=Arp(7, PreemptionCapability.MAY_PREEMPT, PreemptionVulnerability.NOT_PREEMPTABLE),
            priority_level=7,
        ),
    )
    return {"SessRule1": rule1, "SessRule2": rule2}


def make_sample_traffic_control_data() -> dict[str, TrafficControlData]:
    return {
        "TC1": TrafficControlData(tc_id="TC1", flow_status=FlowStatus.ENABLED),
        "TC2": TrafficControlData(tc_id="TC2", flow_status=FlowStatus.ENABLED),
    }