import pytest

from smfcore.models import (
    Ambr,
    Arp,
    AuthorizedDefaultQos,
    FlowDirection,
    FlowInformation,
    PccRule,
    PreemptionCapability,
    PreemptionVulnerability,
    QosData,
    SessionRule,
    SmPolicyDecision,
)
from smfcore.qos_rule import (
    OPERATION_CODE_CREATE_NEW_QOS_RULE,
    PacketFilter,
    PacketFilterComponent,
    QosRules,
    build_add_default_qos_rule,
    build_add_qos_rule_from_pcc_rule,
    build_pfc_protocol_id,
    build_qos_rules,
    decode_flow_desc_to_ip_filters,
    get_packet_filter_from_flow_info,
    get_pf_direction,
    get_pf_id,
    get_qos_rule_id_from_pcc_rule_id,
)
from smfcore.updates import Changes, PolicyUpdate, SmCtxtPolicyData, build_sm_policy_update

FLOW_DESC = [
    "permit out ip from 1.1.1.1 1000 to 2.2.2.2 2000",
    "permit out ip from 1.1.1.1/24 1000 to 2.2.2.2/24 2000",
    "permit out ip from any 1000 to 2.2.2.2/24 2000",
    "permit out ip from any 1000 to assigned 2000",
    "permit out 17 from 1.1.1.1/24 1000-1200 to 2.2.2.2/24 2000-2500",
]

SOURCE_EXPECTED = bytes([
    0x1, 0x0, 0x37, 0x32, 0x31, 0x18, 0x10, 0x1, 0x1,
    0x1, 0x1, 0xff, 0xff, 0xff, 0xff, 0x50, 0x3, 0xe8, 0x11, 0x2, 0x2, 0x2,
    0x2, 0xff, 0xff, 0xff, 0xff, 0x40, 0x7, 0xd0, 0x32, 0x18, 0x10, 0x3, 0x3,
    0x3, 0x3, 0xff, 0xff, 0xff, 0xff, 0x50, 0xb, 0xb8, 0x11, 0x4, 0x4, 0x4,
    0x4, 0xff, 0xff, 0xff, 0xff, 0x40, 0xf, 0xa0, 0xc8, 0x5, 0xff, 0x0, 0x6,
    0x31, 0xff, 0x1, 0x1, 0xff, 0x8,
])


def make_sample_pcc_rules():
    rule = PccRule(
        pcc_rule_id="1",
        precedence=200,
        ref_qos_data=["QosData1"],
        flow_infos=[
            FlowInformation(
                flow_description="permit out ip from 1.1.1.1 1000 to 2.2.2.2 2000",
                pack_filt_id="1",
                packet_filter_usage=True,
                flow_direction=FlowDirection.BIDIRECTIONAL,
            ),
            FlowInformation(
                flow_description="permit out ip from 3.3.3.3 3000 to 4.4.4.4 4000",
                pack_filt_id="2",
                packet_filter_usage=True,
                flow_direction=FlowDirection.BIDIRECTIONAL,
            ),
        ],
    )
    return {"PccRule1": rule}


def make_sample_qos_data():
    return {
        "QosData1": QosData(
            qos_id="QosData1", var5qi=5, maxbr_ul="101 Mbps", maxbr_dl="201 Mbps",
            gbr_ul="11 Mbps", gbr_dl="21 Mbps", priority_level=5, def_qos_flow_indication=True,
        ),
        "QosData2": QosData(
            qos_id="QosData2", var5qi=3, maxbr_ul="301 Mbps", maxbr_dl="401 Mbps",
            gbr_ul="31 Mbps", gbr_dl="41 Mbps", priority_level=3, def_qos_flow_indication=False,
        ),
    }


def make_sample_session_rules():
    def rule(ul, dl, var5qi, level):
        return SessionRule(
            auth_sess_ambr=Ambr(uplink=ul, downlink=dl),
            auth_def_qos=AuthorizedDefaultQos(
                var5qi=var5qi,
                arp=Arp(
                    priority_level=level,
                    preempt_cap=PreemptionCapability.MAY_PREEMPT,
                    preempt_vuln=PreemptionVulnerability.NOT_PREEMPTABLE,
                ),
                priority_level=level,
            ),
        )

    return {"SessRule1": rule("77 Mbps", "99 Mbps", 9, 8), "SessRule2": rule("55 Mbps", "33 Mbps", 8, 7)}


def test_decode_simple_flow():
    ipf = decode_flow_desc_to_ip_filters(FLOW_DESC[0])
    assert ipf.protocol_id == "ip"
    assert (ipf.source.addr, ipf.source.mask) == ("1.1.1.1", "")
    assert ipf.source_port == "1000"
    assert (ipf.destination.addr, ipf.destination.mask) == ("2.2.2.2", "")
    assert ipf.destination_port == "2000"
    assert not ipf.is_match_all()


def test_decode_masks_and_ranges():
    ipf = decode_flow_desc_to_ip_filters(FLOW_DESC[4])
    assert ipf.protocol_id == "17"
    assert ipf.source.mask == "24"
    assert (ipf.source_port_range.low, ipf.source_port_range.high) == ("1000", "1200")
    assert ipf.destination.mask == "24"
    assert (ipf.destination_port_range.low, ipf.destination_port_range.high) == ("2000", "2500")
    assert ipf.source_port == ""


def test_decode_without_source_port():
    ipf = decode_flow_desc_to_ip_filters("permit out ip from any to assigned")
    assert ipf.source.addr == "any"
    assert ipf.destination.addr == "assigned"
    assert ipf.destination_port == ""
    assert ipf.is_match_all()


def test_decode_without_source_port_with_dest_port():
    ipf = decode_flow_desc_to_ip_filters("permit out ip from 5.5.5.5 to 6.6.6.6 80")
    assert ipf.source_port == ""
    assert ipf.destination.addr == "6.6.6.6"
    assert ipf.destination_port == "80"


@pytest.mark.parametrize("flow", ["permit out ip from any", "permit out ip from any 1000 to"])
def test_decode_incomplete_raises(flow):
    with pytest.raises(ValueError):
        decode_flow_desc_to_ip_filters(flow)


def test_pf_content_single_ports():
    pf = PacketFilter()
    pf.set_content(FLOW_DESC[0])
    assert pf.content == [
        PacketFilterComponent(0x10, bytes([1, 1, 1, 1, 0xff, 0xff, 0xff, 0xff])),
        PacketFilterComponent(0x50, bytes([0x03, 0xe8])),
        PacketFilterComponent(0x11, bytes([2, 2, 2, 2, 0xff, 0xff, 0xff, 0xff])),
        PacketFilterComponent(0x40, bytes([0x07, 0xd0])),
    ]
    assert pf.content_length == 24


def test_pf_content_masked_addresses():
    pf = PacketFilter()
    pf.set_content(FLOW_DESC[1])
    assert pf.content[0].value == bytes([1, 1, 1, 1, 0xff, 0xff, 0xff, 0x00])
    assert pf.content[2].value == bytes([2, 2, 2, 2, 0xff, 0xff, 0xff, 0x00])


def test_pf_content_any_source():
    pf = PacketFilter()
    pf.set_content(FLOW_DESC[2])
    assert [c.component_type for c in pf.content] == [0x50, 0x11, 0x40]
    assert pf.content_length == 15


def test_pf_content_match_all():
    pf = PacketFilter()
    pf.set_content(FLOW_DESC[3])
    assert pf.content == [PacketFilterComponent(0x01, b"")]
    assert pf.content_length == 1


def test_pf_content_protocol_and_ranges():
    pf = PacketFilter()
    pf.set_content(FLOW_DESC[4])
    assert pf.content == [
        PacketFilterComponent(0x30, bytes([17])),
        PacketFilterComponent(0x10, bytes([1, 1, 1, 1, 0xff, 0xff, 0xff, 0x00])),
        PacketFilterComponent(0x51, bytes([0x03, 0xe8, 0x04, 0xb0])),
        PacketFilterComponent(0x11, bytes([2, 2, 2, 2, 0xff, 0xff, 0xff, 0x00])),
        PacketFilterComponent(0x41, bytes([0x07, 0xd0, 0x09, 0xc4])),
    ]
    assert pf.content_length == 30


def test_pf_content_skips_ipv6_address():
    pf = PacketFilter()
    pf.set_content("permit out ip from ::1 to assigned")
    assert pf.content == []
    assert pf.content_length == 0


def test_pf_content_out_of_range_mask_omits_mask():
    pf = PacketFilter()
    pf.set_content("permit out ip from 7.7.7.7/40 to assigned")
    assert pf.content == [PacketFilterComponent(0x10, bytes([7, 7, 7, 7]))]
    assert pf.content_length == 9


@pytest.mark.parametrize(
    "value, expected",
    [("ip", None), ("tcp", None), ("17", PacketFilterComponent(0x30, b"\x11")),
     ("256", PacketFilterComponent(0x30, b"\x00"))],
)
def test_build_pfc_protocol_id(value, expected):
    assert build_pfc_protocol_id(value) == expected


@pytest.mark.parametrize("value, expected", [("1", 1), ("17", 1), ("15", 15), ("x", 0)])
def test_get_pf_id(value, expected):
    assert get_pf_id(value) == expected


@pytest.mark.parametrize("value, expected", [("255", 255), ("256", 0), ("abc", 0), ("1", 1)])
def test_get_qos_rule_id(value, expected):
    assert get_qos_rule_id_from_pcc_rule_id(value) == expected


@pytest.mark.parametrize(
    "direction, expected",
    [(FlowDirection.UPLINK, 2), (FlowDirection.DOWNLINK, 1),
     (FlowDirection.BIDIRECTIONAL, 3), (FlowDirection.UNSPECIFIED, 3), ("bogus", 3)],
)
def test_get_pf_direction(direction, expected):
    assert get_pf_direction(direction) == expected


def test_packet_filter_from_flow_info_bytes():
    flow = FlowInformation(
        flow_description="permit out ip from any to assigned",
        pack_filt_id="3",
        flow_direction=FlowDirection.UPLINK,
    )
    pf = get_packet_filter_from_flow_info(flow)
    assert pf.to_bytes() == bytes([0x23, 0x01, 0x01])


def test_default_rule_bytes():
    rule = build_add_default_qos_rule(8)
    assert rule.to_bytes() == SOURCE_EXPECTED[58:]


def test_source_expected_bytes():
    pcc_rule = make_sample_pcc_rules()["PccRule1"]
    qos_data = QosData(qos_id="5", var5qi=5, def_qos_flow_indication=True)
    rules = QosRules([
        build_add_qos_rule_from_pcc_rule(pcc_rule, qos_data, OPERATION_CODE_CREATE_NEW_QOS_RULE),
        build_add_default_qos_rule(8),
    ])
    assert rules.to_bytes() == SOURCE_EXPECTED


def test_build_qos_rules_from_policy_update():
    decision = SmPolicyDecision(
        pcc_rules=make_sample_pcc_rules(),
        qos_decs=make_sample_qos_data(),
        sess_rules=make_sample_session_rules(),
    )
    update = build_sm_policy_update(SmCtxtPolicyData(), decision)
    rules = build_qos_rules(update)
    assert len(rules) == 1
    rule = rules[0]
    assert (rule.identifier, rule.dqr, rule.precedence, rule.qfi) == (1, 1, 200, 0)
    assert rules.to_bytes() == SOURCE_EXPECTED[:57] + bytes([0x00])


def test_build_qos_rules_without_pcc_update():
    assert build_qos_rules(PolicyUpdate()) == []


def test_build_qos_rules_missing_qos_data():
    pcc_rules = make_sample_pcc_rules()
    update = PolicyUpdate(
        pcc_rule_update=Changes(add=pcc_rules),
        sm_policy_decision=SmPolicyDecision(pcc_rules=pcc_rules),
    )
    with pytest.raises(LookupError):
        build_qos_rules(update)


def test_rule_header_counts_filters():
    rule = build_add_default_qos_rule(9)
    rule.packet_filter_list.append(PacketFilter(direction=1, identifier=2))
    encoded = rule.to_bytes()
    assert encoded[3] == 0x32
    assert int.from_bytes(encoded[1:3], "big") == len(encoded) - 3