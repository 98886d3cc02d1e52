"""Policy data exchanged with the policy control function."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class FlowDirection(str, Enum):
    """Direction of a flow described in a PCC rule."""

    DOWNLINK = "DOWNLINK"
    UPLINK = "UPLINK"
    BIDIRECTIONAL = "BIDIRECTIONAL"
    UNSPECIFIED = "UNSPECIFIED"


class FlowStatus(str, Enum):
    """Gating status of a traffic control decision."""

    ENABLED_UPLINK = "ENABLED-UPLINK"
    ENABLED_DOWNLINK = "ENABLED-DOWNLINK"
    ENABLED = "ENABLED"
    DISABLED = "DISABLED"
    REMOVED = "REMOVED"


class PreemptionCapability(str, Enum):
    NOT_PREEMPT = "NOT_PREEMPT"
    MAY_PREEMPT = "MAY_PREEMPT"


class PreemptionVulnerability(str, Enum):
    NOT_PREEMPTABLE = "NOT_PREEMPTABLE"
    PREEMPTABLE = "PREEMPTABLE"


@dataclass
class Arp:
    """Allocation and retention priority."""

    priority_level: int = 0
    preempt_cap: PreemptionCapability = PreemptionCapability.NOT_PREEMPT
    preempt_vuln: PreemptionVulnerability = PreemptionVulnerability.NOT_PREEMPTABLE


@dataclass
class Ambr:
    """Aggregate maximum bit rate, e.g. ``"100 Mbps"``."""

    uplink: str = ""
    downlink: str = ""


@dataclass
class AuthorizedDefaultQos:
    var5qi: int = 0
    arp: Optional[Arp] = None
    priority_level: int = 0


@dataclass
class FlowInformation:
    flow_description: str = ""
    pack_filt_id: str = ""
    packet_filter_usage: bool = False
    flow_direction: FlowDirection = FlowDirection.UNSPECIFIED


@dataclass
class PccRule:
    pcc_rule_id: str = ""
    precedence: int = 0
    ref_qos_data: list[str] = field(default_factory=list)
    ref_tc_data: list[str] = field(default_factory=list)
    flow_infos: list[FlowInformation] = field(default_factory=list)


@dataclass
class QosData:
    qos_id: str = ""
    var5qi: int = 0
    maxbr_ul: str = ""
    maxbr_dl: str = ""
    gbr_ul: str = ""
    gbr_dl: str = ""
    priority_level: int = 0
    arp: Optional[Arp] = None
    def_qos_flow_indication: bool = False


@dataclass
class SessionRule:
    sess_rule_id: str = ""
    auth_sess_ambr: Optional[Ambr] = None
    auth_def_qos: Optional[AuthorizedDefaultQos] = None


@dataclass
class TrafficControlData:
    tc_id: str = ""
    flow_status: FlowStatus = FlowStatus.ENABLED


@dataclass
class ConditionData:
    cond_id: str = ""
    activation_time: Optional[str] = None
    deactivation_time: Optional[str] = None


@dataclass
class ChargingData:
    chg_id: str = ""
    metering_method: Optional[str] = None
    offline: bool = False
    online: bool = False
    rating_group: int = 0


@dataclass
class SmPolicyDecision:
    """Policy decision for a session; a ``None`` entry marks a removal."""

    pcc_rules: dict[str, Optional[PccRule]] = field(default_factory=dict)
    sess_rules: dict[str, Optional[SessionRule]] = field(default_factory=dict)
    qos_decs: dict[str, Optional[QosData]] = field(default_factory=dict)
    traff_cont_decs: dict[str, Optional[TrafficControlData]] = field(default_factory=dict)
    conds: dict[str, Optional[ConditionData]] = field(default_factory=dict)
    chg_decs: dict[str, Optional[ChargingData]] = field(default_factory=dict)


@dataclass
class ProblemDetails:
    """Problem report returned to service consumers."""

    title: str = ""
    status: int = 0
    detail: str = ""
    cause: str = ""
    type: str = ""
    instance: str = ""
    invalid_params: Optional[list[dict[str, str]]] = None