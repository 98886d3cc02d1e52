"""Authorized QoS flow descriptions sent to the UE (TS 24.501 9.11.4.12)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from smfcore.models import QosData, SessionRule, SmPolicyDecision
from smfcore.updates import PolicyUpdate

log = logging.getLogger(__name__)

# Information element identifier of "Authorized QoS flow descriptions".
AUTHORIZED_QOS_FLOW_DESCRIPTIONS_IEI = 0x79

# Parameter identifiers (TS 24.501 Table 9.11.4.12).
QFD_PARAM_ID_5QI = 0x01
QFD_PARAM_ID_GFBR_UL = 0x02
QFD_PARAM_ID_GFBR_DL = 0x03
QFD_PARAM_ID_MFBR_UL = 0x04
QFD_PARAM_ID_MFBR_DL = 0x05
QFD_PARAM_ID_AVG_WINDOW = 0x06
QFD_PARAM_ID_EPS_BEARER_ID = 0x07

# Bit rate units.
QF_BIT_RATE_1KBPS = 0x01
QF_BIT_RATE_1MBPS = 0x06
QF_BIT_RATE_1GBPS = 0x0B

# Operation codes.
QFD_OP_CREATE = 0x20
QFD_OP_MODIFY = 0x40
QFD_OP_DELETE = 0x60

QFD_QFI_BITMASK = 0x3F
QFD_OP_CODE_BITMASK = 0xE0
QFD_EBIT = 0x40

QFD_FIX_LEN = 0x03

_UNITS = {
    "Kbps": QF_BIT_RATE_1KBPS,
    "Mbps": QF_BIT_RATE_1MBPS,
    "Gbps": QF_BIT_RATE_1GBPS,
}

_INTEGER = re.compile(r"[+-]?\d+")


def _atoi(text: str) -> Optional[int]:
    if _INTEGER.fullmatch(text):
        return int(text)
    return None


@dataclass
class QosFlowParameter:
    """One parameter of a QoS flow description."""

    param_id: int = 0
    param_len: int = 0
    content: bytes = b""


@dataclass
class QosFlowDescription:
    """A single QoS flow description."""

    qfi: int = 0
    op_code: int = 0
    num_of_param: int = 0
    param_list: list[QosFlowParameter] = field(default_factory=list)
    qfd_len: int = QFD_FIX_LEN

    def __post_init__(self) -> None:
        self.qfi &= QFD_QFI_BITMASK
        self.op_code &= QFD_OP_CODE_BITMASK

    def _append(self, param: QosFlowParameter, size: int) -> None:
        self.num_of_param = (self.num_of_param + 1) & 0xFF
        self.param_list.append(param)
        self.qfd_len = (self.qfd_len + size) & 0xFF

    def add_param_5qi(self, value: int) -> None:
        """Add the 5QI parameter (identifier, length and one octet)."""
        self._append(QosFlowParameter(QFD_PARAM_ID_5QI, 1, bytes([value & 0xFF])), 3)

    def add_rate_param(self, rate: str, rate_type: int) -> None:
        """Add a bit rate parameter parsed from a string such as ``"100 Mbps"``."""
        value, unit = get_bit_rate(rate)
        self._append(make_bit_rate_param(rate_type, unit, value), 5)

    def set_ebit(self, enabled: bool) -> None:
        """Set or clear the E bit of the parameter count octet."""
        if enabled:
            self.num_of_param |= QFD_EBIT
        else:
            self.num_of_param &= ~QFD_EBIT & 0xFF


@dataclass
class QosFlowDescriptionsAuthorized:
    """The encoded Authorized QoS flow descriptions IE."""

    ie_type: int = AUTHORIZED_QOS_FLOW_DESCRIPTIONS_IEI
    ie_len: int = 0
    content: bytearray = field(default_factory=bytearray)

    def add_qfd(self, qfd: QosFlowDescription) -> None:
        """Encode a flow description and append it to the IE content."""
        self.content += bytes([qfd.qfi, qfd.op_code, qfd.num_of_param])
        for param in qfd.param_list:
            self.content += bytes([param.param_id, param.param_len])
            self.content += param.content
        self.ie_len = (self.ie_len + qfd.qfd_len) & 0xFFFF

    def add_qos_flow_desc(self, qos_data: QosData) -> None:
        """Append a "create new QoS flow description" built from QoS data."""
        qfd = QosFlowDescription(
            qfi=get_qos_flow_id_from_qos_id(qos_data.qos_id), op_code=QFD_OP_CREATE
        )
        qfd.add_param_5qi(qos_data.var5qi)
        for rate, rate_type in (
            (qos_data.maxbr_ul, QFD_PARAM_ID_MFBR_UL),
            (qos_data.maxbr_dl, QFD_PARAM_ID_MFBR_DL),
            (qos_data.gbr_ul, QFD_PARAM_ID_GFBR_UL),
            (qos_data.gbr_dl, QFD_PARAM_ID_GFBR_DL),
        ):
            if rate:
                qfd.add_rate_param(rate, rate_type)
        qfd.set_ebit(True)
        self.add_qfd(qfd)

    def add_default_qos_flow_description(self, session_rule: SessionRule) -> None:
        """Append the default flow description of a session rule."""
        var5qi = session_rule.auth_def_qos.var5qi
        qfd = QosFlowDescription(qfi=var5qi & 0xFF, op_code=QFD_OP_CREATE)
        qfd.add_param_5qi(var5qi)
        qfd.set_ebit(True)
        self.add_qfd(qfd)


def get_qos_flow_id_from_qos_id(qos_id: str) -> int:
    """Numeric QoS id as an octet; 0 when the id is not a number."""
    value = _atoi(qos_id)
    return 0 if value is None else value & 0xFF


def get_bit_rate(bit_rate: str) -> tuple[int, int]:
    """Split ``"<value> <unit>"`` into a 16-bit value and a unit code."""
    fields = bit_rate.split()
    if len(fields) < 2:
        raise ValueError(f"bit rate needs a value and a unit: {bit_rate!r}")
    rate = _atoi(fields[0])
    if rate is None:
        log.warning("invalid bit rate [%s]", bit_rate)
        value = 0
    else:
        value = rate & 0xFFFF
    return value, _UNITS.get(fields[1], QF_BIT_RATE_1MBPS)


def make_bit_rate_param(rate_type: int, rate_unit: int, rate_value: int) -> QosFlowParameter:
    """Bit rate parameter: unit octet followed by a big-endian 16-bit value."""
    rate_value &= 0xFFFF
    return QosFlowParameter(
        param_id=rate_type,
        param_len=0x03,
        content=bytes([rate_unit, rate_value >> 8, rate_value & 0xFF]),
    )


def build_authorized_qos_flow_descriptions(
    policy_update: PolicyUpdate,
) -> QosFlowDescriptionsAuthorized:
    """Build the flow descriptions for every QoS flow being added."""
    descriptions = QosFlowDescriptionsAuthorized()
    update = policy_update.qos_flow_update
    if update is not None:
        for name, qos_data in update.add.items():
            log.info("Adding Qos Flow Description [%s]", name)
            descriptions.add_qos_flow_desc(qos_data)
    return descriptions


def build_del_qos_flow_desc(qos_data: QosData) -> QosFlowDescription:
    """Flow description for deleting an existing QoS flow."""
    qfd = QosFlowDescription(qfi=qos_data.var5qi & 0xFF, op_code=QFD_OP_DELETE)
    qfd.set_ebit(False)
    return qfd


def get_qos_data_from_policy_decision(
    decision: SmPolicyDecision, ref: str
) -> Optional[QosData]:
    return decision.qos_decs.get(ref)


def get_default_qos_data_from_policy_decision(decision: SmPolicyDecision) -> QosData:
    """The QoS data flagged as default; raises LookupError if there is none."""
    for qos_data in decision.qos_decs.values():
        if qos_data is not None and qos_data.def_qos_flow_indication:
            return qos_data
    raise LookupError("Default Qos Data not received from PCF")