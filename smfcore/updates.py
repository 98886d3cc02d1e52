"""Delta computation between a policy decision and the session's policy state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, Mapping, MutableMapping, Optional, TypeVar

from smfcore.models import (
    ChargingData,
    ConditionData,
    PccRule,
    QosData,
    SessionRule,
    SmPolicyDecision,
    TrafficControlData,
)

T = TypeVar("T")


@dataclass
class Changes(Generic[T]):
    """Entries to add, modify and delete, keyed by name."""

    add: dict[str, T] = field(default_factory=dict)
    mod: dict[str, T] = field(default_factory=dict)
    delete: dict[str, None] = field(default_factory=dict)


@dataclass
class SessionRulesUpdate(Changes[SessionRule]):
    """Session rule changes plus the rule that becomes active."""

    active_rule: Optional[SessionRule] = None
    active_rule_name: str = ""


@dataclass
class PolicyUpdate:
    sess_rule_update: Optional[SessionRulesUpdate] = None
    pcc_rule_update: Optional[Changes[PccRule]] = None
    qos_flow_update: Optional[Changes[QosData]] = None
    tc_update: Optional[Changes[TrafficControlData]] = None
    cond_data_update: Optional[Changes[ConditionData]] = None
    sm_policy_decision: Optional[SmPolicyDecision] = None


@dataclass
class SmCtxtPolicyData:
    """Policy state held in a session context."""

    session_rules: dict[str, SessionRule] = field(default_factory=dict)
    active_rule_name: str = ""
    active_rule: Optional[SessionRule] = None
    pcc_rules: dict[str, PccRule] = field(default_factory=dict)
    qos_data: dict[str, QosData] = field(default_factory=dict)
    tc_data: dict[str, TrafficControlData] = field(default_factory=dict)
    charging_data: dict[str, ChargingData] = field(default_factory=dict)
    cond_data: dict[str, ConditionData] = field(default_factory=dict)


def _diff(
    incoming: Optional[Mapping[str, Optional[T]]],
    current: Optional[Mapping[str, T]],
    changed: Callable[[T, T], bool],
) -> Optional[Changes[T]]:
    if not incoming:
        return None
    current = current or {}
    changes: Changes[T] = Changes()
    for name, value in incoming.items():
        if value is None:
            changes.delete[name] = None
            continue
        existing = current.get(name)
        if existing is None:
            changes.add[name] = value
        elif changed(value, existing):
            changes.mod[name] = value
    return changes


def _apply(target: MutableMapping[str, T], changes: Changes[T]) -> None:
    target.update(changes.add)
    target.update(changes.mod)
    for name in changes.delete:
        target.pop(name, None)


def pcc_rule_changed(new: PccRule, old: PccRule) -> bool:
    return new != old


def get_pcc_rules_update(pcf_rules, ctxt_rules) -> Optional[Changes[PccRule]]:
    return _diff(pcf_rules, ctxt_rules, pcc_rule_changed)


def commit_pcc_rules_update(policy_data: SmCtxtPolicyData, update: Changes[PccRule]) -> None:
    _apply(policy_data.pcc_rules, update)


def get_session_rules_update(pcf_rules, ctxt_rules) -> Optional[SessionRulesUpdate]:
    """Diff session rules; the last rule added becomes the active one."""
    if not pcf_rules:
        return None
    ctxt_rules = ctxt_rules or {}
    update = SessionRulesUpdate()
    for name, rule in pcf_rules.items():
        if rule is None:
            update.delete[name] = None
            continue
        if ctxt_rules.get(name) is None:
            update.add[name] = rule
            update.active_rule_name = name
            update.active_rule = rule
        else:
            update.mod[name] = rule
    return update


def commit_session_rules_update(policy_data: SmCtxtPolicyData, update: SessionRulesUpdate) -> None:
    _apply(policy_data.session_rules, update)
    policy_data.active_rule = update.active_rule
    policy_data.active_rule_name = update.active_rule_name


def tc_data_changed(new: TrafficControlData, old: TrafficControlData) -> bool:
    return new != old


def get_traffic_control_update(tc_data, ctxt_tc_data) -> Optional[Changes[TrafficControlData]]:
    return _diff(tc_data, ctxt_tc_data, tc_data_changed)


def commit_traffic_control_update(
    policy_data: SmCtxtPolicyData, update: Changes[TrafficControlData]
) -> None:
    _apply(policy_data.tc_data, update)


def get_tc_data_from_policy_decision(
    decision: SmPolicyDecision, ref: str
) -> Optional[TrafficControlData]:
    return decision.traff_cont_decs.get(ref)


def get_condition_data_update(cond_data, ctxt_cond_data) -> Changes[ConditionData]:
    """Condition data is not tracked per entry; the delta is always empty."""
    return Changes()


def commit_condition_data_update(
    policy_data: SmCtxtPolicyData, update: Changes[ConditionData]
) -> None:
    _apply(policy_data.cond_data, update)


def qos_data_changed(new: QosData, old: QosData) -> bool:
    return new != old


def get_qos_flow_desc_update(pcf_qos_data, ctxt_qos_data) -> Optional[Changes[QosData]]:
    return _diff(pcf_qos_data, ctxt_qos_data, qos_data_changed)


def commit_qos_flow_desc_update(policy_data: SmCtxtPolicyData, update: Changes[QosData]) -> None:
    _apply(policy_data.qos_data, update)


def build_sm_policy_update(
    policy_data: SmCtxtPolicyData, decision: SmPolicyDecision
) -> PolicyUpdate:
    """Compute every delta between a decision and the stored policy state."""
    return PolicyUpdate(
        sm_policy_decision=decision,
        qos_flow_update=get_qos_flow_desc_update(decision.qos_decs, policy_data.qos_data),
        pcc_rule_update=get_pcc_rules_update(decision.pcc_rules, policy_data.pcc_rules),
        sess_rule_update=get_session_rules_update(decision.sess_rules, policy_data.session_rules),
        tc_update=get_traffic_control_update(decision.traff_cont_decs, policy_data.tc_data),
        cond_data_update=get_condition_data_update(decision.conds, policy_data.cond_data),
    )


def commit_sm_policy_decision(policy_data: SmCtxtPolicyData, update: PolicyUpdate) -> None:
    """Apply a computed policy update to the stored policy state."""
    if update.qos_flow_update is not None:
        commit_qos_flow_desc_update(policy_data, update.qos_flow_update)
    if update.pcc_rule_update is not None:
        commit_pcc_rules_update(policy_data, update.pcc_rule_update)
    if update.sess_rule_update is not None:
        commit_session_rules_update(policy_data, update.sess_rule_update)
    if update.tc_update is not None:
        commit_traffic_control_update(policy_data, update.tc_update)
    if update.cond_data_update is not None:
        commit_condition_data_update(policy_data, update.cond_data_update)