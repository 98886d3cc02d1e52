# smfcore

`smfcore` provides building blocks for a 5G Session Management Function. With it you can:

- compare a policy decision with the policy state a session already holds, and commit the differences;
- encode NAS QoS rules with their packet filters, and authorized QoS flow descriptions;
- convert textual bit rates to kbps;
- map named session-management failures to problem details and NAS cause values;
- run transactions through a life-cycle state machine;
- track UPF nodes, their association state, and PFCP requests that are still waiting for a reply.

The package uses only the standard library. It needs Python 3.10 or later.

## Installation

```
pip install .
pip install ".[test]"   # adds pytest for running the tests
```

## Applying a policy decision

```python
from smfcore.updates import SmCtxtPolicyData, build_sm_policy_update, commit_sm_policy_decision
from smfcore.qos_rule import build_qos_rules
from smfcore.qos_flow import build_authorized_qos_flow_descriptions
from smfcore.formatting import make_sample_policy_decision

decision = make_sample_policy_decision()
context = SmCtxtPolicyData()

update = build_sm_policy_update(context, decision)
rules_ie = build_qos_rules(update).to_bytes()                  # QoS rules IE content
flows_ie = build_authorized_qos_flow_descriptions(update).content  # bytearray

commit_sm_policy_decision(context, update)
```

In a decision, a `None` entry means that name is to be removed. `build_sm_policy_update` returns a `PolicyUpdate`. For each kind of data, the `PolicyUpdate` holds a `Changes` object with `add`, `mod` and `delete` entries. The field is `None` when the decision carries no data of that kind.

For session rules, the last rule added becomes the active one.

`build_qos_rules` raises `LookupError` in two cases: a PCC rule being added references no QoS data, or it references QoS data that is not in the decision.

## Modules

`smfcore.models`
: Dataclasses for policy data, such as `PccRule`, `QosData`, `SessionRule`, `TrafficControlData`, `ConditionData`, `ChargingData`, `SmPolicyDecision` and `ProblemDetails`. Also the enums `FlowDirection`, `FlowStatus`, `PreemptionCapability` and `PreemptionVulnerability`.

`smfcore.updates`
: `build_sm_policy_update` and `commit_sm_policy_decision`, with per-kind helpers such as `get_pcc_rules_update` and `commit_pcc_rules_update`. The condition-data delta is always empty.

`smfcore.qos_rule`
: `decode_flow_desc_to_ip_filters` parses flow descriptions of the form `permit out <proto> from <src> [port] to <dst> [port]`. `PacketFilter`, `QosRule` and `QosRules` encode through `to_bytes()`. `build_add_default_qos_rule(qfi)` builds a match-all rule.

`smfcore.qos_flow`
: `QosFlowDescription` and `QosFlowDescriptionsAuthorized` build the flow description IE. `get_bit_rate("100 Mbps")` returns a 16-bit value and a unit code. `get_default_qos_data_from_policy_decision` raises `LookupError` when no QoS data is flagged as default.

`smfcore.bitrate`
: `bit_rate_to_kbps("10 Mbps")` returns `10000`. It returns 0 for a non-numeric value or an unknown unit, and raises `ValueError` when the unit is missing.

`smfcore.errors`
: `problem_details(name)` returns a copy of the problem report for a named error. `nas_cause(name)` returns its NAS cause value. Both raise `KeyError` for unknown names. `ERROR_NAMES` lists the known names. `SmfError(name)` is an exception that carries `.problem` and `.cause`.

`smfcore.formatting`
: Readable strings for the types above, for example `qos_rule_string`, `sm_policy_decision_string` and `policy_update_string`. Also the sample data functions `make_sample_policy_decision`, `make_sample_pcc_rules` and others.

`smfcore.transaction`
: `Transaction`, the FIFO `TxnBus`, the `TxnEvent` enum and the abstract `TxnFsm`. To use the state machine, subclass `TxnFsm` and implement its `txn_*` stage handlers. Each handler returns the next event, or a `(next_event, error)` pair. `Transaction.run_life_cycle(fsm)` runs until a handler returns `EXIT` or `QUEUE`, and returns that event.

`smfcore.upf_registry`
: `UpfRegistry` stores `UpNode` entries keyed by `NodeId` value. It supports insert, activate, lookup by address or domain name, and remove. `PendingTransactions` maps PFCP sequence numbers to whatever waiter object you supply.

## What it does not do

`smfcore` is a library only. It has:

- no command-line program;
- no HTTP service;
- no PFCP socket handling or message encoding;
- no registration with a network repository function;
- no configuration-file loading;
- no database storage.

`UpfRegistry` and `PendingTransactions` keep track of state. Sending PFCP messages and receiving the replies is left to the caller.

## Running the tests

```
pytest
```