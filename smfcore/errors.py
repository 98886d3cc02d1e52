"""Session management failures and their problem reports and NAS causes."""

from __future__ import annotations

from dataclasses import replace
from http import HTTPStatus

from smfcore.models import ProblemDetails

# NAS cause values (TS 24.501).
CAUSE_5GMM_DNN_NOT_SUPPORTED_OR_NOT_SUBSCRIBED_IN_THE_SLICE = 0x5B
CAUSE_5GSM_INSUFFICIENT_RESOURCES = 0x1A
CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED = 0x1F
CAUSE_5GSM_INSUFFICIENT_RESOURCES_FOR_SPECIFIC_SLICE_AND_DNN = 0x43

_FORBIDDEN = int(HTTPStatus.FORBIDDEN)
_INTERNAL = int(HTTPStatus.INTERNAL_SERVER_ERROR)


def _rejected(title: str, detail: str) -> ProblemDetails:
    return ProblemDetails(title=title, status=_INTERNAL, detail=detail, cause="REQUEST_REJECTED")


N1_SM_ERROR = ProblemDetails(
    title="Invalid N1 Message", status=_FORBIDDEN, detail="N1 Message Error", cause="N1_SM_ERROR"
)

_PROBLEMS: dict[str, ProblemDetails] = {
    "DnnDeniedError": ProblemDetails(
        title="DNN Denied",
        status=_FORBIDDEN,
        detail="The subscriber does not have the necessary subscription to access the DNN",
        cause="DNN_DENIED",
    ),
    "DnnNotSupported": ProblemDetails(
        title="DNN Not Supported",
        status=_FORBIDDEN,
        detail="The DNN is not supported by the SMF.",
        cause="DNN_NOT_SUPPORTED",
    ),
    "InsufficientResourceSliceDnn": ProblemDetails(
        title="DNN Resource insufficient",
        status=_INTERNAL,
        detail="The request cannot be provided due to insufficient resources for the specific "
        "slice and DNN.",
        cause="INSUFFICIENT_RESOURCES_SLICE_DNN",
    ),
    "IpAllocError": ProblemDetails(
        title="IP Allocation Error",
        status=_INTERNAL,
        detail="The request cannot be provided due to insufficient resources for the IP "
        "allocation.",
        cause="INSUFFICIENT_RESOURCES",
    ),
    "SubscriptionDataFetchError": _rejected(
        "Subscription Data Fetch error",
        "The request cannot be provided due to failure in fetching subscription data.",
    ),
    "SubscriptionDataLenError": _rejected(
        "Subscription Data Fetch error",
        "The request cannot be provided due to not receiving any subscription data.  ",
    ),
    "UDMDiscoveryFailure": _rejected(
        "UDM Discovery Failure",
        "The request cannot be provided due to failure in UDM discovery.",
    ),
    "UPFDataPathError": _rejected(
        "UPF Data Path Failure",
        "The request cannot be provided due to failure in fetching UPF data path.",
    ),
    "PCFDiscoveryFailure": _rejected(
        "PCF Discovery Failure",
        "The request cannot be provided due to failure in PCF discovery.",
    ),
    "PCFPolicyCreateFailure": _rejected(
        "PCF Discovery Failure",
        "The request cannot be provided due to failure in creating PCF policy.",
    ),
    "ApplySMPolicyFailure": _rejected(
        "Apply SM Policy Error",
        "The request cannot be provided due to failure in applying SM policy.",
    ),
    "AMFDiscoveryFailure": _rejected(
        "AMF Discovery Failure",
        "The request cannot be provided due to failure in AMF discovery .",
    ),
}

_CAUSES: dict[str, int] = {
    "DnnDeniedError": CAUSE_5GMM_DNN_NOT_SUPPORTED_OR_NOT_SUBSCRIBED_IN_THE_SLICE,
    "DnnNotSupported": CAUSE_5GMM_DNN_NOT_SUPPORTED_OR_NOT_SUBSCRIBED_IN_THE_SLICE,
    "InsufficientResourceSliceDnn": CAUSE_5GSM_INSUFFICIENT_RESOURCES_FOR_SPECIFIC_SLICE_AND_DNN,
    "IpAllocError": CAUSE_5GSM_INSUFFICIENT_RESOURCES,
    "SubscriptionDataFetchError": CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED,
    "SubscriptionDataLenError": CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED,
    "UDMDiscoveryFailure": CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED,
    "UPFDataPathError": CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED,
    "PCFDiscoveryFailure": CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED,
    "PCFPolicyCreateFailure": CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED,
    "ApplySMPolicyFailure": CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED,
    "AMFDiscoveryFailure": CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED,
}

ERROR_NAMES = tuple(_PROBLEMS)


def problem_details(name: str) -> ProblemDetails:
    """A fresh copy of the problem report for a named error; KeyError if unknown."""
    return replace(_PROBLEMS[name])


def nas_cause(name: str) -> int:
    """The NAS cause sent to the UE for a named error; KeyError if unknown."""
    return _CAUSES[name]


class SmfError(Exception):
    """A named session management failure."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.problem = problem_details(name)
        self.cause = nas_cause(name)
        super().__init__(self.problem.detail)