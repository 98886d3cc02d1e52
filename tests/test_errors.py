from http import HTTPStatus

import pytest

from smfcore.errors import (
    CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED,
    ERROR_NAMES,
    SmfError,
    nas_cause,
    problem_details,
)


def test_dnn_denied_problem():
    problem = problem_details("DnnDeniedError")
    assert problem.status == HTTPStatus.FORBIDDEN
    assert problem.cause == "DNN_DENIED"
    assert problem.title == "DNN Denied"


def test_ip_alloc_problem():
    problem = problem_details("IpAllocError")
    assert problem.status == HTTPStatus.INTERNAL_SERVER_ERROR
    assert problem.cause == "INSUFFICIENT_RESOURCES"


def test_dnn_errors_share_nas_cause():
    assert nas_cause("DnnDeniedError") == nas_cause("DnnNotSupported")


def test_request_rejected_errors_share_nas_cause():
    rejected = [n for n in ERROR_NAMES if problem_details(n).cause == "REQUEST_REJECTED"]
    assert len(rejected) == 8
    assert {nas_cause(n) for n in rejected} == {CAUSE_5GSM_REQUEST_REJECTED_UNSPECIFIED}


def test_every_named_error_has_cause():
    for name in ERROR_NAMES:
        assert nas_cause(name) > 0


def test_problem_details_returns_copy():
    first = problem_details("UPFDataPathError")
    first.detail = "changed"
    assert problem_details("UPFDataPathError").detail == (
        "The request cannot be provided due to failure in fetching UPF data path."
    )


def test_unknown_error_raises():
    with pytest.raises(KeyError):
        problem_details("NoSuchError")
    with pytest.raises(KeyError):
        nas_cause("NoSuchError")


def test_smf_error_carries_problem_and_cause():
    err = SmfError("UDMDiscoveryFailure")
    assert err.problem.title == "UDM Discovery Failure"
    assert err.cause == nas_cause("UDMDiscoveryFailure")
    assert str(err) == "The request cannot be provided due to failure in UDM discovery."


def test_smf_error_unknown_name():
    with pytest.raises(KeyError):
        SmfError("Bogus")