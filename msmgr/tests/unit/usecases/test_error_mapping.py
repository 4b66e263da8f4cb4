from __future__ import annotations

import pytest

from msmgr.adapters.api_errors import ApiClientError, ApiError, ApiServerError, ApiTimeoutError
from msmgr.domain.ports import UseCaseError
from msmgr.usecases.error_mapping import map_api_error


def test_use_case_error_passes_through() -> None:
    original = UseCaseError("X", "already mapped")

    assert map_api_error(original) is original


def test_timeout_maps_to_transport_unavailable() -> None:
    err = map_api_error(ApiTimeoutError("Timeout contacting x", context="GET x"))

    assert err.code == "transport_unavailable"
    assert "not reachable" in err.message
    assert err.details == {"context": "GET x"}


def test_structured_api_error_keeps_code_message_details() -> None:
    exc = ApiClientError("folder not empty", status=409, code="not_empty", details={"path": "/x"})

    err = map_api_error(exc, default_code="RELOCATE_FAILED")

    assert (err.code, err.message, err.details) == ("not_empty", "folder not empty", {"path": "/x"})


def test_uncoded_http_errors_get_status_based_codes() -> None:
    assert map_api_error(ApiServerError("boom", status=500)).code == "backend_error"
    assert map_api_error(ApiClientError("nope", status=403)).code == "request_rejected_403"
    assert map_api_error(ApiError("weird"), default_code="D").code == "D"


def test_plain_mapping_with_code_and_message() -> None:
    err = map_api_error({"code": "io", "message": "disk full", "details": [1]})

    assert (err.code, err.message, err.details) == ("io", "disk full", [1])


def test_plain_string_uses_default_code() -> None:
    err = map_api_error("something broke", default_code="STATUS_FAILED")

    assert (err.code, err.message) == ("STATUS_FAILED", "something broke")


def test_generic_exception_uses_text_or_class_name() -> None:
    assert map_api_error(RuntimeError("kaput")).message == "kaput"
    assert map_api_error(KeyError()).message == "KeyError"


@pytest.mark.parametrize("value", [None, 42, [1, "two"], {"no": "code"}])
def test_arbitrary_values_are_stringified(value) -> None:
    err = map_api_error(value, default_code="D")

    assert err.code == "D"
    assert isinstance(err.message, str) and err.message


def test_unserializable_and_unprintable_values_never_raise() -> None:
    class _Nasty:
        def __repr__(self) -> str:
            raise RuntimeError("no repr")

        def __str__(self) -> str:
            raise RuntimeError("no str")

    err = map_api_error(_Nasty(), default_code="D")

    assert err.code == "D"
    assert err.message == "<unprintable _Nasty>"
