import pytest

from fleetsrv.es_errors import (
    ElasticError,
    ElasticNotFoundError,
    ESTimeoutError,
    IndexNotFoundError,
    VersionConflictError,
    is_error,
    translate_error,
)
from fleetsrv.es_result import ErrorInfo


@pytest.mark.parametrize("status", [200, 201])
def test_success_status_has_no_error(status):
    assert translate_error(status, ErrorInfo(type="anything")) is None


def test_missing_error_body():
    err = translate_error(500, None)
    assert isinstance(err, ElasticError)
    assert err.status == 500
    assert str(err) == "elastic fail 500::"


def test_version_conflict():
    err = translate_error(409, ErrorInfo(type="version_conflict_engine_exception"))
    assert isinstance(err, VersionConflictError)
    assert str(err) == "elastic version conflict"


def test_index_not_found_unwraps():
    info = ErrorInfo(type="index_not_found_exception", reason="no such index", cause_type="c", cause_reason="r")
    err = translate_error(404, info)
    assert isinstance(err, ElasticError)
    assert (err.cause_type, err.cause_reason) == ("c", "r")
    assert str(err) == "elastic fail 404:index_not_found_exception:no such index"
    assert isinstance(err.unwrap(), IndexNotFoundError)
    assert is_error(err, IndexNotFoundError)
    assert not is_error(err, ESTimeoutError)


def test_timeout_unwraps():
    err = translate_error(504, ErrorInfo(type="timeout_exception"))
    assert is_error(err, ESTimeoutError)
    assert isinstance(err.unwrap(), TimeoutError)


def test_other_type_does_not_unwrap():
    err = translate_error(400, ErrorInfo(type="parsing_exception"))
    assert err.unwrap() is None
    assert not is_error(err, IndexNotFoundError)


def test_is_error_follows_cause():
    try:
        try:
            raise ElasticNotFoundError()
        except ElasticNotFoundError as inner:
            raise RuntimeError("wrapped") from inner
    except RuntimeError as outer:
        assert is_error(outer, ElasticNotFoundError)
        assert not is_error(outer, VersionConflictError)


def test_is_error_none():
    assert is_error(None, Exception) is False