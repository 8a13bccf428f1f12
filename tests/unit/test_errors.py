from __future__ import annotations

import pytest

from essready.infrastructure.errors import (
    DiscoveryError,
    ErrorCode,
    NetworkError,
    NotFoundError,
    ParseError,
    ReadinessError,
    RoutineError,
    UnexpectedStatusError,
)


@pytest.mark.parametrize(
    ("error_type", "code", "retryable"),
    [
        (NetworkError, ErrorCode.NETWORK, True),
        (NotFoundError, ErrorCode.NOT_FOUND, False),
        (ParseError, ErrorCode.PARSE, False),
        (RoutineError, ErrorCode.ROUTINE, False),
        (DiscoveryError, ErrorCode.DISCOVERY, False),
    ],
)
def test_error_codes_and_retryability(
    error_type: type[ReadinessError], code: ErrorCode, retryable: bool
) -> None:
    error = error_type("boom", hint="try again", host="localhost")

    assert isinstance(error, ReadinessError)
    assert error.user_message == "boom"
    assert str(error) == "boom"
    assert error.hint == "try again"
    assert error.context.code == code.value
    assert error.context.fields == {"host": "localhost"}
    assert error.retryable is retryable


def test_unexpected_status_error_message() -> None:
    error = UnexpectedStatusError(418)

    assert error.user_message == "Unexpected HTTP status code: 418"
    assert error.status_code == 418
    assert error.context.fields == {"status_code": 418}
    assert error.retryable is False
