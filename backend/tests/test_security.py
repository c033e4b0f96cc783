import logging
from datetime import timedelta

import pytest
from jose import ExpiredSignatureError, JWTError

from agreeproof.api.rate_limit import parse_rate
from agreeproof.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)
from agreeproof.security.logging_filters import REDACTED, SensitiveFilter, redact


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("100/15 minutes", (100, 900)),
        ("5/minute", (5, 60)),
        ("20 / 2 hours", (20, 7200)),
        ("1/day", (1, 86400)),
        ("lots", (7, 7)),
        ("10/fortnight", (7, 7)),
    ],
)
def test_parse_rate(value: str, expected: tuple[int, int]) -> None:
    assert parse_rate(value, fallback=(7, 7)) == expected


def test_password_hashing_round_trip() -> None:
    hashed = get_password_hash("Secret12")

    assert hashed != "Secret12"
    assert verify_password("Secret12", hashed)
    assert not verify_password("secret12", hashed)
    assert not verify_password("Secret12", "not-a-bcrypt-hash")


def test_access_and_refresh_tokens_use_separate_secrets() -> None:
    access = create_access_token("user-1")
    refresh = create_refresh_token("user-1")

    assert decode_access_token(access)["type"] == "access"
    assert decode_refresh_token(refresh)["type"] == "refresh"
    with pytest.raises(JWTError):
        decode_access_token(refresh)
    with pytest.raises(JWTError):
        decode_refresh_token(access)


def test_expired_token_raises() -> None:
    token = create_access_token("user-1", expires_delta=timedelta(seconds=-5))

    with pytest.raises(ExpiredSignatureError):
        decode_access_token(token)


def test_redact_scrubs_credentials() -> None:
    text = (
        'Authorization: Bearer abc.def.ghi {"password": "hunter2", '
        '"refreshToken": "xyz"}'
    )

    scrubbed = redact(text)

    assert "hunter2" not in scrubbed
    assert "abc.def.ghi" not in scrubbed
    assert "xyz" not in scrubbed
    assert REDACTED in scrubbed


def test_sensitive_filter_rewrites_records() -> None:
    record = logging.LogRecord(
        "test", logging.INFO, __file__, 1, "body=%s", ('{"token": "secret"}',), None
    )

    assert SensitiveFilter().filter(record) is True
    assert "secret" not in record.getMessage()
