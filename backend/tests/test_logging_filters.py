"""Log scrubbing and rate limit parsing tests."""

from __future__ import annotations

import logging

import pytest

from app.api.rate_limits import parse_rate
from app.security.logging_filters import SensitiveFilter, scrub


def test_scrub_redacts_credentials_and_codes() -> None:
    line = (
        'Authorization: Bearer abc.def-123 password="hunter2" '
        "coupon_code=WELCOME10 gift_card_code: GIFT-100"
    )

    scrubbed = scrub(line)

    for secret in ("abc.def-123", "hunter2", "WELCOME10", "GIFT-100"):
        assert secret not in scrubbed
    assert scrubbed.count("**REDACTED**") == 4


def test_scrub_masks_email_local_part() -> None:
    assert scrub("login for thandi@example.com") == "login for t***@example.com"


def test_filter_scrubs_format_arguments() -> None:
    record = logging.LogRecord(
        "app", logging.INFO, __file__, 1, "user %s sent %s", ("a@b.io", 3), None
    )

    assert SensitiveFilter().filter(record)
    assert record.getMessage() == "user a***@b.io sent 3"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("10/minute", (10, 60)),
        ("5 / hour", (5, 3600)),
        ("100/day", (100, 86400)),
        ("lots/minute", (7, 30)),
        ("20", (7, 30)),
        ("20/fortnight", (20, 30)),
    ],
)
def test_parse_rate(value: str, expected: tuple[int, int]) -> None:
    assert parse_rate(value, fallback=(7, 30)) == expected
