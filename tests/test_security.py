"""
Fund Ledger - Security Tests

Token handling, the scheduler secret and amount validation.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from fundledger.config import settings
from fundledger.utils.error_handling import InvalidAmountException, validate_amount
from fundledger.utils.security import create_access_token, verify_access_token, verify_cron_secret


class TestAccessTokens:
    """JWT helpers."""

    def test_round_trip(self):
        token = create_access_token({"sub": "user-1"})
        payload = verify_access_token(token)
        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"

    def test_expired_token(self):
        token = create_access_token({"sub": "user-1"}, expires_delta=timedelta(minutes=-1))
        assert verify_access_token(token) is None

    def test_garbage_token(self):
        assert verify_access_token("abc.def.ghi") is None


class TestCronSecret:
    """Scheduler bearer secret."""

    def test_disabled_without_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "")
        assert verify_cron_secret("") is False
        assert verify_cron_secret("anything") is False

    def test_matches_configured_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")
        assert verify_cron_secret("s3cret") is True
        assert verify_cron_secret("s3cret ") is False


class TestValidateAmount:
    """Monetary amount validation."""

    def test_valid(self):
        assert validate_amount("12.50") == Decimal("12.50")
        assert validate_amount(0, allow_zero=True) == Decimal("0")

    @pytest.mark.parametrize("value", [0, -1, "abc", None, float("inf")])
    def test_invalid(self, value):
        with pytest.raises(InvalidAmountException):
            validate_amount(value)
