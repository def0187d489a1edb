"""
Tests for Mini App initData handling.
"""

import json
from urllib.parse import urlencode

import pytest
from fastapi import HTTPException

from app.middleware.auth import (
    InitDataError,
    compute_init_data_hash,
    parse_init_data_user,
    resolve_user_id,
)

BOT_TOKEN = "123456:TEST-TOKEN"


def _signed_init_data(user=None, token=BOT_TOKEN, **extra):
    fields = {
        "auth_date": "1700000000",
        "query_id": "AAHdF6IQAAAAAN0XohDhrOrc",
        "user": json.dumps(user if user is not None else {"id": 777, "first_name": "Ann"}),
        **extra,
    }
    fields["hash"] = compute_init_data_hash(fields, token)
    return urlencode(fields)


class TestParseInitDataUser:

    def test_valid_signature(self):
        user = parse_init_data_user(_signed_init_data(), BOT_TOKEN)
        assert user["id"] == 777
        assert user["first_name"] == "Ann"

    def test_signed_by_other_bot(self):
        with pytest.raises(InitDataError):
            parse_init_data_user(_signed_init_data(token="999:OTHER"), BOT_TOKEN)

    def test_tampered_user(self):
        init_data = _signed_init_data().replace("777", "778")
        with pytest.raises(InitDataError):
            parse_init_data_user(init_data, BOT_TOKEN)

    def test_missing_hash(self):
        init_data = urlencode({"user": json.dumps({"id": 1})})
        with pytest.raises(InitDataError):
            parse_init_data_user(init_data, BOT_TOKEN)

    def test_unverified_mode_trusts_payload(self):
        init_data = urlencode({"user": json.dumps({"id": 5})})
        assert parse_init_data_user(init_data)["id"] == 5

    @pytest.mark.parametrize("user", [
        "not json",
        json.dumps({"first_name": "No id"}),
        json.dumps({"id": "12"}),
    ])
    def test_bad_user_field(self, user):
        with pytest.raises(InitDataError):
            parse_init_data_user(urlencode({"user": user}))


class TestResolveUserId:

    def test_signed_user(self):
        assert resolve_user_id(_signed_init_data()) == 777

    def test_invalid_signature_is_401(self):
        with pytest.raises(HTTPException) as exc_info:
            resolve_user_id(_signed_init_data(token="999:OTHER"))
        assert exc_info.value.status_code == 401

    def test_dev_fallback_without_init_data(self):
        assert resolve_user_id(None) == 0

    def test_dev_fallback_user_configurable(self, monkeypatch):
        monkeypatch.setenv("DEV_USER_ID", "31337")
        assert resolve_user_id("") == 31337

    def test_production_requires_init_data(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        with pytest.raises(HTTPException) as exc_info:
            resolve_user_id(None)
        assert exc_info.value.status_code == 401

    def test_verification_can_be_disabled(self, monkeypatch):
        monkeypatch.setenv("VERIFY_INIT_DATA", "false")
        init_data = urlencode({"user": json.dumps({"id": 5})})
        assert resolve_user_id(init_data) == 5


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
