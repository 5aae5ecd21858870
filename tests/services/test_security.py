"""
Tests for password hashing, JWT tokens and TOTP helpers.
"""

from datetime import timedelta

import pyotp
import pytest

from certify_link.config import get_settings
from certify_link.exceptions import AuthenticationError, ErrorCode, InvalidInputError
from certify_link.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    _encode,
    create_token_pair,
    decode_token,
    email_verification_token,
    generate_totp_secret,
    hash_password,
    hash_token,
    totp_provisioning_uri,
    verify_password,
    verify_totp,
)


class TestPasswords:

    def test_hash_verifies(self):
        hashed = hash_password("Secret123!")
        assert hashed != "Secret123!"
        assert verify_password("Secret123!", hashed)
        assert not verify_password("Secret123?", hashed)

    def test_same_password_hashes_differently(self):
        assert hash_password("Secret123!") != hash_password("Secret123!")

    def test_missing_values_never_verify(self):
        assert not verify_password("", hash_password("Secret123!"))
        assert not verify_password("Secret123!", None)

    def test_malformed_hash_does_not_raise(self):
        assert not verify_password("Secret123!", "not-a-bcrypt-hash")

    def test_password_over_72_bytes(self):
        long_password = "Aa1!" + "x" * 76
        with pytest.raises(InvalidInputError, match="72 bytes"):
            hash_password(long_password)
        assert not verify_password(long_password, hash_password("Secret123!"))

    def test_multibyte_characters_count_as_bytes(self):
        # 36 characters, 72 bytes
        assert verify_password("\u00e9" * 36, hash_password("\u00e9" * 36))
        with pytest.raises(InvalidInputError):
            hash_password("\u00e9" * 37)


class TestTokens:

    def test_access_token_round_trip(self):
        tokens = create_token_pair(42)
        claims = decode_token(tokens["access_token"])
        assert claims["sub"] == "42"
        assert claims["type"] == ACCESS_TOKEN_TYPE
        assert tokens["token_type"] == "Bearer"
        assert tokens["expires_in"] == get_settings().ACCESS_TOKEN_EXPIRE_MINUTES * 60

    def test_remember_me_extends_lifetime(self):
        tokens = create_token_pair(42, remember_me=True)
        assert tokens["expires_in"] == get_settings().REMEMBER_ME_ACCESS_DAYS * 86400

    def test_refresh_token_needs_refresh_type(self):
        tokens = create_token_pair(42)
        claims = decode_token(tokens["refresh_token"], expected_type=REFRESH_TOKEN_TYPE)
        assert claims["type"] == REFRESH_TOKEN_TYPE

        with pytest.raises(AuthenticationError) as exc:
            decode_token(tokens["refresh_token"])
        assert exc.value.code == ErrorCode.INVALID_TOKEN

    def test_access_token_is_not_a_refresh_token(self):
        tokens = create_token_pair(42)
        with pytest.raises(AuthenticationError):
            decode_token(tokens["access_token"], expected_type=REFRESH_TOKEN_TYPE)

    def test_expired_token(self):
        token = _encode(
            42, ACCESS_TOKEN_TYPE, timedelta(seconds=-30), get_settings().JWT_SECRET
        )
        with pytest.raises(AuthenticationError) as exc:
            decode_token(token)
        assert exc.value.code == ErrorCode.TOKEN_EXPIRED

    def test_garbage_token(self):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_token("not.a.token")


class TestOneTimeCodes:

    def test_current_code_verifies(self):
        secret = generate_totp_secret()
        assert verify_totp(secret, pyotp.TOTP(secret).now())

    def test_wrong_code_fails(self):
        secret = generate_totp_secret()
        code = pyotp.TOTP(secret).now()
        wrong = "000000" if code != "000000" else "111111"
        assert not verify_totp(secret, wrong)

    def test_missing_secret_or_code(self):
        assert not verify_totp(None, "123456")
        assert not verify_totp(generate_totp_secret(), None)

    def test_provisioning_uri_names_the_account(self):
        uri = totp_provisioning_uri(generate_totp_secret(), "user@insurer.ci")
        assert uri.startswith("otpauth://totp/")
        assert "insurer.ci" in uri
        assert "issuer=" in uri


def test_hash_token_is_stable_sha256():
    assert hash_token("abc") == hash_token("abc")
    assert len(hash_token("abc")) == 64


def test_email_verification_token_depends_on_email():
    assert email_verification_token(1, "a@insurer.ci") != email_verification_token(
        1, "b@insurer.ci"
    )
