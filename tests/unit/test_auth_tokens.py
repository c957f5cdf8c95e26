"""Tests for bearer token utilities."""
import pytest
from datetime import timedelta
from jose import JWTError, jwt


class TestAccessTokens:
    """Tests for token creation and verification."""

    def test_round_trip_owner(self):
        """Test a token resolves back to its owner."""
        from chronos.utils.auth import create_access_token, verify_access_token

        token = create_access_token(owner="user123")

        assert verify_access_token(token) == "user123"

    def test_verify_invalid_token(self):
        """Test a garbage token is rejected."""
        from chronos.utils.auth import verify_access_token

        with pytest.raises(JWTError):
            verify_access_token("invalid.token.here")

    def test_verify_expired_token(self):
        """Test an expired token is rejected."""
        from chronos.utils.auth import create_access_token, verify_access_token

        token = create_access_token(owner="user123", expires_delta=timedelta(seconds=-1))

        with pytest.raises(JWTError):
            verify_access_token(token)

    def test_token_without_subject_rejected(self):
        """Test a validly signed token with no sub claim is rejected."""
        from chronos.config import settings
        from chronos.utils.auth import verify_access_token

        token = jwt.encode({"foo": "bar"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)

        with pytest.raises(JWTError, match="sub"):
            verify_access_token(token)

    def test_token_signed_with_other_secret_rejected(self):
        """Test tokens from another issuer are rejected."""
        from chronos.utils.auth import verify_access_token

        token = jwt.encode({"sub": "user123"}, "someone-else", algorithm="HS256")

        with pytest.raises(JWTError):
            verify_access_token(token)
