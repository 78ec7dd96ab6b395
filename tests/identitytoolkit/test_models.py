import json

import pytest

from identitytoolkit import GitkitServerError, GitkitUser, OobResult
from identitytoolkit.models import from_web_safe_base64, to_web_safe_base64


class TestWebSafeBase64:
    def test_uses_url_safe_alphabet(self):
        assert to_web_safe_base64(b"\xfb\xff\xfe") == "-__-"

    def test_decodes_without_padding(self):
        assert from_web_safe_base64("c2FsdA") == b"salt"

    def test_invalid_value_raises(self):
        with pytest.raises(ValueError):
            from_web_safe_base64("!!!")


class TestGitkitUser:
    def test_from_token(self):
        user = GitkitUser.from_token(
            {
                "sub": "1234",
                "email": "test@test.com",
                "verified": True,
                "display_name": "Test User",
                "photo_url": "http://example.com/me.png",
                "provider_id": "google.com",
            }
        )

        assert user.user_id == "1234"
        assert user.email == "test@test.com"
        assert user.email_verified is True
        assert user.display_name == "Test User"
        assert user.provider_id == "google.com"

    def test_from_token_prefers_user_id_claim(self):
        assert GitkitUser.from_token({"sub": "a", "user_id": "b"}).user_id == "b"

    def test_from_api_response(self):
        user = GitkitUser.from_api_response(
            {
                "localId": "1234",
                "email": "test@test.com",
                "emailVerified": True,
                "displayName": "Test User",
                "passwordHash": "aGFzaA==",
                "salt": "c2FsdA",
                "providerUserInfo": [{"providerId": "google.com"}],
            }
        )

        assert user.user_id == "1234"
        assert user.email_verified is True
        assert user.password_hash == b"hash"
        assert user.salt == b"salt"
        assert user.provider_id == "google.com"

    def test_from_api_response_password_account(self):
        user = GitkitUser.from_api_response({"localId": "1", "email": "a@b.c"})
        assert user.provider_id is None
        assert user.password_hash is None
        assert user.email_verified is False

    def test_from_api_response_malformed_hash(self):
        with pytest.raises(GitkitServerError, match="Malformed account record '1'"):
            GitkitUser.from_api_response({"localId": "1", "passwordHash": "!!!"})

    def test_to_request_encodes_hash_and_salt(self):
        user = GitkitUser(user_id="1", email="a@b.c", password_hash=b"\xfb\xff", salt=b"salt")

        request = user.to_request()

        assert request == {
            "localId": "1",
            "email": "a@b.c",
            "passwordHash": "-_8=",
            "salt": "c2FsdA==",
        }

    def test_repr_hides_password_hash(self):
        assert "password_hash" not in repr(GitkitUser(user_id="1", password_hash=b"secret"))


class TestOobResult:
    def test_failure_envelope(self):
        result = OobResult.failure("missing oob action")

        assert result.success is False
        assert json.loads(result.response_body) == {"error": "missing oob action"}
        assert result.oob_link is None

    def test_success(self):
        result = OobResult(
            response_body=json.dumps({"success": True}),
            action="resetPassword",
            email="a@b.c",
            oob_code="code",
            oob_link="http://w?mode=resetPassword&oobCode=code",
        )
        assert result.success is True
