import pytest

from saitire.config import AdminConfig
from saitire.security.tokens import (
    TokenError,
    is_admin_token,
    issue_token,
    login_token,
    verify_token,
)


def test_issue_and_verify():
    token = issue_token("geheim", ttl_hours=1, now=1_000)
    claims = verify_token("geheim", token, now=2_000)
    assert claims.role == "admin"
    assert claims.expires_at == 1_000 + 3600


def test_expired_token_rejected():
    token = issue_token("geheim", ttl_hours=1, now=1_000)
    with pytest.raises(TokenError, match="token_expired"):
        verify_token("geheim", token, now=1_000 + 3600)


def test_tampered_token_rejected():
    token = issue_token("geheim", ttl_hours=1, now=1_000)
    version, payload, signature = token.split(".")
    with pytest.raises(TokenError):
        verify_token("ander", token, now=1_001)
    with pytest.raises(TokenError):
        verify_token("geheim", f"{version}.{payload}x.{signature}", now=1_001)
    with pytest.raises(TokenError, match="malformed_token"):
        verify_token("geheim", "v2.a.b", now=1_001)


def test_password_mode():
    admin = AdminConfig(password="pw", token_secret=None, token_ttl_hours=12)
    assert login_token(admin, "pw") == "pw"
    assert is_admin_token(admin, "pw")
    assert not is_admin_token(admin, "PW")
    assert not is_admin_token(admin, "")


def test_signed_mode():
    admin = AdminConfig(password="pw", token_secret="s3cr3t", token_ttl_hours=12)
    token = login_token(admin, "pw")
    assert token.startswith("v1.")
    assert is_admin_token(admin, token)
    assert not is_admin_token(admin, "pw")


def test_no_password_means_no_admin():
    admin = AdminConfig(password=None, token_secret=None, token_ttl_hours=12)
    assert not is_admin_token(admin, "anything")
