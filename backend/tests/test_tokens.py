from datetime import timedelta

from jose import JWTError
import pytest

from app.errors import InvalidToken, IssuanceError
from app.services import tokens
from app.services.passwords import get_password_hash, verify_password


def test_issue_tokens_returns_distinct_pair():
    pair = tokens.issue_tokens("user-1")

    assert pair.access_token
    assert pair.refresh_token
    assert pair.access_token != pair.refresh_token
    assert tokens.decode_access_token(pair.access_token) == "user-1"


def test_refresh_tokens_are_opaque_and_high_entropy():
    issued = {tokens.generate_refresh_token() for _ in range(100)}

    assert len(issued) == 100
    # 32 random bytes, base64url encoded without padding.
    assert all(len(token) >= 43 for token in issued)
    assert all(token.count(".") == 0 for token in issued)


def test_expired_access_token_is_rejected_unless_expiry_is_ignored():
    token = tokens.create_access_token("user-2", expires_delta=timedelta(minutes=-1))

    with pytest.raises(InvalidToken):
        tokens.decode_access_token(token)
    assert tokens.decode_access_token(token, verify_exp=False) == "user-2"


def test_tampered_access_token_is_rejected():
    header, payload, signature = tokens.create_access_token("user-3").split(".")
    forged = ("A" if signature[0] != "A" else "B") + signature[1:]

    with pytest.raises(InvalidToken):
        tokens.decode_access_token(".".join([header, payload, forged]))


def test_signing_failure_raises_issuance_error(monkeypatch):
    def broken_encode(*args, **kwargs):
        raise JWTError("no key")

    monkeypatch.setattr(tokens.jwt, "encode", broken_encode)

    with pytest.raises(IssuanceError):
        tokens.issue_tokens("user-4")


def test_hash_token_is_stable_sha256():
    assert tokens.hash_token("abc") == tokens.hash_token("abc")
    assert tokens.hash_token("abc") != tokens.hash_token("abd")
    assert len(tokens.hash_token("abc")) == 64


def test_password_verification():
    hashed = get_password_hash("P@ss1")

    assert hashed != "P@ss1"
    assert verify_password("P@ss1", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("P@ss1", "not-a-bcrypt-hash")
