from __future__ import annotations

import time

import pytest
from fastapi import FastAPI, Request
from jose import jwt

from placeus.core.exceptions import InvalidTokenException, UnauthenticatedException
from placeus.core.jwt import get_bearer_token, verify_token
from tests.fixtures.auth import TEST_AUDIENCE, TEST_ISSUER, SigningKey, default_claims


def _verify(token, keys):
    return verify_token(token, keys, audience=TEST_AUDIENCE, issuer=TEST_ISSUER, algorithms=["RS256"])


def test_valid_token_against_x509_map(signing_key: SigningKey):
    token = signing_key.sign(default_claims())
    claims = _verify(token, signing_key.x509_map())
    assert claims["name"] == "Alice"
    assert claims["email"] == "alice@example.com"


def test_valid_token_against_jwks(signing_key: SigningKey):
    from placeus.services.jwks_service import normalize_key_set

    token = signing_key.sign(default_claims())
    claims = _verify(token, normalize_key_set(signing_key.jwks()))
    assert claims["sub"] == "uid-alice"


@pytest.mark.parametrize(
    "case",
    ["unknown_kid", "wrong_audience", "wrong_issuer", "expired", "not_yet_valid", "garbage", "hs256", "other_key"],
)
def test_every_failure_is_the_same_invalid_token(signing_key: SigningKey, case: str):
    now = int(time.time())
    keys = signing_key.x509_map()
    if case == "unknown_kid":
        token = signing_key.sign(default_claims(), kid="rotated-away")
    elif case == "wrong_audience":
        token = signing_key.sign(default_claims(aud="someone-else"))
    elif case == "wrong_issuer":
        token = signing_key.sign(default_claims(iss="https://evil.example"))
    elif case == "expired":
        token = signing_key.sign(default_claims(iat=now - 7200, exp=now - 3600))
    elif case == "not_yet_valid":
        token = signing_key.sign(default_claims(nbf=now + 3600))
    elif case == "garbage":
        token = "not.a.jwt"
    elif case == "hs256":
        token = jwt.encode(default_claims(), "shared-secret", algorithm="HS256", headers={"kid": signing_key.kid})
    else:
        token = SigningKey(kid=signing_key.kid).sign(default_claims())

    with pytest.raises(InvalidTokenException) as ei:
        _verify(token, keys)
    assert ei.value.status_code == 401
    assert ei.value.message == "Invalid token"


def _request(headers):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "app": FastAPI(),
    }
    return Request(scope)


def test_bearer_token_extraction():
    assert get_bearer_token(_request({"Authorization": "Bearer abc.def.ghi"})) == "abc.def.ghi"
    assert get_bearer_token(_request({"Authorization": "bearer abc"})) == "abc"
    # the SPA sends the bare ID token
    assert get_bearer_token(_request({"Authorization": "abc.def.ghi"})) == "abc.def.ghi"


def test_missing_header_is_unauthenticated():
    with pytest.raises(UnauthenticatedException) as ei:
        get_bearer_token(_request({}))
    assert ei.value.message == "No token provided"

    with pytest.raises(InvalidTokenException):
        get_bearer_token(_request({"Authorization": "Bearer"}))
