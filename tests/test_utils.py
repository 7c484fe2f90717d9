from datetime import datetime, timedelta, timezone

from conftest import http_response
from postyt.utils.oauth import expires_at, pkce_challenge, pkce_verifier
from postyt.utils.provider_errors import (
    extract_graph_error,
    extract_tiktok_error,
    extract_twitter_error,
    graph_error_code,
    response_payload,
)


def test_expires_at():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert expires_at(3600, now=now) == now + timedelta(hours=1)
    assert expires_at("60", now=now) == now + timedelta(minutes=1)
    assert expires_at(None, now=now) is None
    assert expires_at("soon", now=now) is None


def test_pkce_verifier_is_stable_per_state():
    first = pkce_verifier("secret", "user-1")
    assert first == pkce_verifier("secret", "user-1")
    assert first != pkce_verifier("secret", "user-2")
    assert 43 <= len(first) <= 128
    assert "=" not in pkce_challenge(first)


def test_graph_error_extraction():
    response = http_response(400, {"error": {"message": "Invalid OAuth access token", "code": 190}})
    assert extract_graph_error(response) == "Invalid OAuth access token | code=190"
    assert graph_error_code(response) == 190


def test_instagram_login_error_shape():
    response = http_response(400, {"error_type": "OAuthException", "code": 400, "error_message": "Invalid code"})
    assert extract_graph_error(response) == "Invalid code"
    assert graph_error_code(response) is None


def test_error_extraction_falls_back_to_body():
    response = http_response(502, None, text="Bad Gateway")
    assert extract_graph_error(response) == "Bad Gateway"
    assert extract_twitter_error(response) == "Bad Gateway"
    assert extract_tiktok_error(http_response(500, None, text="")) == "HTTP 500"


def test_tiktok_error_shape():
    response = http_response(
        403, {"error": {"code": "spam_risk_too_many_posts", "message": "Too many posts", "log_id": "L1"}}
    )
    assert extract_tiktok_error(response) == "Too many posts | code=spam_risk_too_many_posts | log_id=L1"


def test_twitter_error_shape():
    response = http_response(403, {"title": "Forbidden", "detail": "You are not permitted to perform this action."})
    assert extract_twitter_error(response) == "Forbidden | You are not permitted to perform this action."


def test_response_payload_only_returns_objects():
    assert response_payload(http_response(200, {"id": "1"})) == {"id": "1"}
    assert response_payload(http_response(200, ["a"])) == {}
    assert response_payload(http_response(502, None, text="<html>Bad Gateway</html>")) == {}
