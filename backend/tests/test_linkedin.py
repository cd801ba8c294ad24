"""Tests for the LinkedIn connection endpoints."""

from urllib.parse import parse_qs, urlparse

import pytest

from conftest import auth_headers

from crm.core.security import create_oauth_state, decrypt_secret
from crm.models import IntegrationProvider, UserIntegration
from crm.services import linkedin
from crm.services.oauth_client import OAuthProviderError


@pytest.fixture
def linkedin_api(monkeypatch):
    requests = []

    async def fake_request_json(provider, method, url, **kwargs):
        requests.append(url)
        if url == linkedin.TOKEN_URL:
            if kwargs["data"]["code"] == "bad-code":
                raise OAuthProviderError(provider, "HTTP 400", status_code=400)
            return {"access_token": "AQV-token", "expires_in": 5184000, "scope": "openid profile email"}
        if url == linkedin.USERINFO_URL:
            return {
                "sub": "li-member-1",
                "name": "Jane Doe",
                "email": "jane@seodons.co.uk",
                "picture": "https://media.licdn.com/jane.jpg",
            }
        raise AssertionError(f"unexpected request {url}")

    monkeypatch.setattr(linkedin, "request_json", fake_request_json)
    return requests


def social_redirect(response):
    assert response.status_code in (302, 307)
    location = urlparse(response.headers["location"])
    assert location.path == "/dashboard/social"
    return parse_qs(location.query)


def test_connect_requires_session(client):
    assert client.get("/api/linkedin/connect").status_code == 401


def test_connect_without_local_row(client):
    assert client.get("/api/linkedin/connect", headers=auth_headers("user_missing")).status_code == 404


def test_connect_returns_auth_url(client, make_user):
    user = make_user()

    response = client.get("/api/linkedin/connect", headers=auth_headers(user.auth_id))

    assert response.status_code == 200
    url = urlparse(response.json()["authUrl"])
    params = parse_qs(url.query)
    assert url.netloc == "www.linkedin.com"
    assert params["scope"] == ["openid profile email w_member_social"]
    assert params["state"][0]


def test_callback_stores_profile(client, db, make_user, linkedin_api):
    user = make_user()

    response = client.get(
        "/api/linkedin/callback",
        params={"code": "good-code", "state": create_oauth_state(str(user.id), "linkedin")},
        follow_redirects=False,
    )

    assert social_redirect(response) == {"success": ["true"]}
    integration = db.query(UserIntegration).one()
    assert integration.provider == IntegrationProvider.LINKEDIN
    assert integration.provider_user_id == "li-member-1"
    assert integration.display_name == "Jane Doe"
    assert decrypt_secret(integration.access_token) == "AQV-token"
    assert integration.refresh_token is None


def test_callback_with_google_state_is_rejected(client, make_user, linkedin_api):
    user = make_user()

    response = client.get(
        "/api/linkedin/callback",
        params={"code": "good-code", "state": create_oauth_state(str(user.id), "google")},
        follow_redirects=False,
    )

    assert social_redirect(response) == {"error": ["invalid_state"]}
    assert linkedin_api == []


def test_callback_exchange_failure(client, db, make_user, linkedin_api):
    user = make_user()

    response = client.get(
        "/api/linkedin/callback",
        params={"code": "bad-code", "state": create_oauth_state(str(user.id), "linkedin")},
        follow_redirects=False,
    )

    assert social_redirect(response) == {"error": ["connection_failed"]}
    assert db.query(UserIntegration).count() == 0


def test_callback_missing_code(client):
    response = client.get("/api/linkedin/callback", follow_redirects=False)

    assert social_redirect(response) == {"error": ["missing_params"]}


def test_disconnect(client, db, make_user, linkedin_api):
    user = make_user()
    client.get(
        "/api/linkedin/callback",
        params={"code": "good-code", "state": create_oauth_state(str(user.id), "linkedin")},
        follow_redirects=False,
    )

    response = client.post("/api/linkedin/disconnect", headers=auth_headers(user.auth_id))

    assert response.json() == {"success": True}
    assert db.query(UserIntegration).count() == 0
