"""Pytest fixtures for reconkit tests."""

from __future__ import annotations

import pytest
import structlog

from reconkit.interceptor.session import InterceptorSession
from reconkit.models import StorageSnapshot

# Token from jwt.io: {"alg":"HS256","typ":"JWT"} / {"sub":"1234567890","name":"John Doe","iat":1516239022}
SAMPLE_JWT = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9"
    ".eyJzdWIiOiIxMjM0NTY3ODkwIiwibmFtZSI6IkpvaG4gRG9lIiwiaWF0IjoxNTE2MjM5MDIyfQ"
    ".SflKxwRJSMeKKF2QT4fwpMeJf36POk6yJV_adQssw5c"
)


@pytest.fixture
def session() -> InterceptorSession:
    """Fresh interceptor session."""
    return InterceptorSession()


@pytest.fixture
def sample_jwt() -> str:
    return SAMPLE_JWT


@pytest.fixture
def sample_storage() -> StorageSnapshot:
    """Storage snapshot holding tokens in raw, nested JSON and cookie form."""
    return StorageSnapshot(
        local_storage={"auth": SAMPLE_JWT, "theme": "dark"},
        session_storage={"msal.cache": '{"credential": {"accessToken": "%s", "scopes": ["openid"]}}' % SAMPLE_JWT},
        cookies=f"sid=abc123; jwt={SAMPLE_JWT}",
    )


LOGIN_PAGE = """
<html><body>
  <form id="login" action="/login" method="post">
    <input type="hidden" name="csrf_token" value="9f8e7d6c5b4a">
    <input type="text" name="username" placeholder="Username">
    <input type="password" name="password">
    <input type="checkbox" name="remember">
    <input type="submit" value="Log in">
  </form>
  <form name="search">
    <input name="q" value="shoes">
    <select name="sort"><option value="price">Price</option><option value="new" selected>Newest</option></select>
    <textarea name="notes">gift</textarea>
  </form>
</body></html>
"""


@pytest.fixture
def login_page() -> str:
    """Server-rendered page with a protected login form and a search form."""
    return LOGIN_PAGE


@pytest.fixture(autouse=True)
def log_events():
    """Capture structlog events instead of printing them to stdout."""
    with structlog.testing.capture_logs() as events:
        yield events
