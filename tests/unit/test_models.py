"""Unit tests for Pydantic models.

Tests model validation, request snapshots and refresh result normalization.
"""

from __future__ import annotations

import httpx
import pytest
from pydantic import ValidationError

from auth_refresh_sdk.models import (
    AttemptContext,
    CredentialPair,
    RefreshConfiguration,
    RequestSnapshot,
    TokenResponse,
    normalize_refresh_result,
)


class TestTokenResponse:
    """Tests for TokenResponse model."""

    def test_extra_fields_are_kept(self) -> None:
        response = TokenResponse.model_validate(
            {"access_token": "a", "refresh_token": "r", "user": {"id": 7}}
        )

        assert response.access_token == "a"
        assert response.refresh_token == "r"
        assert response.model_extra == {"user": {"id": 7}}

    def test_refresh_token_optional(self) -> None:
        assert TokenResponse(access_token="a").refresh_token is None

    @pytest.mark.parametrize("body", [{}, {"access_token": ""}])
    def test_access_token_required(self, body: dict[str, str]) -> None:
        with pytest.raises(ValidationError):
            TokenResponse.model_validate(body)

    def test_frozen(self) -> None:
        response = TokenResponse(access_token="a")
        with pytest.raises(ValidationError):
            response.access_token = "b"


class TestCredentialPair:
    """Tests for CredentialPair model."""

    def test_empty(self) -> None:
        assert CredentialPair().is_empty
        assert not CredentialPair(refresh_token="r").is_empty


class TestRefreshConfiguration:
    """Tests for RefreshConfiguration model."""

    def test_defaults(self) -> None:
        config = RefreshConfiguration()

        assert config.expiry_status_code == 401
        assert config.refresh_endpoint is None
        assert not config.can_refresh

    def test_with_operation(self) -> None:
        config = RefreshConfiguration(refresh_operation=lambda: "token")
        assert config.can_refresh

    @pytest.mark.parametrize("code", [99, 600])
    def test_status_code_range(self, code: int) -> None:
        with pytest.raises(ValidationError):
            RefreshConfiguration(expiry_status_code=code)


class TestRequestSnapshot:
    """Tests for RequestSnapshot model."""

    def test_snapshot_drops_authorization(self) -> None:
        request = httpx.Request(
            "POST",
            "https://api.example.com/api/items?page=2",
            headers={"Authorization": "Bearer old", "X-Trace": "abc"},
            json={"name": "widget"},
        )

        snapshot = RequestSnapshot.from_request(request)

        assert snapshot.method == "POST"
        assert snapshot.url == "https://api.example.com/api/items?page=2"
        assert all(key.lower() != "authorization" for key, _ in snapshot.headers)
        assert ("x-trace", "abc") in snapshot.headers
        assert snapshot.content == request.content

    def test_replay_with_new_token(self) -> None:
        request = httpx.Request(
            "PUT",
            "https://api.example.com/api/items/1",
            headers={"Authorization": "Bearer old"},
            content=b"payload",
        )
        snapshot = RequestSnapshot.from_request(request)

        replay = snapshot.to_request("new")

        assert replay.method == "PUT"
        assert replay.url == request.url
        assert replay.headers["Authorization"] == "Bearer new"
        assert replay.read() == b"payload"
        assert replay.headers["Content-Length"] == "7"

    def test_replay_without_token(self) -> None:
        snapshot = RequestSnapshot.from_request(
            httpx.Request("GET", "https://api.example.com/", headers={"Authorization": "x"})
        )
        assert "Authorization" not in snapshot.to_request().headers

    def test_snapshot_is_independent_of_request(self) -> None:
        request = httpx.Request("GET", "https://api.example.com/")
        snapshot = RequestSnapshot.from_request(request)

        request.headers["X-Late"] = "1"

        assert "x-late" not in dict(snapshot.headers)


class TestAttemptContext:
    """Tests for AttemptContext model."""

    def test_mark_retried_returns_copy(self) -> None:
        attempt = AttemptContext()

        retried = attempt.mark_retried()

        assert retried.retried
        assert not attempt.retried


class TestNormalizeRefreshResult:
    """Tests for normalize_refresh_result."""

    def test_plain_token_keeps_previous_refresh(self) -> None:
        assert normalize_refresh_result("a2", "r1") == CredentialPair(
            access_token="a2", refresh_token="r1"
        )

    def test_rotated_refresh_token(self) -> None:
        result = TokenResponse(access_token="a2", refresh_token="r2")
        assert normalize_refresh_result(result, "r1").refresh_token == "r2"

    def test_unrotated_token_response(self) -> None:
        result = TokenResponse(access_token="a2")
        assert normalize_refresh_result(result, "r1").refresh_token == "r1"

    def test_credential_pair(self) -> None:
        result = CredentialPair(access_token="a2", refresh_token="r2")
        assert normalize_refresh_result(result, None) == result

    @pytest.mark.parametrize("result", ["", CredentialPair(refresh_token="r")])
    def test_missing_access_token(self, result: object) -> None:
        with pytest.raises(ValueError):
            normalize_refresh_result(result, "r1")  # type: ignore[arg-type]

    def test_unsupported_type(self) -> None:
        with pytest.raises(TypeError, match="dict"):
            normalize_refresh_result({"access_token": "a"}, "r1")  # type: ignore[arg-type]
