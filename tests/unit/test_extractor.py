"""Tests for credential extraction and project-scope checks."""

import pytest

from maas_gateway.auth.extractor import (
    CredentialKind,
    check_project_scope,
    extract_credentials,
)
from maas_gateway.errors import AuthError

SCOPE = "lanonasis-maas"


class TestExtractCredentials:
    def test_api_key_wins_over_bearer(self) -> None:
        """Both credentials present: API key takes precedence."""
        creds = extract_credentials(
            {
                "x-project-scope": SCOPE,
                "x-api-key": "abc123",
                "authorization": "Bearer some.jwt.token",
            },
            SCOPE,
        )
        assert creds.kind is CredentialKind.API_KEY
        assert creds.value == "abc123"

    def test_bearer_token(self) -> None:
        creds = extract_credentials(
            {"x-project-scope": SCOPE, "authorization": "Bearer tok"}, SCOPE
        )
        assert creds.kind is CredentialKind.JWT
        assert creds.value == "tok"

    def test_bearer_scheme_case_insensitive(self) -> None:
        creds = extract_credentials(
            {"x-project-scope": SCOPE, "authorization": "bearer tok"}, SCOPE
        )
        assert creds.kind is CredentialKind.JWT

    def test_blank_api_key_falls_through_to_bearer(self) -> None:
        creds = extract_credentials(
            {"x-project-scope": SCOPE, "x-api-key": "  ", "authorization": "Bearer t"},
            SCOPE,
        )
        assert creds.kind is CredentialKind.JWT

    def test_missing_credentials(self) -> None:
        """No API key and no bearer token: 401 MISSING_AUTH."""
        with pytest.raises(AuthError) as exc_info:
            extract_credentials({"x-project-scope": SCOPE}, SCOPE)
        assert exc_info.value.status_code == 401
        assert exc_info.value.code == "MISSING_AUTH"

    def test_non_bearer_authorization_is_missing_auth(self) -> None:
        with pytest.raises(AuthError) as exc_info:
            extract_credentials(
                {"x-project-scope": SCOPE, "authorization": "Basic dXNlcjpwYXNz"},
                SCOPE,
            )
        assert exc_info.value.code == "MISSING_AUTH"

    def test_scope_checked_before_credentials(self) -> None:
        """Wrong scope with no credentials reports the scope problem."""
        with pytest.raises(AuthError) as exc_info:
            extract_credentials({"x-project-scope": "other"}, SCOPE)
        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "INVALID_PROJECT_SCOPE"

    def test_repr_masks_value(self) -> None:
        creds = extract_credentials(
            {"x-project-scope": SCOPE, "x-api-key": "super-secret"}, SCOPE
        )
        assert "super-secret" not in repr(creds)


class TestCheckProjectScope:
    def test_missing_scope(self) -> None:
        with pytest.raises(AuthError) as exc_info:
            check_project_scope({}, SCOPE)
        assert exc_info.value.code == "INVALID_PROJECT_SCOPE"

    def test_scope_is_exact_match(self) -> None:
        with pytest.raises(AuthError):
            check_project_scope({"x-project-scope": SCOPE.upper()}, SCOPE)

    def test_matching_scope(self) -> None:
        check_project_scope({"x-project-scope": SCOPE}, SCOPE)
