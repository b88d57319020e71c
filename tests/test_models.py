"""Tests for operation parsing, tokens and execution items"""

import pytest

from glpi_adapter.config import Settings
from glpi_adapter.errors import OperationError, ParameterEvaluationError
from glpi_adapter.models import (
    AccessToken,
    Destination,
    ExecutionItem,
    FieldDescriptor,
    GlpiCredentials,
    OperationDescriptor,
)


class TestOperationDescriptor:
    """Tests for operation identifier parsing"""

    @pytest.mark.parametrize(
        "identifier, method, template",
        [
            ("GET /Ticket/{id}", "GET", "/Ticket/{id}"),
            ("DELETE /Assistance/Ticket/{id}", "DELETE", "/Assistance/Ticket/{id}"),
            ("PATCH  /Ticket/{id}", "PATCH", "/Ticket/{id}"),
            ("POST /Assistance/Ticket", "POST", "/Assistance/Ticket"),
        ],
    )
    def test_parses_method_and_template(self, identifier: str, method: str, template: str) -> None:
        """Test splitting on the first space"""
        operation = OperationDescriptor.parse(identifier)
        assert operation.method == method
        assert operation.template == template
        assert operation.identifier == f"{method} {template}"

    @pytest.mark.parametrize(
        "identifier",
        ["", None, "FETCH /Ticket", "GET", "GET Ticket/{id}", "/Ticket", 42],
    )
    def test_rejects_malformed_identifiers(self, identifier) -> None:
        """Test malformed identifiers raise an operation error"""
        with pytest.raises(OperationError):
            OperationDescriptor.parse(identifier)

    @pytest.mark.parametrize("identifier", ["get /Ticket", "Post /Ticket", "delete /Ticket/{id}"])
    def test_method_must_be_upper_case(self, identifier: str) -> None:
        with pytest.raises(OperationError, match="Unsupported HTTP method"):
            OperationDescriptor.parse(identifier)

    def test_payload_methods(self) -> None:
        """Test which methods carry a JSON payload"""
        assert OperationDescriptor.parse("POST /Ticket").carries_payload
        assert OperationDescriptor.parse("PUT /Ticket/{id}").carries_payload
        assert not OperationDescriptor.parse("GET /Ticket").carries_payload
        assert not OperationDescriptor.parse("DELETE /Ticket/{id}").carries_payload


class TestFieldDescriptor:
    def test_target_key_defaults_to_name(self) -> None:
        field = FieldDescriptor(name="name", destination=Destination.BODY)
        assert field.target_key == "name"
        assert FieldDescriptor("n", Destination.BODY, key="name").target_key == "name"

    def test_unrestricted_applies_everywhere(self) -> None:
        field = FieldDescriptor(name="GLPI-Entity", destination=Destination.HEADER)
        assert field.applies_to("GET /Ticket")
        restricted = FieldDescriptor("id", Destination.PATH, operations=frozenset({"GET /A/{id}"}))
        assert restricted.applies_to("GET /A/{id}")
        assert not restricted.applies_to("GET /B/{id}")


class TestCredentials:
    def test_urls_strip_trailing_slash(self, credentials: GlpiCredentials) -> None:
        assert credentials.api_url == "https://glpi.example.com/api.php"
        assert credentials.token_url == "https://glpi.example.com/api.php/token"

    def test_password_not_in_repr(self, credentials: GlpiCredentials) -> None:
        assert "s3cret" not in repr(credentials)

    def test_from_settings(self) -> None:
        settings = Settings(
            glpi_url="https://glpi.local",
            glpi_username="admin",
            glpi_password="pw",
            glpi_client_id="cid",
            glpi_ignore_ssl_issues=True,
        )
        credentials = GlpiCredentials.from_settings(settings)
        assert credentials.base_url == "https://glpi.local"
        assert credentials.client_id == "cid"
        assert credentials.client_secret == ""
        assert credentials.scope == "api"
        assert credentials.verify_ssl is False


class TestAccessToken:
    def test_token_without_expiry_is_valid(self) -> None:
        assert AccessToken("abc").is_valid()

    def test_expiry_with_leeway(self) -> None:
        token = AccessToken("abc", expires_at=1000.0)
        assert token.is_valid(now=900.0)
        assert not token.is_valid(now=980.0)
        assert not token.is_valid(now=1200.0)

    def test_leeway_is_capped_for_short_lived_tokens(self) -> None:
        """Test a token living less than the leeway stays valid for half its life"""
        token = AccessToken("abc", expires_at=1020.0, issued_at=1000.0)
        assert token.is_valid(now=1000.0)
        assert token.is_valid(now=1009.0)
        assert not token.is_valid(now=1010.0)

    def test_long_lived_tokens_keep_full_leeway(self) -> None:
        token = AccessToken("abc", expires_at=4600.0, issued_at=1000.0)
        assert token.is_valid(now=4500.0)
        assert not token.is_valid(now=4580.0)

    def test_empty_token_is_invalid(self) -> None:
        assert not AccessToken("").is_valid()

    def test_header(self) -> None:
        assert AccessToken("abc").as_header() == {"Authorization": "Bearer abc"}


class TestExecutionItem:
    """Tests for parameter lookup outcomes"""

    def test_missing_name_is_not_applicable(self) -> None:
        """Test that absent names are a soft failure"""
        result = ExecutionItem({"id": 1}).lookup("name")
        assert result.applicable is False

    def test_present_value(self) -> None:
        result = ExecutionItem({"id": 0}).lookup("id")
        assert result.applicable is True
        assert result.value == 0

    def test_callable_values_are_evaluated(self) -> None:
        result = ExecutionItem({"id": lambda: 42}).lookup("id")
        assert result.value == 42

    def test_failing_callable_is_a_hard_failure(self) -> None:
        """Test that evaluation errors propagate"""

        def broken() -> None:
            raise TypeError("cannot add str and int")

        with pytest.raises(ParameterEvaluationError) as exc_info:
            ExecutionItem({"id": broken}).lookup("id")
        assert exc_info.value.name == "id"
        assert "cannot add" in str(exc_info.value)
