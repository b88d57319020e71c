"""Shared fixtures: a small GLPI OpenAPI document and a fake GLPI server."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Tuple, Union
from urllib.parse import parse_qs

import httpx
import pytest

from glpi_adapter.models import GlpiCredentials
from glpi_adapter.openapi import OpenAPILoader
from glpi_adapter.parameters import ParameterIndex, glpi_header_fields

TICKET_BODY = {
    "content": {
        "application/json": {"schema": {"$ref": "#/components/schemas/Ticket"}}
    }
}

GLPI_OPENAPI: Dict[str, Any] = {
    "openapi": "3.0.0",
    "info": {"title": "GLPI High-Level API", "version": "2.0.0"},
    "paths": {
        "/Assistance/Ticket": {
            "get": {
                "summary": "Search tickets",
                "parameters": [
                    {"name": "filter", "in": "query", "schema": {"type": "string"}},
                    {"name": "start", "in": "query", "schema": {"type": "integer"}},
                    {"name": "limit", "in": "query", "schema": {"type": "integer"}},
                    {"$ref": "#/components/parameters/GLPIEntity"},
                ],
            },
            "post": {"summary": "Create a ticket", "requestBody": TICKET_BODY},
        },
        "/Assistance/Ticket/{id}": {
            "parameters": [
                {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}
            ],
            "get": {"summary": "Get a ticket"},
            "patch": {"summary": "Update a ticket", "requestBody": TICKET_BODY},
            "delete": {"summary": "Delete a ticket"},
        },
        "/Ticket/{id}": {
            "get": {
                "parameters": [
                    {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}
                ]
            }
        },
        "/Ticket": {
            "post": {
                "requestBody": {
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "properties": {
                                    "name": {"type": "string"},
                                    "content": {"type": "string"},
                                },
                            }
                        }
                    }
                }
            }
        },
        "/Administration/User/{user_id}/Email/{email_id}": {
            "get": {
                "parameters": [
                    {"name": "user_id", "in": "path", "required": True, "schema": {"type": "integer"}},
                    {"name": "email_id", "in": "path", "required": True, "schema": {"type": "integer"}},
                ]
            },
            "options": {"summary": "ignored"},
        },
    },
    "components": {
        "schemas": {
            "Ticket": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "content": {"type": "string"},
                    "status": {"type": "integer"},
                    "category": {"type": "object"},
                },
            }
        },
        "parameters": {
            "GLPIEntity": {"name": "GLPI-Entity", "in": "header", "schema": {"type": "integer"}}
        },
    },
}


Handler = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeGlpi:
    """Minimal GLPI stand-in answering the token endpoint and registered routes."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Handler] = {}
        self.token_response = httpx.Response(
            200, json={"access_token": "token-1", "token_type": "Bearer", "expires_in": 3600}
        )

    def on(self, method: str, path: str, response: Handler) -> None:
        self.routes[(method.upper(), path)] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api.php/token":
            return _fresh(self.token_response)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"title": "Not Found", "detail": "No route"})
        if callable(handler):
            return handler(request)
        return _fresh(handler)

    @property
    def token_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/api.php/token"]

    @property
    def api_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path != "/api.php/token"]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def _fresh(response: httpx.Response) -> httpx.Response:
    return httpx.Response(response.status_code, headers=response.headers, content=response.content)


def form_of(request: httpx.Request) -> Dict[str, str]:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def json_of(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


@pytest.fixture
def openapi_document() -> Dict[str, Any]:
    return GLPI_OPENAPI


@pytest.fixture
def parameter_index(openapi_document: Dict[str, Any]) -> ParameterIndex:
    loader = OpenAPILoader()
    return ParameterIndex([*loader.extract_fields(openapi_document), *glpi_header_fields()])


@pytest.fixture
def credentials() -> GlpiCredentials:
    return GlpiCredentials(
        base_url="https://glpi.example.com/",
        username="glpi",
        password="s3cret",
    )


@pytest.fixture
def fake_glpi() -> FakeGlpi:
    return FakeGlpi()
