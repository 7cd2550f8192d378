# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Typed failures raised by the schema cache and the upstream executor.

Every failure that crosses the service boundary inherits from HubMcpError so the
MCP layer can turn it into a structured error object in one place. Validation
problems are never raised; they are returned as ValidationResult data.
"""

from typing import Any, Dict, List, Optional


class ErrorCode:
    """Failure classification codes.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    SYNTAX_ERROR = "SYNTAX_ERROR"
    UNKNOWN_TYPE = "UNKNOWN_TYPE"
    UNKNOWN_FIELD = "UNKNOWN_FIELD"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    GRAPHQL_ERROR = "GRAPHQL_ERROR"
    TIMEOUT = "TIMEOUT"
    SCHEMA_UNAVAILABLE = "SCHEMA_UNAVAILABLE"


class HubMcpError(Exception):
    """Base exception carrying a code, the upstream error list and auxiliary details."""

    code = ErrorCode.UPSTREAM_ERROR

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.errors: List[Dict[str, Any]] = list(errors or [])
        self.details: Dict[str, Any] = dict(details or {})
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the error object returned to tool callers."""
        result: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        if self.errors:
            result["errors"] = self.errors
        if self.details:
            result["details"] = self.details
        return result


class UpstreamError(HubMcpError):
    """Transport or HTTP-level failure talking to the GraphQL endpoint."""

    code = ErrorCode.UPSTREAM_ERROR


class UpstreamTimeoutError(UpstreamError):
    """The request did not complete within the configured timeout."""

    code = ErrorCode.TIMEOUT


class GraphQLResponseError(HubMcpError):
    """A well-formed response that carried a non-empty error list."""

    code = ErrorCode.GRAPHQL_ERROR


class QuerySyntaxError(HubMcpError):
    """Query text rejected before it was sent upstream."""

    code = ErrorCode.SYNTAX_ERROR


class SchemaUnavailableError(HubMcpError):
    """No schema snapshot could be produced for the caller."""

    code = ErrorCode.SCHEMA_UNAVAILABLE


class SchemaParseError(HubMcpError):
    """Introspection payload could not be parsed (recovered by the loader)."""

    code = ErrorCode.SCHEMA_UNAVAILABLE
