# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""GraphQL schema metadata cache and MCP server for the Tanzu hub API."""

from .cache import LookupCache
from .config import Config, ConfigurationError
from .exceptions import (
    GraphQLResponseError,
    HubMcpError,
    QuerySyntaxError,
    SchemaParseError,
    SchemaUnavailableError,
    UpstreamError,
    UpstreamTimeoutError,
)
from .executor import GraphQLExecutor
from .models import (
    EntityRelationship,
    FieldDefinition,
    GraphQLRequest,
    GraphQLResponse,
    SchemaSnapshot,
    TypeDefinition,
    TypeReference,
    ValidationError,
    ValidationResult,
)
from .query_validator import QueryValidator
from .refresh_scheduler import SchemaRefreshScheduler
from .relationship_builder import EntityNamingConvention, RelationshipGraphBuilder
from .schema_cache import SchemaCache
from .service import SchemaService

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ConfigurationError",
    "EntityNamingConvention",
    "EntityRelationship",
    "FieldDefinition",
    "GraphQLExecutor",
    "GraphQLRequest",
    "GraphQLResponse",
    "GraphQLResponseError",
    "HubMcpError",
    "LookupCache",
    "QuerySyntaxError",
    "QueryValidator",
    "RelationshipGraphBuilder",
    "SchemaCache",
    "SchemaParseError",
    "SchemaRefreshScheduler",
    "SchemaService",
    "SchemaSnapshot",
    "SchemaUnavailableError",
    "TypeDefinition",
    "TypeReference",
    "UpstreamError",
    "UpstreamTimeoutError",
    "ValidationError",
    "ValidationResult",
]
