# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""MCP Server Protocol Layer for the hub schema cache.

This module implements the MCP protocol layer with ZERO business logic.
All schema, validation and execution logic is delegated to SchemaService;
response shaping lives in response_formatter.

Tools never raise: failures are returned as ``{"success": False, ...}`` dicts.
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from hub_mcp import response_formatter
from hub_mcp.config import Config
from hub_mcp.exceptions import HubMcpError, QuerySyntaxError
from hub_mcp.logging_setup import setup_logging
from hub_mcp.models import GraphQLRequest
from hub_mcp.path_finder import DEFAULT_DEPTH, clamp_depth
from hub_mcp.refresh_scheduler import SchemaRefreshScheduler
from hub_mcp.service import SchemaService, is_destructive_mutation

logger = logging.getLogger(__name__)

SERVER_NAME = "hub-mcp"

DESTRUCTIVE_MUTATION_MESSAGE = (
    "This mutation appears to be destructive (contains delete/remove/destroy). "
    "Please set confirm=true to proceed. Make sure you understand the impact of this operation."
)


def parse_variables(variables: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parse a JSON object string of query variables.

    Raises:
        QuerySyntaxError: If the string is not a JSON object.
    """
    if variables is None or not variables.strip():
        return None
    try:
        parsed = json.loads(variables)
    except json.JSONDecodeError as e:
        raise QuerySyntaxError(f"Invalid variables JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise QuerySyntaxError("Invalid variables JSON: expected an object")
    return parsed


class HubMCPServer:
    """MCP Protocol Layer for the hub schema cache.

    Responsibilities:
    - Initialize MCP server and register tools
    - Translate MCP requests to service calls
    - Format service responses as MCP tool results
    - Handle server lifecycle (scheduled refresh, shutdown)

    Design Constraint: This layer contains ZERO business logic.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        service: Optional[SchemaService] = None,
        scheduler: Optional[SchemaRefreshScheduler] = None,
    ):
        """Initialize MCP server.

        Args:
            config: Configuration object. If None, loads from default location.
            service: Service layer instance. If None, creates default service.
            scheduler: Refresh scheduler. If None and scheduled refresh is
                enabled, one is created; it starts with run().
        """
        if config is None:
            config = Config()
        self.config = config

        if service is None:
            service = SchemaService(config=config)
        self.service = service

        if scheduler is None and config.enable_scheduled_refresh:
            scheduler = SchemaRefreshScheduler(
                cache=service.cache,
                cron_expression=config.refresh_cron,
                warmup_delay_seconds=config.warmup_delay_seconds,
            )
        self.scheduler = scheduler

        self.mcp = FastMCP(name=SERVER_NAME)
        self._register_tools()

        logger.info("HubMCPServer initialized")

    def _register_tools(self) -> None:
        """Register MCP tools with the server.

        Registers:
        - explore_schema: Look up or search schema types
        - find_entity_path: Relationship paths between entity types
        - validate_query: Structural validation without execution
        - graphql_query: Execute a read-only query
        - graphql_mutate: Execute a mutation (destructive ones need confirm=true)
        - refresh_schema: Force a schema reload

        Service calls run in worker threads so a slow upstream request never
        stalls the event loop.
        """

        @self.mcp.tool()
        async def explore_schema(
            ctx: Context[ServerSession, None],
            type_name: Optional[str] = None,
            search: Optional[str] = None,
            domain: Optional[str] = None,
            category: Optional[str] = None,
            show_relationships: bool = False,
            show_common_fields: bool = False,
        ) -> Dict[str, Any]:
            """Explore the GraphQL API schema.

            Look up a specific type (entity types include the _Type suffix, e.g.
            Entity_Tanzu_TAS_Application_Type), or search types by concept and
            filter by domain (TAS, Spring, Observability, Security, Capacity,
            Fleet, Insights) and category (OBJECT, INPUT_OBJECT, ENUM,
            INTERFACE, SCALAR). Listings are limited to 20 types.

            Args:
                ctx: MCP context for logging and progress
                type_name: Specific type name to explore
                search: Substring matched against type names and descriptions
                domain: Domain filter
                category: Type kind filter
                show_relationships: Include relationship container fields
                show_common_fields: Highlight commonly used fields

            Returns:
                Type details, or a listing with totalFound and types
            """
            await ctx.info(f"Exploring schema: type_name={type_name}, search={search}")

            try:
                if type_name and type_name.strip():
                    return await asyncio.to_thread(
                        self._describe_type, type_name, show_relationships, show_common_fields
                    )

                types = await asyncio.to_thread(
                    self.service.search_types, search, domain, category
                )
                return response_formatter.format_type_list(types, domain=domain, search=search)

            except HubMcpError as e:
                await ctx.error(f"Error exploring schema: {e.message}")
                return e.to_dict()
            except Exception as e:
                await ctx.error(f"Unexpected error exploring schema: {e}")
                return response_formatter.format_error(f"Error exploring schema: {e}")

        @self.mcp.tool()
        async def find_entity_path(
            from_type: str,
            to_type: str,
            ctx: Context[ServerSession, None],
            max_depth: Optional[int] = None,
        ) -> Dict[str, Any]:
            """Find relationship paths between two entity types.

            Example: Entity_Tanzu_TAS_Application_Type -> Entity_Tanzu_TAS_Space_Type
            -> Entity_Tanzu_TAS_Organization_Type -> Entity_Tanzu_TAS_Foundation_Type
            via relationshipsOut.isContainedIn at each step. Returns up to 5 paths
            with query templates that navigate them.

            Args:
                from_type: Starting entity type (with _Type suffix)
                to_type: Target entity type (with _Type suffix)
                ctx: MCP context for logging and progress
                max_depth: Maximum traversal depth (default: 3, max: 5)

            Returns:
                Paths with traversal steps and query templates
            """
            await ctx.info(f"Finding path from {from_type} to {to_type}")

            if not from_type or not from_type.strip():
                return response_formatter.format_error("fromType is required")
            if not to_type or not to_type.strip():
                return response_formatter.format_error("toType is required")

            depth = clamp_depth(max_depth) if max_depth is not None else DEFAULT_DEPTH

            try:
                result = await asyncio.to_thread(self._find_paths, from_type, to_type, depth)
                if result.get("pathsFound"):
                    await ctx.info(f"Found {result['pathsFound']} paths")
                return result

            except HubMcpError as e:
                await ctx.error(f"Error finding path: {e.message}")
                return e.to_dict()
            except Exception as e:
                await ctx.error(f"Unexpected error finding path: {e}")
                return response_formatter.format_error(f"Error finding path: {e}")

        @self.mcp.tool()
        async def validate_query(
            query: str,
            ctx: Context[ServerSession, None],
            suggest_fixes: bool = True,
            check_fields: bool = False,
        ) -> Dict[str, Any]:
            """Validate a GraphQL query against the schema without executing it.

            Catches syntax errors, unknown types (with "did you mean"
            suggestions) and gives a rough complexity estimate. With
            check_fields, fields selected inside ``... on Type`` blocks are also
            checked.

            Args:
                query: GraphQL query string to validate
                ctx: MCP context for logging and progress
                suggest_fixes: Suggest corrections for unknown names (default: true)
                check_fields: Check fields inside inline fragments (default: false)

            Returns:
                valid flag, errors, suggestions and estimatedComplexity
            """
            await ctx.info("Validating GraphQL query")

            try:
                result = await asyncio.to_thread(
                    self.service.validate_query,
                    query,
                    suggest_fixes=suggest_fixes,
                    check_fields=check_fields,
                )
                return response_formatter.format_validation_result(result)
            except Exception as e:
                await ctx.error(f"Error validating query: {e}")
                return {"valid": False, "error": f"Validation error: {e}"}

        @self.mcp.tool()
        async def graphql_query(
            query: str,
            ctx: Context[ServerSession, None],
            variables: Optional[str] = None,
            operation_name: Optional[str] = None,
        ) -> Dict[str, Any]:
            """Execute a read-only GraphQL query.

            The API uses Relay-style connections with edges/nodes for lists.

            Args:
                query: GraphQL query string
                ctx: MCP context for logging and progress
                variables: Query variables as a JSON object string
                operation_name: Operation to run if the document has several

            Returns:
                success, data and queryComplexity
            """
            await ctx.info("Executing GraphQL query")

            try:
                request = GraphQLRequest(
                    query=query,
                    variables=parse_variables(variables),
                    operation_name=operation_name,
                )
                response = await asyncio.to_thread(self.service.execute_query, request)
                return {
                    "success": True,
                    "data": response.data or {},
                    "queryComplexity": response.query_complexity,
                    "retries": response.retries,
                }
            except HubMcpError as e:
                await ctx.error(f"GraphQL query failed: {e.message}")
                return e.to_dict()
            except Exception as e:
                await ctx.error(f"Unexpected error executing query: {e}")
                return response_formatter.format_error(f"Unexpected error: {e}")

        @self.mcp.tool()
        async def graphql_mutate(
            mutation: str,
            ctx: Context[ServerSession, None],
            variables: Optional[str] = None,
            operation_name: Optional[str] = None,
            confirm: bool = False,
        ) -> Dict[str, Any]:
            """Execute a GraphQL mutation.

            For destructive operations (delete, remove, destroy, drop, purge,
            clear) confirm must be true, otherwise nothing is executed.

            Args:
                mutation: GraphQL mutation string, starting with 'mutation'
                ctx: MCP context for logging and progress
                variables: Mutation variables as a JSON object string
                operation_name: Operation to run if the document has several
                confirm: Safety confirmation for destructive operations

            Returns:
                success and data
            """
            await ctx.info("Executing GraphQL mutation")

            if is_destructive_mutation(mutation) and not confirm:
                await ctx.info("Destructive mutation rejected without confirmation")
                return response_formatter.format_error(
                    DESTRUCTIVE_MUTATION_MESSAGE, code="CONFIRMATION_REQUIRED"
                )

            try:
                request = GraphQLRequest(
                    query=mutation,
                    variables=parse_variables(variables),
                    operation_name=operation_name,
                )
                response = await asyncio.to_thread(self.service.execute_mutation, request)
                return {
                    "success": True,
                    "data": response.data or {},
                    "message": "Mutation executed successfully",
                }
            except HubMcpError as e:
                await ctx.error(f"GraphQL mutation failed: {e.message}")
                return e.to_dict()
            except Exception as e:
                await ctx.error(f"Unexpected error executing mutation: {e}")
                return response_formatter.format_error(f"Unexpected error: {e}")

        @self.mcp.tool()
        async def refresh_schema(ctx: Context[ServerSession, None]) -> Dict[str, Any]:
            """Force a reload of the cached schema and relationship graph.

            Args:
                ctx: MCP context for logging and progress

            Returns:
                success plus the new snapshot summary
            """
            await ctx.info("Refreshing schema")

            try:
                snapshot = await asyncio.to_thread(self.service.refresh_schema)
                result: Dict[str, Any] = {"success": True}
                result.update(snapshot.to_dict())
                return result
            except HubMcpError as e:
                await ctx.error(f"Schema refresh failed: {e.message}")
                return e.to_dict()
            except Exception as e:
                await ctx.error(f"Unexpected error refreshing schema: {e}")
                return response_formatter.format_error(f"Schema refresh failed: {e}")

        logger.info(
            "MCP tools registered: explore_schema, find_entity_path, validate_query, "
            "graphql_query, graphql_mutate, refresh_schema"
        )

    def _describe_type(
        self, type_name: str, show_relationships: bool, show_common_fields: bool
    ) -> Dict[str, Any]:
        type_def = self.service.get_type_details(type_name)
        if type_def is None:
            similar = self.service.find_similar_types(type_name)
            return response_formatter.format_error(
                response_formatter.not_found_message(type_name, similar)
            )
        return response_formatter.format_type_details(
            type_def,
            self.service.convention,
            show_relationships=show_relationships,
            show_common_fields=show_common_fields,
        )

    def _find_paths(self, from_type: str, to_type: str, depth: int) -> Dict[str, Any]:
        for type_name in (from_type, to_type):
            if self.service.get_type_details(type_name) is None:
                similar = self.service.find_similar_types(type_name)
                return response_formatter.format_error(
                    response_formatter.not_found_message(type_name, similar)
                )

        convention = self.service.convention
        paths = self.service.find_relationship_paths(from_type, to_type, depth)
        if not paths:
            return response_formatter.format_no_path_found(from_type, to_type, depth, convention)
        return response_formatter.format_paths(from_type, to_type, paths, convention)

    def run(self, transport: str = "stdio") -> None:
        """Run the MCP server.

        Args:
            transport: Transport type to use. Options:
                - "stdio": Standard input/output (default)
                - "streamable-http": HTTP transport
                - "sse": Server-sent events transport
        """
        if self.scheduler is not None and not self.scheduler.is_running():
            self.scheduler.start()

        logger.info(f"Starting MCP server with {transport} transport")
        try:
            self.mcp.run(transport=transport)  # type: ignore[arg-type]
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop the scheduler and release upstream resources."""
        logger.info("Shutting down MCP server")
        if self.scheduler is not None:
            self.scheduler.stop()
        self.service.shutdown()


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Hub GraphQL schema MCP Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the YAML configuration file. Default: ./.hub_mcp.yml",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Directory for JSON log files. Default: ./.hub_mcp_logs/",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level. Default: INFO",
    )
    parser.add_argument(
        "--transport",
        type=str,
        choices=["stdio", "streamable-http", "sse"],
        default="stdio",
        help="Transport type for MCP server. Default: stdio",
    )
    return parser.parse_args(argv)


def main() -> None:
    """Main entry point for MCP server.

    Initializes structured logging and starts the server. Console logging goes
    to stderr so it never mixes with the stdio transport.
    """
    args = parse_args()

    setup_logging(log_dir=args.log_dir, log_level=getattr(logging, args.log_level))

    server = HubMCPServer(config=Config(args.config))
    logger.info(f"Starting MCP server for endpoint {server.config.endpoint_url}")
    server.run(transport=args.transport)


if __name__ == "__main__":
    main()
