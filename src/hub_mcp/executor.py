# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Upstream request executor for the GraphQL endpoint.

Sends ``{query, variables, operationName}`` as JSON over httpx, enforces the
configured timeout and retries transient failures with exponential backoff.

Retry classification:
- HTTP 5xx and 429 responses: retried
- Connection failures, dropped connections and timeouts: retried
- Other 4xx responses, unreadable bodies, GraphQL error payloads: surfaced
  immediately

Exhausting the retry budget surfaces the last failure.
"""

import json
import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Union

import httpx
from graphql import parse
from graphql.error import GraphQLSyntaxError

from hub_mcp.exceptions import (
    GraphQLResponseError,
    QuerySyntaxError,
    UpstreamError,
    UpstreamTimeoutError,
)
from hub_mcp.models import GraphQLRequest, GraphQLResponse

if TYPE_CHECKING:
    from hub_mcp.config import Config

logger = logging.getLogger(__name__)

BODY_EXCERPT_CHARS = 500
LOG_QUERY_CHARS = 100

INTROSPECTION_QUERY = """
query IntrospectionQuery {
  __schema {
    queryType { name }
    mutationType { name }
    subscriptionType { name }
    types {
      ...FullType
    }
    directives {
      name
      description
      locations
      args {
        ...InputValue
      }
    }
  }
}

fragment FullType on __Type {
  kind
  name
  description
  fields(includeDeprecated: true) {
    name
    description
    args {
      ...InputValue
    }
    type {
      ...TypeRef
    }
    isDeprecated
    deprecationReason
  }
  inputFields {
    ...InputValue
  }
  interfaces {
    ...TypeRef
  }
  enumValues(includeDeprecated: true) {
    name
    description
    isDeprecated
    deprecationReason
  }
  possibleTypes {
    ...TypeRef
  }
}

fragment InputValue on __InputValue {
  name
  description
  type { ...TypeRef }
  defaultValue
}

fragment TypeRef on __Type {
  kind
  name
  ofType {
    kind
    name
    ofType {
      kind
      name
      ofType {
        kind
        name
        ofType {
          kind
          name
          ofType {
            kind
            name
            ofType {
              kind
              name
            }
          }
        }
      }
    }
  }
}
"""


def truncate_query(query: Optional[str], limit: int = LOG_QUERY_CHARS) -> str:
    if query is None:
        return "null"
    if len(query) <= limit:
        return query
    return query[:limit] + "..."


class GraphQLExecutor:
    """Sends GraphQL requests upstream with timeout and retry.

    Usage:
        executor = GraphQLExecutor("https://hub.example.com/hub/graphql")
        response = executor.execute_query(GraphQLRequest(query="{ __typename }"))
        print(response.data, response.retries)
    """

    def __init__(
        self,
        endpoint_url: str,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        backoff_base_seconds: float = 1.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize executor.

        Args:
            endpoint_url: Absolute URL of the GraphQL endpoint.
            timeout_seconds: Per-attempt deadline covering connect, headers and the
                whole body.
            max_retries: Retry budget for retryable failures (default: 3).
            backoff_base_seconds: First retry delay; doubles per attempt (default: 1s).
            client: Optional preconfigured httpx.Client. The executor closes
                only clients it created itself.
            sleep: Delay function, injectable for tests.
            clock: Monotonic clock for the per-attempt deadline, injectable for tests.
        """
        self.endpoint_url = endpoint_url
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self._sleep = sleep
        self._clock = clock

        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )

        logger.debug(
            f"GraphQLExecutor initialized: endpoint={endpoint_url}, "
            f"timeout={timeout_seconds}s, max_retries={max_retries}"
        )

    @classmethod
    def from_config(
        cls, config: "Config", client: Optional[httpx.Client] = None
    ) -> "GraphQLExecutor":
        return cls(
            endpoint_url=config.endpoint_url,
            timeout_seconds=config.request_timeout_seconds,
            max_retries=config.max_retries,
            backoff_base_seconds=config.retry_backoff_seconds,
            client=client,
        )

    def execute_query(self, request: GraphQLRequest) -> GraphQLResponse:
        """Syntax-check then execute a query.

        Raises:
            QuerySyntaxError: If the query is blank or does not parse (no network call).
            UpstreamError, UpstreamTimeoutError, GraphQLResponseError: On upstream failure.
        """
        logger.info(f"Executing GraphQL query: {truncate_query(request.query)}")
        check_syntax(request.query)
        return self.execute(request)

    def execute_mutation(self, request: GraphQLRequest) -> GraphQLResponse:
        """Like execute_query, and the text must start with the ``mutation`` keyword."""
        logger.info(f"Executing GraphQL mutation: {truncate_query(request.query)}")
        if request.query is None or not request.query.strip():
            raise QuerySyntaxError("Mutation cannot be null or empty")
        if not request.query.strip().lower().startswith("mutation"):
            raise QuerySyntaxError("Mutation must start with 'mutation' keyword")
        check_syntax(request.query)
        return self.execute(request)

    def introspect(self) -> Dict[str, Any]:
        """Run the introspection query and return its ``data`` member."""
        logger.info("Performing schema introspection")
        response = self.execute(GraphQLRequest(query=INTROSPECTION_QUERY))
        return response.data or {}

    def execute(self, request: GraphQLRequest) -> GraphQLResponse:
        """Send a request, retrying retryable failures.

        Returns:
            GraphQLResponse with ``retries`` set to the number of retries used.

        Raises:
            UpstreamTimeoutError: Every attempt timed out.
            UpstreamError: Non-retryable HTTP/transport failure, or budget exhausted.
            GraphQLResponseError: The response carried a non-empty error list.
        """
        attempt = 0
        while True:
            outcome = self._attempt(request, attempt)
            if isinstance(outcome, GraphQLResponse):
                return outcome
            failure = outcome

            if attempt >= self.max_retries:
                failure.details["retries"] = attempt
                if self.max_retries:
                    logger.warning(
                        f"GraphQL request failed after {attempt} retries: {failure.message}"
                    )
                raise failure

            delay = self.backoff_base_seconds * (2**attempt)
            attempt += 1
            logger.warning(
                f"Retrying GraphQL request, attempt {attempt} in {delay}s ({failure.message})"
            )
            self._sleep(delay)

    def _attempt(
        self, request: GraphQLRequest, attempt: int
    ) -> Union[GraphQLResponse, UpstreamError]:
        """Perform one attempt.

        Returns the GraphQLResponse on success or a retryable UpstreamError;
        raises non-retryable failures directly.
        """
        deadline = self._clock() + self.timeout_seconds
        try:
            with self._client.stream(
                "POST",
                self.endpoint_url,
                json=request.to_payload(),
                timeout=httpx.Timeout(self.timeout_seconds),
            ) as http_response:
                body = self._read_body(http_response, deadline)
                status = http_response.status_code
                encoding = http_response.charset_encoding or "utf-8"
        except httpx.TimeoutException as e:
            return self._timeout_failure(type(e).__name__)
        except (httpx.NetworkError, httpx.RemoteProtocolError) as e:
            return UpstreamError(
                f"GraphQL request failed: {e}", details={"reason": type(e).__name__}
            )
        except httpx.HTTPError as e:
            logger.error(f"GraphQL request failed: {e}")
            raise UpstreamError(
                f"GraphQL request failed: {e}", details={"retries": attempt}
            ) from e

        if body is None:
            return self._timeout_failure("deadline")

        try:
            text = body.decode(encoding, errors="replace")
        except LookupError:
            text = body.decode("utf-8", errors="replace")
        if status >= 500 or status == 429:
            return UpstreamError(
                f"GraphQL API error: {status}",
                details={"status": status, "body": _body_excerpt(text)},
            )
        if status >= 400:
            excerpt = _body_excerpt(text)
            logger.error(f"GraphQL API returned error status: {status} - {excerpt}")
            raise UpstreamError(
                f"GraphQL API error: {status}",
                details={"status": status, "body": excerpt, "retries": attempt},
            )

        try:
            payload = json.loads(text)
        except ValueError as e:
            raise UpstreamError(
                "GraphQL API returned a non-JSON body",
                details={"status": status, "body": _body_excerpt(text), "retries": attempt},
            ) from e
        if not isinstance(payload, dict):
            raise UpstreamError(
                "Received malformed response from GraphQL API",
                details={"status": status, "retries": attempt},
            )

        response = GraphQLResponse.from_dict(payload, retries=attempt)
        if response.has_errors:
            messages = [error.message for error in response.errors]
            logger.warning(f"GraphQL response contains errors: {messages}")
            raise GraphQLResponseError(
                "GraphQL query returned errors",
                errors=[error.to_dict() for error in response.errors],
                details={"retries": attempt},
            )

        logger.debug(
            f"GraphQL query completed successfully, complexity: {response.query_complexity}",
            extra={
                "extra_fields": {
                    "retries": attempt,
                    "query_complexity": response.query_complexity,
                }
            },
        )
        return response

    def _read_body(self, http_response: httpx.Response, deadline: float) -> Optional[bytes]:
        """Read the body chunk by chunk; None once the attempt deadline has passed."""
        chunks = []
        for chunk in http_response.iter_bytes():
            if self._clock() > deadline:
                logger.warning(
                    f"GraphQL response still streaming after {self.timeout_seconds}s, "
                    "abandoning attempt"
                )
                return None
            chunks.append(chunk)
        return b"".join(chunks)

    def _timeout_failure(self, reason: str) -> UpstreamTimeoutError:
        return UpstreamTimeoutError(
            f"GraphQL request timed out after {self.timeout_seconds}s",
            details={"reason": reason},
        )

    def close(self) -> None:
        """Release the HTTP client if this executor created it."""
        if self._owns_client:
            self._client.close()


def check_syntax(query: Optional[str]) -> None:
    """Parse query text with graphql-core.

    Raises:
        QuerySyntaxError: If the text is blank or not a valid GraphQL document.
    """
    if query is None or not query.strip():
        raise QuerySyntaxError("Query cannot be null or empty")

    try:
        document = parse(query)
    except GraphQLSyntaxError as e:
        line, column = 0, 0
        if e.locations:
            line, column = e.locations[0].line, e.locations[0].column
        message = f"Invalid GraphQL syntax at line {line}, column {column}: {e.message}"
        logger.error(f"GraphQL syntax validation failed: {message}")
        raise QuerySyntaxError(message, details={"line": line, "column": column}) from e

    if not document.definitions:
        raise QuerySyntaxError("Query document contains no definitions")


def _body_excerpt(text: str) -> str:
    if len(text) > BODY_EXCERPT_CHARS:
        return text[:BODY_EXCERPT_CHARS] + "..."
    return text
