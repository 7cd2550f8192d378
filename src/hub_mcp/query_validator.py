# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structural query validation without contacting the upstream API.

Checks, all run independently so every problem is reported at once:
1. Blank text (returns immediately with a single SYNTAX_ERROR)
2. Leading operation keyword or anonymous ``{``
3. Brace and parenthesis balance
4. Inline-fragment types and entity-type tokens exist in the schema
   (skipped when no schema can be loaded)
5. Optional: fields selected inside ``... on Type`` blocks exist on that type

The complexity score is an approximation: field-like token count multiplied by
``1 + max_brace_depth // 2``. It is not the server's cost model.
"""

import logging
import re
from typing import Callable, List, Optional, Set

from graphql import parse
from graphql.error import GraphQLSyntaxError
from graphql.language import FieldNode, InlineFragmentNode, SelectionSetNode

from hub_mcp.fuzzy import find_similar_names
from hub_mcp.models import ErrorType, SchemaSnapshot, ValidationError, ValidationResult

logger = logging.getLogger(__name__)

QUERY_PATTERN = re.compile(r"^\s*(query|mutation|subscription)\b", re.IGNORECASE)
FIELD_PATTERN = re.compile(r"\b([a-zA-Z_][a-zA-Z0-9_]*)\s*[{(:]?")
TYPE_ON_PATTERN = re.compile(r"\.\.\.\s*on\s+([a-zA-Z_][a-zA-Z0-9_]*)")

KEYWORDS = frozenset(
    ["query", "mutation", "subscription", "fragment", "on", "true", "false", "null"]
)

Suggester = Callable[[SchemaSnapshot, str], List[str]]


def _default_type_suggester(snapshot: SchemaSnapshot, name: str) -> List[str]:
    return find_similar_names(name, snapshot.type_names)


def _default_field_suggester(snapshot: SchemaSnapshot, type_name: str, name: str) -> List[str]:
    type_def = snapshot.get_type(type_name)
    if type_def is None:
        return []
    return find_similar_names(name, type_def.field_names)


class QueryValidator:
    """Validates query text against the cached schema.

    Usage:
        validator = QueryValidator(schema_provider=cache.get_schema)
        result = validator.validate("query { entityQuery { id } }")
    """

    def __init__(
        self,
        schema_provider: Callable[[], SchemaSnapshot],
        entity_prefix: str = "Entity_Tanzu_",
        type_suggester: Optional[Suggester] = None,
        field_suggester: Optional[Callable[[SchemaSnapshot, str, str], List[str]]] = None,
    ) -> None:
        """Initialize validator.

        Args:
            schema_provider: Returns the current snapshot; may raise, in which
                case schema checks are skipped.
            entity_prefix: Prefix of entity type names to scan for.
            type_suggester: Returns "did you mean" type names.
            field_suggester: Returns "did you mean" field names for a type.
        """
        self._schema_provider = schema_provider
        self._entity_pattern = re.compile(r"\b(" + re.escape(entity_prefix) + r"[a-zA-Z_]+)\b")
        self._suggest_types = type_suggester or _default_type_suggester
        self._suggest_fields = field_suggester or _default_field_suggester

    def validate(
        self,
        query_text: Optional[str],
        suggest_fixes: bool = True,
        check_fields: bool = False,
    ) -> ValidationResult:
        """Validate query text.

        Args:
            query_text: GraphQL document text.
            suggest_fixes: Attach fuzzy suggestions for unknown names.
            check_fields: Also check fields selected inside inline fragments.

        Returns:
            ValidationResult; validation problems are never raised.
        """
        errors: List[ValidationError] = []
        suggestions: List[str] = []

        if query_text is None or not query_text.strip():
            errors.append(
                ValidationError(ErrorType.SYNTAX_ERROR, "Query cannot be null or empty")
            )
            return ValidationResult(valid=False, errors=errors, suggestions=suggestions)

        trimmed = query_text.strip()
        if not QUERY_PATTERN.match(trimmed) and not trimmed.startswith("{"):
            errors.append(
                ValidationError(
                    ErrorType.SYNTAX_ERROR,
                    "Query must start with 'query', 'mutation', 'subscription', or '{'",
                )
            )

        errors.extend(_check_balance(query_text))

        snapshot = self._load_schema()
        if snapshot is not None:
            self._check_types(snapshot, query_text, suggest_fixes, errors, suggestions)
            if check_fields:
                self._check_fields(snapshot, query_text, suggest_fixes, errors, suggestions)

        field_count = count_fields(query_text)
        estimated_complexity = field_count * (1 + max_brace_depth(query_text) // 2)

        return ValidationResult(
            valid=not errors,
            errors=errors,
            suggestions=suggestions,
            estimated_complexity=estimated_complexity,
            field_count=field_count,
            schema_checked=snapshot is not None,
        )

    def validate_mutation(
        self, query_text: Optional[str], suggest_fixes: bool = True
    ) -> ValidationResult:
        """Validate, additionally requiring the ``mutation`` keyword."""
        result = self.validate(query_text, suggest_fixes=suggest_fixes)
        if query_text is None or not query_text.strip():
            return result

        if not query_text.strip().lower().startswith("mutation"):
            result.errors.append(
                ValidationError(
                    ErrorType.SYNTAX_ERROR, "Mutation must start with 'mutation' keyword"
                )
            )
            result.valid = False
        return result

    def _load_schema(self) -> Optional[SchemaSnapshot]:
        try:
            return self._schema_provider()
        except Exception as e:
            logger.warning(f"Could not load schema for validation: {e}")
            return None

    def _check_types(
        self,
        snapshot: SchemaSnapshot,
        query_text: str,
        suggest_fixes: bool,
        errors: List[ValidationError],
        suggestions: List[str],
    ) -> None:
        reported: Set[str] = set()

        for match in TYPE_ON_PATTERN.finditer(query_text):
            type_name = match.group(1)
            if type_name in reported or snapshot.has_type(type_name):
                continue
            reported.add(type_name)
            errors.append(
                ValidationError(
                    ErrorType.UNKNOWN_TYPE,
                    f"Unknown type '{type_name}' in inline fragment",
                    type_name=type_name,
                )
            )
            self._add_type_suggestion(snapshot, type_name, suggest_fixes, suggestions)

        for match in self._entity_pattern.finditer(query_text):
            type_name = match.group(1)
            if type_name in reported or snapshot.has_type(type_name):
                continue
            reported.add(type_name)
            errors.append(
                ValidationError(
                    ErrorType.UNKNOWN_TYPE,
                    f"Unknown entity type '{type_name}'",
                    type_name=type_name,
                )
            )
            self._add_type_suggestion(snapshot, type_name, suggest_fixes, suggestions)

    def _add_type_suggestion(
        self, snapshot: SchemaSnapshot, type_name: str, suggest_fixes: bool, suggestions: List[str]
    ) -> None:
        if not suggest_fixes:
            return
        similar = self._suggest_types(snapshot, type_name)
        if similar:
            suggestions.append(f"Unknown type '{type_name}'. Did you mean: {', '.join(similar)}?")

    def _check_fields(
        self,
        snapshot: SchemaSnapshot,
        query_text: str,
        suggest_fixes: bool,
        errors: List[ValidationError],
        suggestions: List[str],
    ) -> None:
        """Check selections under inline fragments whose parent type is known."""
        try:
            document = parse(query_text)
        except GraphQLSyntaxError as e:
            # Structural errors above already describe the problem
            logger.debug(f"Skipping field checks, document does not parse: {e.message}")
            return

        reported: Set[str] = set()

        def walk(selection_set: Optional[SelectionSetNode], parent: Optional[str]) -> None:
            if selection_set is None:
                return
            for selection in selection_set.selections:
                if isinstance(selection, InlineFragmentNode):
                    condition = selection.type_condition
                    walk(selection.selection_set, condition.name.value if condition else parent)
                elif isinstance(selection, FieldNode):
                    child_parent = self._check_field(
                        snapshot, parent, selection, suggest_fixes, errors, suggestions, reported
                    )
                    walk(selection.selection_set, child_parent)

        for definition in document.definitions:
            walk(getattr(definition, "selection_set", None), None)

    def _check_field(
        self,
        snapshot: SchemaSnapshot,
        parent: Optional[str],
        node: FieldNode,
        suggest_fixes: bool,
        errors: List[ValidationError],
        suggestions: List[str],
        reported: Set[str],
    ) -> Optional[str]:
        """Check one field; return the type name its sub-selection belongs to."""
        if parent is None:
            return None
        parent_type = snapshot.get_type(parent)
        if parent_type is None:
            return None

        field_name = node.name.value
        if field_name.startswith("__"):
            return None

        field_def = parent_type.get_field(field_name)
        if field_def is None:
            key = f"{parent}.{field_name}"
            if key not in reported:
                reported.add(key)
                errors.append(
                    ValidationError(
                        ErrorType.UNKNOWN_FIELD,
                        f"Unknown field '{field_name}' on type '{parent}'",
                        type_name=parent,
                        field_name=field_name,
                    )
                )
                if suggest_fixes:
                    similar = self._suggest_fields(snapshot, parent, field_name)
                    if similar:
                        suggestions.append(
                            f"Unknown field '{field_name}' on '{parent}'. "
                            f"Did you mean: {', '.join(similar)}?"
                        )
            return None

        return field_def.type.unwrapped_name if field_def.type else None


def _check_balance(query_text: str) -> List[ValidationError]:
    brace_count = 0
    paren_count = 0
    for char in query_text:
        if char == "{":
            brace_count += 1
        elif char == "}":
            brace_count -= 1
        elif char == "(":
            paren_count += 1
        elif char == ")":
            paren_count -= 1

    errors: List[ValidationError] = []
    if brace_count > 0:
        errors.append(
            ValidationError(
                ErrorType.SYNTAX_ERROR,
                f"Unbalanced braces: missing {brace_count} closing brace(s)",
            )
        )
    elif brace_count < 0:
        errors.append(
            ValidationError(
                ErrorType.SYNTAX_ERROR,
                f"Unbalanced braces: extra {-brace_count} closing brace(s)",
            )
        )

    if paren_count > 0:
        errors.append(
            ValidationError(
                ErrorType.SYNTAX_ERROR,
                f"Unbalanced parentheses: missing {paren_count} closing parenthesis",
            )
        )
    elif paren_count < 0:
        errors.append(
            ValidationError(
                ErrorType.SYNTAX_ERROR,
                f"Unbalanced parentheses: extra {-paren_count} closing parenthesis",
            )
        )
    return errors


def count_fields(query_text: str) -> int:
    """Count field-like tokens, excluding GraphQL keywords (approximate)."""
    return sum(
        1
        for match in FIELD_PATTERN.finditer(query_text)
        if match.group(1).lower() not in KEYWORDS
    )


def max_brace_depth(query_text: str) -> int:
    max_depth = 0
    depth = 0
    for char in query_text:
        if char == "{":
            depth += 1
            max_depth = max(max_depth, depth)
        elif char == "}":
            depth -= 1
    return max_depth
