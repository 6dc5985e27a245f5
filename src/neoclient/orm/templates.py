# src/neoclient/orm/templates.py
"""
neoclient Query Templates

The catalogue of Cypher statements issued by the client, one per operation
kind. Templates carry ``@name`` placeholders for *structural* fragments only
(labels, clause skeletons, relationship names and direction arrows). Every
value that originates from a caller travels as a bound ``$parameter``.
"""

from __future__ import annotations

import re
from typing import Any, FrozenSet

from neoclient.exceptions import InvalidIdentifierError, QueryTemplateError


PLACEHOLDER_PATTERN = re.compile(r"@([A-Za-z_][A-Za-z0-9_]*)")
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Variable the node of interest is bound to in every template
NODE_VARIABLE = "n"
RELATED_NODE_VARIABLE = "rNode"


def ensure_identifier(value: Any, kind: str = "identifier") -> str:
    """
    Check that a value can be inlined into statement text.

    Labels, property keys and relationship types have no parameter syntax in
    Cypher, so they are substituted textually and must be plain identifiers.

    Raises:
        InvalidIdentifierError: If the value is not a non-empty identifier string.
    """
    if not isinstance(value, str) or not IDENTIFIER_PATTERN.match(value):
        raise InvalidIdentifierError(value, kind)
    return value


class QueryTemplate:
    """
    A named statement with ``@placeholder`` slots.

    Rendering is a single pass over the text, so the result does not depend
    on the order in which substitutions are supplied, and a substituted
    fragment is never itself scanned for placeholders.
    """

    def __init__(self, name: str, text: str):
        self.name = name
        self.text = text
        self.placeholders: FrozenSet[str] = frozenset(PLACEHOLDER_PATTERN.findall(text))

    def render(self, **substitutions: Any) -> str:
        """
        Render the statement text.

        Args:
            **substitutions: One value per placeholder, keyed by placeholder name
                             (without the ``@``). Values are converted with ``str``.

        Returns:
            The statement text.

        Raises:
            QueryTemplateError: If a placeholder is missing or an unknown one is supplied.
        """
        supplied = set(substitutions)
        missing = self.placeholders - supplied
        unknown = supplied - self.placeholders

        if missing or unknown:
            raise QueryTemplateError(
                f"Cannot render template {self.name}",
                details={"missing": sorted(missing), "unknown": sorted(unknown)},
            )

        return PLACEHOLDER_PATTERN.sub(
            lambda match: str(substitutions[match.group(1)]), self.text
        )

    def __repr__(self) -> str:
        return f"QueryTemplate(name='{self.name}', placeholders={sorted(self.placeholders)})"


# =============================================================================
# CATALOGUE
# =============================================================================

CREATE = QueryTemplate(
    "CREATE",
    "CREATE (n:@node{@conditions}) RETURN n",
)

MERGE = QueryTemplate(
    "MERGE",
    "MERGE (n:@node{@conditions}) @on_create_clause @on_match_clause RETURN n",
)

GET_ALL = QueryTemplate(
    "GET_ALL",
    "MATCH (n:@label{IsDeleted:false}) RETURN @result",
)

GET_BY_PROPERTY = QueryTemplate(
    "GET_BY_PROPERTY",
    "MATCH (n:@label{@property:$value,IsDeleted:false})@relationship@relatedNode RETURN @result",
)

GET_BY_PROPERTIES = QueryTemplate(
    "GET_BY_PROPERTIES",
    "MATCH (n:@label{@clause,IsDeleted:false})@relationship@relatedNode RETURN @result",
)

UPDATE = QueryTemplate(
    "UPDATE",
    "MATCH (n:@label{Uuid:$Uuid,IsDeleted:false}) SET @clause @return",
)

DELETE = QueryTemplate(
    "DELETE",
    "MATCH (n:@label{Uuid:$Uuid,IsDeleted:false}) "
    "SET n.UpdatedAt=$UpdatedAt,n.IsDeleted=true RETURN n",
)

DROP = QueryTemplate(
    "DROP",
    "MATCH (n:@label{Uuid:$Uuid}) DETACH DELETE n",
)

DROP_BY_PROPERTIES = QueryTemplate(
    "DROP_BY_PROPERTIES",
    "MATCH (n:@label{@clause}) DETACH DELETE n",
)

CREATE_RELATIONSHIP = QueryTemplate(
    "CREATE_RELATIONSHIP",
    "MATCH (from{Uuid:$uuidFrom}),(to{Uuid:$uuidTo}) "
    "CREATE (from)@fromPartDirection[r:@relationshipName@clause]@toPartDirection(to) RETURN r",
)

MERGE_RELATIONSHIP = QueryTemplate(
    "MERGE_RELATIONSHIP",
    "MATCH (from{Uuid:$uuidFrom}),(to{Uuid:$uuidTo}) "
    "MERGE (from)@fromPartDirection[r:@relationshipName]@toPartDirection(to) RETURN r",
)

DROP_RELATIONSHIP = QueryTemplate(
    "DROP_RELATIONSHIP",
    "MATCH ({Uuid:$uuidIncoming})@fromPartDirection[r:@relationshipName]@toPartDirection"
    "({Uuid:$uuidOutgoing}) DELETE r",
)

ADD_LABEL = QueryTemplate(
    "ADD_LABEL",
    "MATCH (n{Uuid:$Uuid}) SET n:@label",
)

CATALOGUE = {
    template.name: template
    for template in (
        CREATE,
        MERGE,
        GET_ALL,
        GET_BY_PROPERTY,
        GET_BY_PROPERTIES,
        UPDATE,
        DELETE,
        DROP,
        DROP_BY_PROPERTIES,
        CREATE_RELATIONSHIP,
        MERGE_RELATIONSHIP,
        DROP_RELATIONSHIP,
        ADD_LABEL,
    )
}
