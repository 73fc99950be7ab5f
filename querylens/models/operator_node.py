"""Operator Node Pydantic Model.

One node of a reconstructed query execution tree. Nodes own their
children; the only upward link is the `parent_id` string.
"""

from typing import Any, Iterator

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class OperatorNode(BaseModel):
    """Operator or stage in a query's execution tree.

    Attributes:
        id: Node identifier (plan node id, or a synthetic id on the legacy path)
        query_id: Query the node belongs to
        node_type: 'OPERATOR' or 'STAGE'
        operator_type: Operator name ('TableScan', 'Aggregate', ...)
        source_system: Catalog the originating event referenced
        state: Query state stamped from the originating event
        metadata: Plan-derived details (fragmentId, descriptor, outputs, estimates, ...)
        children: Ordered child nodes
        parent_id: Parent node id, None for the root
    """

    id: str | None = Field(default=None)
    query_id: str | None = Field(default=None)
    node_type: str | None = Field(default=None)
    operator_type: str | None = Field(default=None)
    source_system: str | None = Field(default=None)
    state: str | None = Field(default=None)
    execution_time: int | None = Field(default=None)
    input_rows: int | None = Field(default=None)
    output_rows: int | None = Field(default=None)
    input_bytes: int | None = Field(default=None)
    output_bytes: int | None = Field(default=None)
    cpu_time: int | None = Field(default=None)
    wall_time: int | None = Field(default=None)
    memory_bytes: int | None = Field(default=None)
    error_message: str | None = Field(default=None)
    warnings: list[str] | None = Field(default=None)
    metadata: dict[str, Any] | None = Field(default=None)
    children: list['OperatorNode'] = Field(default_factory=list)
    parent_id: str | None = Field(default=None)

    def walk(self) -> Iterator['OperatorNode']:
        """Yield this node and all descendants depth-first, children in order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    model_config = {
        'alias_generator': to_camel,
        'populate_by_name': True,
    }
