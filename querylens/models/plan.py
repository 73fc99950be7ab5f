"""Raw JSON plan models.

Shapes of one fragment in Trino's fragment-keyed JSON plan
(`{"0": {...}, "1": {...}}`). Each fragment is a tree of plan nodes.
"""

from typing import Any

from pydantic import BaseModel, Field


class PlanOutput(BaseModel):
    """Output column of a plan node."""

    name: str | None = None
    type: str | None = None

    model_config = {'extra': 'ignore'}


class PlanEstimate(BaseModel):
    """Cost estimate of a plan node.

    Cost fields are kept exactly as received: either a number or the
    literal string 'NaN'. They are never coerced to float.
    """

    output_row_count: Any = Field(default=None, alias='outputRowCount')
    output_size_in_bytes: Any = Field(default=None, alias='outputSizeInBytes')
    cpu_cost: Any = Field(default=None, alias='cpuCost')
    memory_cost: Any = Field(default=None, alias='memoryCost')
    network_cost: Any = Field(default=None, alias='networkCost')

    model_config = {'populate_by_name': True, 'extra': 'ignore'}

    def to_metadata(self) -> dict[str, Any]:
        return {
            'outputRowCount': self.output_row_count,
            'outputSizeInBytes': self.output_size_in_bytes,
            'cpuCost': self.cpu_cost,
            'memoryCost': self.memory_cost,
            'networkCost': self.network_cost,
        }


class PlanNode(BaseModel):
    """One operator in a plan fragment (TableScan, Filter, Join, ...)."""

    id: str | None = None
    name: str | None = None
    descriptor: dict[str, Any] | None = None
    outputs: list[PlanOutput] | None = None
    details: list[str] | None = None
    estimates: list[PlanEstimate] | None = None
    children: list['PlanNode'] | None = None

    model_config = {'extra': 'ignore', 'coerce_numbers_to_str': True}
