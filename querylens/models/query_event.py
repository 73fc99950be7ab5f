"""Query Event Pydantic Model.

One immutable status snapshot of a Trino query at a point in time.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


class QueryEvent(BaseModel):
    """Decoded query lifecycle event.

    Every field except `query_id` is optional, and even `query_id` may be
    missing on malformed input (such events are rejected at ingestion).
    Statistics that were not reported stay None.

    Attributes:
        query_id: Engine-assigned query identifier
        event_type: Event kind ('CREATED', 'COMPLETED', ...)
        timestamp: When the snapshot was taken (UTC)
        query: SQL text
        state: Engine query state ('QUEUED', 'RUNNING', 'FINISHED', ...)
        user: Submitting user
        catalog: Primary catalog referenced by the query
        schema_name: Primary schema referenced by the query
        table_name: Primary table referenced by the query
        io_metadata: Structured input metadata carried from the wire message
        plan: Human-readable plan text
        json_plan: Fragment-keyed JSON plan text
        stage_stats: Opaque stage statistics
        operator_stats: Opaque operator statistics
        inputs: Free-form map that may carry an `inputs` list
        metadata: Free-form map that may carry an `inputs` list
    """

    query_id: str | None = Field(default=None, description='Query identifier')
    event_type: str | None = Field(default=None, description='Event kind')
    timestamp: datetime | None = Field(default=None, description='Snapshot time')
    query: str | None = Field(default=None, description='SQL text')
    state: str | None = Field(default=None, description='Query state')
    user: str | None = Field(default=None, description='Submitting user')
    source: str | None = Field(default=None, description='Client source')

    catalog: str | None = Field(default=None, description='Primary catalog')
    schema_name: str | None = Field(default=None, alias='schema', description='Primary schema')
    table_name: str | None = Field(default=None, description='Primary table')
    catalogs: list[str] | None = Field(default=None, description='All referenced catalogs')
    schemas: list[str] | None = Field(default=None, description='All referenced schemas')
    tables: list[str] | None = Field(default=None, description='All referenced tables')
    io_metadata: Any = Field(default=None, description='Structured input/output metadata')

    execution_time: int | None = Field(default=None, description='Execution time (ms)')
    create_time: str | None = Field(default=None, description='Engine create time')
    end_time: str | None = Field(default=None, description='Engine end time')
    cpu_time: int | None = Field(default=None)
    cpu_time_ms: int | None = Field(default=None)
    wall_time: int | None = Field(default=None)
    wall_time_ms: int | None = Field(default=None)
    queued_time: int | None = Field(default=None)
    queued_time_ms: int | None = Field(default=None)
    peak_memory_bytes: int | None = Field(default=None)
    total_bytes: int | None = Field(default=None)
    total_rows: int | None = Field(default=None)
    completed_splits: int | None = Field(default=None)

    plan: str | None = Field(default=None, description='Text plan')
    json_plan: str | None = Field(default=None, description='Fragment-keyed JSON plan')

    error_code: str | None = Field(default=None)
    error_message: str | None = Field(default=None)

    stage_stats: dict[str, Any] | None = Field(default=None)
    operator_stats: dict[str, Any] | None = Field(default=None)
    inputs: dict[str, Any] | None = Field(default=None)
    metadata: dict[str, Any] | None = Field(default=None)
    statistics: dict[str, Any] | None = Field(default=None)

    @field_validator('timestamp')
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        """Naive timestamps are treated as UTC so all events compare."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def has_json_plan(self) -> bool:
        return bool(self.json_plan and self.json_plan.strip())

    @property
    def cpu_time_value(self) -> int | None:
        """CPU time in ms, whichever of the two wire fields was set."""
        return self.cpu_time if self.cpu_time is not None else self.cpu_time_ms

    @property
    def wall_time_value(self) -> int | None:
        """Wall time in ms, whichever of the two wire fields was set."""
        return self.wall_time if self.wall_time is not None else self.wall_time_ms

    model_config = {
        'alias_generator': to_camel,
        'populate_by_name': True,
        'frozen': True,
        'extra': 'ignore',
        'json_schema_extra': {
            'example': {
                'queryId': '20251019_101500_00042_xk3fq',
                'eventType': 'COMPLETED',
                'timestamp': '2025-10-19T10:15:02Z',
                'query': 'SELECT * FROM postgres.public.customers',
                'state': 'FINISHED',
                'user': 'analyst',
                'catalog': 'postgres',
                'schema': 'public',
                'tableName': 'customers',
                'totalRows': 1000,
                'jsonPlan': '{"0": {"id": "0", "name": "TableScan", "children": []}}'
            }
        }
    }
