"""Trino Event Listener Wire Message.

Pydantic models matching the nested JSON published by Trino's Kafka event
listener, plus the conversion into a flat `QueryEvent`.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from querylens.models.query_event import QueryEvent

_WIRE_CONFIG = {'populate_by_name': True, 'extra': 'ignore'}

# Engine states grouped into the two lifecycle event kinds
_CREATED_STATES = {'QUEUED', 'PLANNING', 'STARTING', 'RUNNING'}
_COMPLETED_STATES = {'FINISHED', 'FAILED', 'CANCELED'}


class QueryMetadata(BaseModel):
    query_id: str | None = Field(default=None, alias='queryId')
    query: str | None = None
    query_state: str | None = Field(default=None, alias='queryState')
    uri: str | None = None
    plan: str | None = None
    json_plan: str | None = Field(default=None, alias='jsonPlan')
    payload: str | None = None

    model_config = _WIRE_CONFIG


class QueryContext(BaseModel):
    user: str | None = None
    principal: str | None = None
    remote_client_address: str | None = Field(default=None, alias='remoteClientAddress')
    user_agent: str | None = Field(default=None, alias='userAgent')
    client_info: str | None = Field(default=None, alias='clientInfo')
    server_address: str | None = Field(default=None, alias='serverAddress')
    server_version: str | None = Field(default=None, alias='serverVersion')
    environment: str | None = None

    model_config = _WIRE_CONFIG


class QueryStatistics(BaseModel):
    """Statistics block; durations arrive as strings such as '1.23s'."""

    cpu_time: str | None = Field(default=None, alias='cpuTime')
    wall_time: str | None = Field(default=None, alias='wallTime')
    queued_time: str | None = Field(default=None, alias='queuedTime')
    scheduled_time: str | None = Field(default=None, alias='scheduledTime')
    analysis_time: str | None = Field(default=None, alias='analysisTime')
    planning_time: str | None = Field(default=None, alias='planningTime')
    execution_time: str | None = Field(default=None, alias='executionTime')
    peak_memory_bytes: int | None = Field(default=None, alias='peakMemoryBytes')
    total_bytes: int | None = Field(default=None, alias='totalBytes')
    total_rows: int | None = Field(default=None, alias='totalRows')
    completed_splits: int | None = Field(default=None, alias='completedSplits')

    model_config = _WIRE_CONFIG


class ColumnInfo(BaseModel):
    name: str | None = None
    type: str | None = None

    model_config = _WIRE_CONFIG


class InputMetadata(BaseModel):
    catalog_name: str | None = Field(default=None, alias='catalogName')
    schema_name: str | None = Field(default=None, alias='schema')
    table: str | None = None
    columns: list[ColumnInfo] | None = None
    connector_name: str | None = Field(default=None, alias='connectorName')
    catalog_version: str | None = Field(default=None, alias='catalogVersion')
    connector_metrics: Any = Field(default=None, alias='connectorMetrics')
    physical_input_bytes: int | None = Field(default=None, alias='physicalInputBytes')
    physical_input_rows: int | None = Field(default=None, alias='physicalInputRows')

    model_config = _WIRE_CONFIG

    def to_input_map(self) -> dict[str, Any]:
        """Plain map in the shape catalog discovery reads from `inputs` lists."""
        input_map: dict[str, Any] = {
            'catalogName': self.catalog_name,
            'connectorName': self.connector_name,
            'schema': self.schema_name,
            'table': self.table,
        }
        if self.columns is not None:
            input_map['columns'] = [{'name': c.name, 'type': c.type} for c in self.columns]
        return input_map


class OutputMetadata(BaseModel):
    catalog_name: str | None = Field(default=None, alias='catalogName')
    schema_name: str | None = Field(default=None, alias='schema')
    table: str | None = None

    model_config = _WIRE_CONFIG


class IoMetadata(BaseModel):
    inputs: list[InputMetadata] | None = None
    output: OutputMetadata | None = None

    model_config = _WIRE_CONFIG


class EventPayload(BaseModel):
    metadata: QueryMetadata | None = None
    context: QueryContext | None = None
    create_time: str | None = Field(default=None, alias='createTime')
    end_time: str | None = Field(default=None, alias='endTime')
    statistics: QueryStatistics | None = None
    io_metadata: IoMetadata | None = Field(default=None, alias='ioMetadata')

    model_config = _WIRE_CONFIG


class TrinoEventMessage(BaseModel):
    """Top-level Kafka message: `{"eventPayload": {...}}`."""

    event_payload: EventPayload | None = Field(default=None, alias='eventPayload')

    model_config = _WIRE_CONFIG

    def to_query_event(self) -> QueryEvent | None:
        """Flatten the wire message into a QueryEvent.

        Returns:
            QueryEvent, or None when the payload or its metadata block is missing
        """
        payload = self.event_payload
        if payload is None or payload.metadata is None:
            return None

        metadata = payload.metadata
        stats = payload.statistics
        io_meta = payload.io_metadata

        primary_catalog = None
        primary_schema = None
        primary_table = None
        catalogs: list[str] = []
        schemas: list[str] = []
        tables: list[str] = []
        input_maps: list[dict[str, Any]] = []

        if io_meta is not None and io_meta.inputs:
            for item in io_meta.inputs:
                if item.catalog_name is not None:
                    catalogs.append(item.catalog_name)
                    primary_catalog = primary_catalog or item.catalog_name
                if item.schema_name is not None:
                    schemas.append(item.schema_name)
                    primary_schema = primary_schema or item.schema_name
                if item.table is not None:
                    tables.append(item.table)
                    primary_table = primary_table or item.table
                input_maps.append(item.to_input_map())

        return QueryEvent(
            query_id=metadata.query_id,
            query=metadata.query,
            state=metadata.query_state,
            user=payload.context.user if payload.context else None,
            timestamp=parse_timestamp(payload.create_time),
            create_time=payload.create_time,
            end_time=payload.end_time,
            cpu_time_ms=parse_duration(stats.cpu_time) if stats else None,
            wall_time_ms=parse_duration(stats.wall_time) if stats else None,
            queued_time_ms=parse_duration(stats.queued_time) if stats else None,
            execution_time=parse_duration(stats.execution_time) if stats else None,
            peak_memory_bytes=stats.peak_memory_bytes if stats else None,
            total_bytes=stats.total_bytes if stats else None,
            total_rows=stats.total_rows if stats else None,
            completed_splits=stats.completed_splits if stats else None,
            plan=metadata.plan,
            json_plan=metadata.json_plan,
            event_type=determine_event_type(metadata.query_state),
            catalog=primary_catalog,
            schema_name=primary_schema,
            table_name=primary_table,
            catalogs=catalogs,
            schemas=schemas,
            tables=tables,
            inputs={'inputs': input_maps} if io_meta is not None and io_meta.inputs is not None else None,
            io_metadata=io_meta.model_dump(by_alias=True) if io_meta is not None else None,
        )


def parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO-8601 engine timestamp, falling back to now (UTC)."""
    if value:
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def parse_duration(duration: str | None) -> int | None:
    """Parse an engine duration string to whole milliseconds.

    Accepts '123.45ms', '1.23s' and '2.5m'. Anything else yields None.

    Args:
        duration: Duration string from the statistics block

    Returns:
        Milliseconds, or None if absent or unparseable
    """
    if not duration:
        return None
    duration = duration.strip()
    try:
        if duration.endswith('ms'):
            return int(duration[:-2].split('.')[0])
        if duration.endswith('s'):
            return round(float(duration[:-1]) * 1000)
        if duration.endswith('m'):
            return round(float(duration[:-1]) * 60000)
    except (ValueError, OverflowError):
        return None
    return None


def determine_event_type(query_state: str | None) -> str:
    """Map an engine query state to a lifecycle event kind."""
    if query_state is None:
        return 'UNKNOWN'
    if query_state in _CREATED_STATES:
        return 'CREATED'
    if query_state in _COMPLETED_STATES:
        return 'COMPLETED'
    return query_state
