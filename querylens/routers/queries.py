"""Queries API Router.

Read endpoints over correlated query events: consolidated query views,
their operator trees and the catalog/schema/table summary.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from querylens.lib.dependencies import get_query_event_service
from querylens.lib.structured_logger import StructuredLogger
from querylens.models.query_view import QueryView
from querylens.services.query_event_service import QueryEventService

router = APIRouter()
logger = StructuredLogger(__name__)


class DatabaseSummaryResponse(BaseModel):
    """Catalogs, schemas and tables named by ingested queries."""
    catalogs: list[str] = Field(default_factory=list, description='Catalog names')
    schemas: list[str] = Field(default_factory=list, description="'catalog.schema' names")
    tables: list[str] = Field(default_factory=list, description="'catalog.schema.table' names")
    total_queries: int = Field(default=0, description='Distinct queries ingested')
    catalog_query_counts: dict[str, int] = Field(default_factory=dict, description='Distinct queries per catalog')

    model_config = {'alias_generator': to_camel, 'populate_by_name': True}


class OperatorListResponse(BaseModel):
    query_id: str
    operators: list[str]

    model_config = {'alias_generator': to_camel, 'populate_by_name': True}


def _not_found(query_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            'error_code': 'QUERY_NOT_FOUND',
            'message': f'Query {query_id} not found'
        }
    )


@router.get('', response_model=list[QueryView])
def list_queries(
    catalog: str | None = None,
    schema: str | None = None,
    table: str | None = None,
    service: QueryEventService = Depends(get_query_event_service)
):
    """List consolidated query views.

    Query Parameters:
        catalog: Only queries whose primary catalog matches
        schema: Only queries whose primary schema matches ('catalog.schema')
        table: Only queries whose primary table matches ('catalog.schema.table')

    Returns:
        Query views, one per query id
    """
    if table is not None:
        return service.list_views_by_table(table)
    if schema is not None:
        return service.list_views_by_schema(schema)
    if catalog is not None:
        return service.list_views_by_catalog(catalog)
    return service.list_views()


@router.get('/ids', response_model=list[str])
def list_query_ids(service: QueryEventService = Depends(get_query_event_service)):
    """Ids of every query seen so far."""
    return service.list_query_ids()


@router.get('/summary', response_model=DatabaseSummaryResponse)
def get_summary(service: QueryEventService = Depends(get_query_event_service)) -> Any:
    """Catalog/schema/table summary over all ingested events."""
    return DatabaseSummaryResponse(**service.get_database_summary())


@router.get('/{query_id}', response_model=QueryView)
def get_query(query_id: str, service: QueryEventService = Depends(get_query_event_service)):
    """Consolidated view of one query.

    Raises:
        404: Unknown query id
    """
    view = service.derive_view(query_id)
    if view is None:
        logger.info(f'Query not found: {query_id}')
        raise _not_found(query_id)
    return view


@router.get('/{query_id}/operators', response_model=OperatorListResponse)
def get_query_operators(query_id: str, service: QueryEventService = Depends(get_query_event_service)):
    """Flat operator list from the query's JSON plan.

    Raises:
        404: Unknown query id
    """
    operators = service.extract_operators(query_id)
    if operators is None:
        raise _not_found(query_id)
    return OperatorListResponse(query_id=query_id, operators=operators)
