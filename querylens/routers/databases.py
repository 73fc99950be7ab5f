"""Databases API Router.

FastAPI endpoints over discovered catalogs (the dashboard calls them
databases): listing, per-catalog hierarchy, refresh and removal.

Catalogs are serialized explicitly with `model_dump` so the flattened
`schemas`/`collections` lists are returned instead of the internal
`contents` union.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from querylens.lib.dependencies import get_catalog_service
from querylens.lib.structured_logger import StructuredLogger
from querylens.services.catalog_projection import CatalogProjectionService

router = APIRouter()
logger = StructuredLogger(__name__)


def _dump(model) -> dict[str, Any]:
    return model.model_dump(by_alias=True, mode='json')


def _not_found(catalog_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            'error_code': 'DATABASE_NOT_FOUND',
            'message': f'Database {catalog_id} not found'
        }
    )


@router.get('')
def list_databases(service: CatalogProjectionService = Depends(get_catalog_service)) -> list[dict[str, Any]]:
    """All discovered catalogs (served from the TTL cache)."""
    return [_dump(catalog) for catalog in service.list_catalogs()]


@router.post('/refresh')
def refresh_databases(service: CatalogProjectionService = Depends(get_catalog_service)) -> list[dict[str, Any]]:
    """Re-derive the catalog listing now and return it."""
    catalogs = service.refresh()
    logger.info(f'Catalog listing refreshed via API: {len(catalogs)} catalogs', count=len(catalogs))
    return [_dump(catalog) for catalog in catalogs]


@router.post('/invalidate')
def invalidate_databases(service: CatalogProjectionService = Depends(get_catalog_service)) -> dict[str, str]:
    """Drop the cached listing; the next read re-derives it."""
    service.invalidate()
    return {'status': 'invalidated'}


@router.get('/{catalog_id}')
def get_database(catalog_id: str, service: CatalogProjectionService = Depends(get_catalog_service)) -> dict[str, Any]:
    """One catalog with its full hierarchy.

    Raises:
        404: Unknown catalog
    """
    catalog = service.get_catalog(catalog_id)
    if catalog is None:
        raise _not_found(catalog_id)
    return _dump(catalog)


@router.get('/{catalog_id}/schemas')
def get_database_schemas(
    catalog_id: str,
    service: CatalogProjectionService = Depends(get_catalog_service)
) -> list[dict[str, Any]]:
    """Schemas of a relational or unknown catalog (empty for document catalogs)."""
    schemas = service.get_schemas(catalog_id)
    if schemas is None:
        raise _not_found(catalog_id)
    return [_dump(schema) for schema in schemas]


@router.get('/{catalog_id}/schemas/{schema_name}/tables')
def get_schema_tables(
    catalog_id: str,
    schema_name: str,
    service: CatalogProjectionService = Depends(get_catalog_service)
) -> list[dict[str, Any]]:
    """Tables of one schema.

    Raises:
        404: Unknown catalog or schema
    """
    tables = service.get_tables(catalog_id, schema_name)
    if tables is None:
        if service.get_catalog(catalog_id) is None:
            raise _not_found(catalog_id)
        raise HTTPException(
            status_code=404,
            detail={
                'error_code': 'SCHEMA_NOT_FOUND',
                'message': f'Schema {schema_name} not found in database {catalog_id}'
            }
        )
    return [_dump(table) for table in tables]


@router.get('/{catalog_id}/collections')
def get_database_collections(
    catalog_id: str,
    service: CatalogProjectionService = Depends(get_catalog_service)
) -> list[dict[str, Any]]:
    """Collections of a document catalog (empty otherwise)."""
    collections = service.get_collections(catalog_id)
    if collections is None:
        raise _not_found(catalog_id)
    return [_dump(collection) for collection in collections]


@router.delete('/{catalog_id}')
def delete_database(catalog_id: str, service: CatalogProjectionService = Depends(get_catalog_service)) -> dict[str, Any]:
    """Forget a discovered catalog.

    Raises:
        404: Unknown catalog
    """
    if not service.remove_catalog(catalog_id):
        raise _not_found(catalog_id)
    return {'deleted': True, 'id': catalog_id}
