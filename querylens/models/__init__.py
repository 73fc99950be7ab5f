"""Models package for query events, operator trees and discovered catalogs."""

from querylens.models.catalog import (
    Catalog,
    CatalogKind,
    Collection,
    CollectionField,
    Column,
    DocumentContents,
    RelationalContents,
    Schema,
    Table,
    UnknownContents,
)
from querylens.models.operator_node import OperatorNode
from querylens.models.plan import PlanEstimate, PlanNode, PlanOutput
from querylens.models.query_event import QueryEvent
from querylens.models.query_view import QueryView
from querylens.models.trino_message import TrinoEventMessage

__all__ = [
    'Catalog',
    'CatalogKind',
    'Collection',
    'CollectionField',
    'Column',
    'DocumentContents',
    'RelationalContents',
    'Schema',
    'Table',
    'UnknownContents',
    'OperatorNode',
    'PlanEstimate',
    'PlanNode',
    'PlanOutput',
    'QueryEvent',
    'QueryView',
    'TrinoEventMessage',
]
