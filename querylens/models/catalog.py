"""Discovered Catalog Pydantic Models.

A catalog is one external data source seen in query events (a Trino
connector instance). Relational catalogs hold schemas -> tables -> columns;
document catalogs (MongoDB) hold collections -> fields. Which of the two a
catalog holds is decided by its kind at creation and encoded in the
`contents` tagged union, so a catalog can never carry both.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

_CATALOG_CONFIG = {'alias_generator': to_camel, 'populate_by_name': True}

_NESTED_TYPE_MARKERS = ('array', 'map', 'row', 'json')


class CatalogKind(str, Enum):
    """Shape of a catalog's namespace hierarchy."""
    RELATIONAL = 'RELATIONAL'
    DOCUMENT = 'DOCUMENT'
    UNKNOWN = 'UNKNOWN'


class Column(BaseModel):
    """Column of a relational table. The type is fixed by the first reference."""

    name: str = Field(..., min_length=1, description='Column name')
    type: str | None = Field(default=None, description='SQL type as reported by the engine')
    nullable: bool | None = Field(default=None, description='NULL allowed, when known')
    default_value: str | None = Field(default=None, description='Default expression, when known')

    model_config = _CATALOG_CONFIG


class CollectionField(BaseModel):
    """Field of a document collection."""

    name: str = Field(..., min_length=1, description='Field name')
    type: str | None = Field(default=None, description='Type as reported by the engine')
    nested: bool = Field(default=False, description='Array, map, row or json typed')

    model_config = _CATALOG_CONFIG

    @staticmethod
    def is_nested_type(type_name: str | None) -> bool:
        if type_name is None:
            return False
        lowered = type_name.lower()
        return any(marker in lowered for marker in _NESTED_TYPE_MARKERS)


class Table(BaseModel):
    name: str = Field(..., min_length=1, description='Table name')
    columns: list[Column] = Field(default_factory=list)
    row_count: int | None = Field(default=None)
    size_bytes: int | None = Field(default=None)
    first_seen: datetime | None = Field(default=None)
    last_seen: datetime | None = Field(default=None)
    total_queries: int = Field(default=0, ge=0)

    model_config = _CATALOG_CONFIG


class Schema(BaseModel):
    name: str = Field(..., min_length=1, description='Schema name')
    tables: list[Table] = Field(default_factory=list)
    first_seen: datetime | None = Field(default=None)
    last_seen: datetime | None = Field(default=None)
    total_queries: int = Field(default=0, ge=0)

    model_config = _CATALOG_CONFIG

    def get_table(self, name: str) -> Table | None:
        return next((t for t in self.tables if t.name == name), None)


class Collection(BaseModel):
    name: str = Field(..., min_length=1, description='Collection name')
    fields: list[CollectionField] = Field(default_factory=list)
    document_count: int | None = Field(default=None)
    size_bytes: int | None = Field(default=None)
    first_seen: datetime | None = Field(default=None)
    last_seen: datetime | None = Field(default=None)
    total_queries: int = Field(default=0, ge=0)

    model_config = _CATALOG_CONFIG


class RelationalContents(BaseModel):
    kind: Literal[CatalogKind.RELATIONAL] = CatalogKind.RELATIONAL
    schemas: list[Schema] = Field(default_factory=list)


class DocumentContents(BaseModel):
    kind: Literal[CatalogKind.DOCUMENT] = CatalogKind.DOCUMENT
    collections: list[Collection] = Field(default_factory=list)


class UnknownContents(BaseModel):
    """Unclassified catalogs are laid out like relational ones."""
    kind: Literal[CatalogKind.UNKNOWN] = CatalogKind.UNKNOWN
    schemas: list[Schema] = Field(default_factory=list)


CatalogContents = Annotated[
    Union[RelationalContents, DocumentContents, UnknownContents],
    Field(discriminator='kind'),
]


def empty_contents(kind: CatalogKind) -> RelationalContents | DocumentContents | UnknownContents:
    """Fresh, empty contents matching a catalog kind."""
    if kind == CatalogKind.DOCUMENT:
        return DocumentContents()
    if kind == CatalogKind.RELATIONAL:
        return RelationalContents()
    return UnknownContents()


class Catalog(BaseModel):
    """Discovered data source.

    Attributes:
        id: Catalog name, used verbatim as identifier
        name: Catalog name
        kind: RELATIONAL, DOCUMENT or UNKNOWN, fixed at creation
        type: Vendor type ('postgresql', 'mongodb', ...) or the catalog name when unclassified
        status: Always 'ACTIVE' for discovered catalogs
        first_seen: Timestamp of the first event referencing the catalog
        last_seen: Timestamp of the latest event referencing the catalog
        total_queries: Number of events that referenced the catalog
        contents: Schemas or collections, depending on kind
    """

    id: str = Field(..., min_length=1, description='Catalog identifier (= name)')
    name: str = Field(..., min_length=1, description='Catalog name')
    kind: CatalogKind = Field(..., description='Hierarchy shape')
    type: str = Field(..., description='Vendor type')
    host: str | None = Field(default=None)
    port: int | None = Field(default=None)
    status: str = Field(default='ACTIVE')
    first_seen: datetime | None = Field(default=None)
    last_seen: datetime | None = Field(default=None)
    total_queries: int = Field(default=0, ge=0)
    contents: CatalogContents = Field(..., exclude=True)

    @model_validator(mode='after')
    def validate_contents_kind(self) -> 'Catalog':
        """Contents must have the same shape as the catalog kind."""
        if self.contents.kind != self.kind:
            raise ValueError(f'contents kind {self.contents.kind.value} does not match catalog kind {self.kind.value}')
        return self

    @computed_field
    @property
    def schemas(self) -> list[Schema]:
        """Schemas of a relational or unknown catalog; always empty for documents."""
        if isinstance(self.contents, DocumentContents):
            return []
        return self.contents.schemas

    @computed_field
    @property
    def collections(self) -> list[Collection]:
        """Collections of a document catalog; always empty otherwise."""
        if isinstance(self.contents, DocumentContents):
            return self.contents.collections
        return []

    def get_schema(self, name: str) -> Schema | None:
        return next((s for s in self.schemas if s.name == name), None)

    def get_collection(self, name: str) -> Collection | None:
        return next((c for c in self.collections if c.name == name), None)

    model_config = {
        **_CATALOG_CONFIG,
        'json_schema_extra': {
            'example': {
                'id': 'postgres_main',
                'name': 'postgres_main',
                'kind': 'RELATIONAL',
                'type': 'postgresql',
                'status': 'ACTIVE',
                'firstSeen': '2025-10-19T10:15:00Z',
                'lastSeen': '2025-10-19T10:20:00Z',
                'totalQueries': 3,
                'schemas': [{'name': 'public', 'tables': [{'name': 'orders', 'columns': []}]}],
                'collections': []
            }
        }
    }
