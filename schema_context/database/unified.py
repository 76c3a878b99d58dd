"""
Unified schema model shared by every source

All entities are frozen snapshots: the converter builds them once and
nothing downstream mutates them.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Tuple, Optional, Dict, Any


class Cardinality(Enum):
    """Relationship shape between the two ends of a relation"""
    ONE_TO_ONE = "1:1"
    ONE_TO_MANY = "1:N"
    MANY_TO_ONE = "N:1"
    MANY_TO_MANY = "N:M"


_CARDINALITY_TAGS = {
    'one-to-one': Cardinality.ONE_TO_ONE,
    'one-to-many': Cardinality.ONE_TO_MANY,
    'many-to-one': Cardinality.MANY_TO_ONE,
    'many-to-many': Cardinality.MANY_TO_MANY,
}


def map_cardinality(tag: Any) -> Cardinality:
    """Map a source relation tag onto a Cardinality, defaulting to 1:N"""
    if isinstance(tag, Cardinality):
        return tag
    if isinstance(tag, str):
        key = tag.strip().lower()
        if key in _CARDINALITY_TAGS:
            return _CARDINALITY_TAGS[key]
        for cardinality in Cardinality:
            if cardinality.value.lower() == key:
                return cardinality
    return Cardinality.ONE_TO_MANY


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class UnifiedColumn:
    name: str
    type: str
    nullable: bool
    default: Optional[str] = None
    is_primary_key: bool = False
    is_unique: bool = False
    is_foreign_key: bool = False
    references_table: Optional[str] = None
    references_column: Optional[str] = None
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'name': self.name,
            'type': self.type,
            'nullable': self.nullable,
            'default': self.default,
            'isPrimaryKey': self.is_primary_key,
            'isUnique': self.is_unique,
            'isForeignKey': self.is_foreign_key,
            'referencesTable': self.references_table,
            'referencesColumn': self.references_column,
            'onDelete': self.on_delete,
            'onUpdate': self.on_update,
            'description': self.description,
        })


@dataclass(frozen=True)
class UnifiedIndex:
    name: str
    columns: Tuple[str, ...]
    unique: bool
    is_primary_key: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'columns': list(self.columns),
            'unique': self.unique,
            'isPrimaryKey': self.is_primary_key,
        }


@dataclass(frozen=True)
class UnifiedRelation:
    from_table: str
    from_column: str
    to_table: str
    to_column: str
    cardinality: Cardinality
    on_delete: Optional[str] = None
    on_update: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'fromTable': self.from_table,
            'fromColumn': self.from_column,
            'toTable': self.to_table,
            'toColumn': self.to_column,
            'cardinality': self.cardinality.value,
            'onDelete': self.on_delete,
            'onUpdate': self.on_update,
        })


@dataclass(frozen=True)
class UnifiedTable:
    name: str
    columns: Tuple[UnifiedColumn, ...]
    indexes: Tuple[UnifiedIndex, ...] = ()
    relations: Tuple[UnifiedRelation, ...] = ()
    primary_key: Tuple[str, ...] = ()
    description: Optional[str] = None

    def get_column(self, name: str) -> Optional[UnifiedColumn]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'name': self.name,
            'description': self.description,
            'columns': [column.to_dict() for column in self.columns],
            'indexes': [index.to_dict() for index in self.indexes],
            'relations': [relation.to_dict() for relation in self.relations],
            'primaryKey': list(self.primary_key),
        })


@dataclass(frozen=True)
class UnifiedSchema:
    """Complete source-agnostic schema"""
    tables: Tuple[UnifiedTable, ...]
    database_type: str
    schema_name: Optional[str] = None
    source: Optional[str] = None

    def get_table(self, name: str) -> Optional[UnifiedTable]:
        for table in self.tables:
            if table.name == name:
                return table
        return None

    @property
    def relations(self) -> Tuple[UnifiedRelation, ...]:
        return tuple(rel for table in self.tables for rel in table.relations)

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            'tables': [table.to_dict() for table in self.tables],
            'databaseType': self.database_type,
            'schemaName': self.schema_name,
            'source': self.source,
        })

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
