"""
Normalization of source-specific schemas into the unified model
"""

import json
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from ..exceptions import UnsupportedSourceError
from .models import (
    CollectionInfo,
    DatabaseType,
    DrizzleSchema,
    FieldInfo,
    FirestoreSchema,
    MongoDBSchema,
    OrmRelation,
    PrismaSchema,
    RelationalTable,
)
from .unified import (
    Cardinality,
    UnifiedColumn,
    UnifiedIndex,
    UnifiedRelation,
    UnifiedSchema,
    UnifiedTable,
    map_cardinality,
)

FIRESTORE_KEY_INDEX = '__name__'

_MIXED_PATTERN = re.compile(r'^Mixed\((.*)\)$')


def _build_table(name: str, columns: Iterable[Dict[str, Any]], indexes: Sequence[UnifiedIndex],
                 relations: Sequence[UnifiedRelation], primary_key: Sequence[str],
                 description: Optional[str] = None, reference_columns: Optional[Set[str]] = None) -> UnifiedTable:
    """Assemble a table, deriving the key, uniqueness and foreign key flags of each column"""
    primary_key = tuple(primary_key)
    unique_columns = {
        index.columns[0]
        for index in indexes
        if index.unique and len(set(index.columns)) == 1
    }
    relation_by_column: Dict[str, UnifiedRelation] = {}
    for relation in relations:
        relation_by_column.setdefault(relation.from_column, relation)
    reference_columns = reference_columns or set()

    unified_columns = []
    for column in columns:
        relation = relation_by_column.get(column['name'])
        unified_columns.append(UnifiedColumn(
            name=column['name'],
            type=column['type'],
            nullable=bool(column['nullable']),
            default=column.get('default'),
            is_primary_key=column['name'] in primary_key,
            is_unique=column['name'] in unique_columns,
            is_foreign_key=relation is not None or column['name'] in reference_columns,
            references_table=relation.to_table if relation else None,
            references_column=relation.to_column if relation else None,
            on_delete=relation.on_delete if relation else None,
            on_update=relation.on_update if relation else None,
            description=column.get('description')
        ))

    return UnifiedTable(
        name=name,
        columns=tuple(unified_columns),
        indexes=tuple(indexes),
        relations=tuple(relations),
        primary_key=primary_key,
        description=description
    )


# Relational sources

def _convert_relational_table(table: RelationalTable) -> UnifiedTable:
    indexes = [
        UnifiedIndex(
            name=index.name,
            columns=tuple(index.columns),
            unique=index.unique,
            is_primary_key=index.is_primary_key
        )
        for index in table.indexes
    ]
    relations = [
        UnifiedRelation(
            from_table=table.name,
            from_column=fk.column,
            to_table=fk.references_table,
            to_column=fk.references_column,
            cardinality=Cardinality.MANY_TO_ONE,
            on_delete=fk.on_delete,
            on_update=fk.on_update
        )
        for fk in table.foreign_keys
    ]
    columns = [
        {
            'name': column.name,
            'type': column.type,
            'nullable': column.nullable,
            'default': column.default,
            'description': column.description,
        }
        for column in table.columns
    ]
    return _build_table(table.name, columns, indexes, relations, table.primary_key, table.description)


def _convert_postgresql(schema) -> UnifiedSchema:
    return UnifiedSchema(
        tables=tuple(_convert_relational_table(table) for table in schema.tables),
        database_type=DatabaseType.POSTGRESQL.value,
        schema_name=schema.schema_name,
        source=schema.source
    )


def _convert_mysql(schema) -> UnifiedSchema:
    return UnifiedSchema(
        tables=tuple(_convert_relational_table(table) for table in schema.tables),
        database_type=DatabaseType.MYSQL.value,
        schema_name=schema.database_name,
        source=schema.source
    )


def _convert_sqlite(schema) -> UnifiedSchema:
    return UnifiedSchema(
        tables=tuple(_convert_relational_table(table) for table in schema.tables),
        database_type=DatabaseType.SQLITE.value,
        source=schema.source or schema.database_path
    )


# ORM schema files

def _convert_orm_relations(relations: List[OrmRelation]) -> List[UnifiedRelation]:
    return [
        UnifiedRelation(
            from_table=relation.from_table,
            from_column=relation.from_fields[0] if relation.from_fields else '',
            to_table=relation.to_table,
            to_column=relation.to_fields[0] if relation.to_fields else '',
            cardinality=map_cardinality(relation.type),
            on_delete=relation.on_delete,
            on_update=relation.on_update
        )
        for relation in relations
    ]


def _convert_orm_indexes(indexes) -> List[UnifiedIndex]:
    return [
        UnifiedIndex(name=index.name, columns=tuple(index.columns), unique=index.unique)
        for index in indexes
    ]


def _convert_prisma(schema: PrismaSchema) -> UnifiedSchema:
    tables = []
    for model in schema.tables:
        columns = [
            {
                'name': column.name,
                'type': f"{column.type}[]" if column.is_list else column.type,
                'nullable': column.is_optional,
                'default': column.default_value,
                'description': column.description,
            }
            for column in model.columns
        ]
        tables.append(_build_table(
            model.name,
            columns,
            _convert_orm_indexes(model.indexes),
            _convert_orm_relations(model.relations),
            model.primary_key,
            model.description
        ))

    return UnifiedSchema(
        tables=tuple(tables),
        database_type=DatabaseType.PRISMA.value,
        schema_name=schema.datasource.provider,
        source=schema.schema_path
    )


def _convert_drizzle(schema: DrizzleSchema) -> UnifiedSchema:
    tables = []
    for table in schema.tables:
        columns = [
            {
                'name': column.name,
                'type': column.type,
                'nullable': column.is_optional,
                'default': column.default_value,
            }
            for column in table.columns
        ]
        tables.append(_build_table(
            table.name,
            columns,
            _convert_orm_indexes(table.indexes),
            _convert_orm_relations(table.relations),
            table.primary_key,
            table.description
        ))

    return UnifiedSchema(
        tables=tuple(tables),
        database_type=DatabaseType.DRIZZLE.value,
        schema_name=schema.dialect,
        source=schema.schema_path
    )


# Document stores

def _field_type(field: FieldInfo) -> str:
    """Render ``Array<T>`` and ``Mixed(Array|Array<T>)`` as ``T[]``; other labels pass through"""
    if not field.is_array:
        return field.type
    mixed = _MIXED_PATTERN.match(field.type)
    tags = mixed.group(1).split('|') if mixed else [field.type]
    element_tags = [tag for tag in tags if tag != 'Array']
    if len(element_tags) == 1 and element_tags[0].startswith('Array<') and element_tags[0].endswith('>'):
        return f"{element_tags[0][len('Array<'):-1]}[]"
    return field.type


def _sample_description(field: FieldInfo) -> Optional[str]:
    if not field.sample_values:
        return None
    return f"Sample: {json.dumps(field.sample_values[0], default=str)}"


def _convert_collection(collection: CollectionInfo, primary_key: str, description: str,
                        indexes: List[UnifiedIndex]) -> UnifiedTable:
    columns = [
        {
            'name': field.name,
            'type': _field_type(field),
            'nullable': field.nullable,
            'description': _sample_description(field),
        }
        for field in collection.fields
    ]
    reference_columns = {field.name for field in collection.fields if field.is_reference}
    return _build_table(
        collection.name,
        columns,
        indexes,
        (),
        (primary_key,),
        description,
        reference_columns=reference_columns
    )


def _convert_mongodb(schema: MongoDBSchema) -> UnifiedSchema:
    tables = []
    for collection in schema.collections:
        indexes = [
            UnifiedIndex(
                name=index.name,
                columns=tuple(index.keys),
                unique=index.unique,
                is_primary_key=index.name == '_id_'
            )
            for index in collection.indexes
        ]
        description = (
            f"MongoDB collection ({collection.document_count} documents, "
            f"sampled {collection.sample_size})"
        )
        tables.append(_convert_collection(collection, '_id', description, indexes))

    return UnifiedSchema(
        tables=tuple(tables),
        database_type=DatabaseType.MONGODB.value,
        schema_name=schema.database_name,
        source=schema.source or f"mongodb://{schema.database_name}"
    )


def _convert_firestore(schema: FirestoreSchema) -> UnifiedSchema:
    tables = []
    for collection in schema.collections:
        indexes = [UnifiedIndex(name=FIRESTORE_KEY_INDEX, columns=('id',), unique=True, is_primary_key=True)]
        description = f"Firestore collection ({collection.document_count} documents sampled)"
        tables.append(_convert_collection(collection, 'id', description, indexes))

    return UnifiedSchema(
        tables=tuple(tables),
        database_type=DatabaseType.FIREBASE.value,
        schema_name=schema.project_id,
        source=schema.source or f"firebase://{schema.project_id}"
    )


class SchemaConverter:
    """Dispatch source-specific schemas to their conversion routine"""

    _REGISTRY = {
        DatabaseType.POSTGRESQL: _convert_postgresql,
        DatabaseType.MYSQL: _convert_mysql,
        DatabaseType.SQLITE: _convert_sqlite,
        DatabaseType.PRISMA: _convert_prisma,
        DatabaseType.DRIZZLE: _convert_drizzle,
        DatabaseType.MONGODB: _convert_mongodb,
        DatabaseType.FIREBASE: _convert_firestore,
    }

    @classmethod
    def convert(cls, source: Any) -> UnifiedSchema:
        """Convert any adapter result into a UnifiedSchema"""
        tag = getattr(source, 'database_type', None)
        try:
            db_type = tag if isinstance(tag, DatabaseType) else DatabaseType(tag)
        except ValueError:
            raise UnsupportedSourceError(f"Unsupported database type: {tag}") from None

        converter = cls._REGISTRY.get(db_type)
        if converter is None:
            raise UnsupportedSourceError(f"No converter registered for database type: {db_type.value}")
        return converter(source)

    @classmethod
    def supported_types(cls) -> List[str]:
        return [db_type.value for db_type in cls._REGISTRY]
