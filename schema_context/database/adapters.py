"""
Schema adapters for relational databases
"""

import os
from abc import ABC, abstractmethod
from typing import Dict, List, Tuple, Optional, Any, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import SourceConnectionError
from ..utils.connection import sanitize_connection_string
from ..utils.logger import get_logger
from .models import (
    DatabaseType,
    ForeignKey,
    MySQLSchema,
    PostgresSchema,
    RelationalColumn,
    RelationalIndex,
    RelationalTable,
    SQLiteSchema,
)

logger = get_logger(__name__)


class SchemaAdapter(ABC):
    """Abstract base class for schema adapters"""

    database_type: DatabaseType

    @abstractmethod
    def extract(self) -> Any:
        """Extract the source-specific schema"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release held resources; safe to call more than once"""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def primary_key_from_indexes(indexes: List[RelationalIndex]) -> List[str]:
    """Ordered union of the columns covered by primary-key indexes"""
    primary_key: List[str] = []
    for index in indexes:
        if not index.is_primary_key:
            continue
        for column in index.columns:
            if column not in primary_key:
                primary_key.append(column)
    return primary_key


class RelationalAdapter(SchemaAdapter):
    """Catalog-query based adapter backed by a SQLAlchemy engine"""

    label = "Database"

    def __init__(self, connection_string: str):
        if not connection_string:
            raise ValueError(f"{self.label} connection string must not be empty")
        self.connection_string = connection_string
        self.engine: Optional[Engine] = None

    def _engine_url(self) -> Union[str, URL]:
        return self.connection_string

    def _connect(self) -> Connection:
        if self.engine is None:
            self.engine = create_engine(self._engine_url())
        try:
            return self.engine.connect()
        except SQLAlchemyError as e:
            raise SourceConnectionError(f"{self.label} connection failed: {e}") from e

    def _query(self, connection: Connection, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        result = connection.execute(text(sql), params or {})
        return [dict(row) for row in result.mappings()]

    def extract(self):
        """Run table, column, index and foreign key phases on one connection"""
        connection = self._connect()
        try:
            tables = []
            for name, details in self._extract_tables(connection):
                columns = self._extract_columns(connection, name)
                indexes = self._extract_indexes(connection, name)
                foreign_keys = self._extract_foreign_keys(connection, name)

                tables.append(RelationalTable(
                    name=name,
                    columns=columns,
                    indexes=indexes,
                    foreign_keys=foreign_keys,
                    primary_key=primary_key_from_indexes(indexes),
                    **details
                ))

            logger.info(f"Extracted {len(tables)} tables from {self.label}")
            return self._build_schema(tables)
        finally:
            connection.close()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None

    @property
    def source(self) -> str:
        return sanitize_connection_string(self.connection_string)

    @abstractmethod
    def _extract_tables(self, connection: Connection) -> List[Tuple[str, Dict[str, Any]]]:
        """Return (table name, extra RelationalTable fields) pairs"""
        pass

    @abstractmethod
    def _extract_columns(self, connection: Connection, table_name: str) -> List[RelationalColumn]:
        pass

    @abstractmethod
    def _extract_indexes(self, connection: Connection, table_name: str) -> List[RelationalIndex]:
        pass

    @abstractmethod
    def _extract_foreign_keys(self, connection: Connection, table_name: str) -> List[ForeignKey]:
        pass

    @abstractmethod
    def _build_schema(self, tables: List[RelationalTable]):
        pass


class PostgreSQLAdapter(RelationalAdapter):
    """PostgreSQL schema adapter"""

    database_type = DatabaseType.POSTGRESQL
    label = "PostgreSQL"

    def __init__(self, connection_string: str, schema_name: str = 'public'):
        super().__init__(connection_string)
        self.schema_name = schema_name or 'public'

    def _engine_url(self) -> Union[str, URL]:
        url = make_url(self.connection_string)
        if url.drivername in ('postgres', 'postgresql'):
            url = url.set(drivername='postgresql+psycopg2')
        return url

    def _extract_tables(self, connection: Connection) -> List[Tuple[str, Dict[str, Any]]]:
        rows = self._query(connection, """
            SELECT t.table_name, obj_description(c.oid, 'pg_class') AS description
            FROM information_schema.tables t
            LEFT JOIN pg_namespace n ON n.nspname = t.table_schema
            LEFT JOIN pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
            WHERE t.table_schema = :schema
              AND t.table_type = 'BASE TABLE'
            ORDER BY t.table_name
        """, {'schema': self.schema_name})
        return [(row['table_name'], {'description': row.get('description')}) for row in rows]

    def _extract_columns(self, connection: Connection, table_name: str) -> List[RelationalColumn]:
        rows = self._query(connection, """
            SELECT
                c.column_name,
                c.data_type,
                c.is_nullable = 'YES' AS is_nullable,
                c.column_default,
                col_description(
                    format('%I.%I', c.table_schema, c.table_name)::regclass::oid,
                    c.ordinal_position
                ) AS description
            FROM information_schema.columns c
            WHERE c.table_schema = :schema AND c.table_name = :table
            ORDER BY c.ordinal_position
        """, {'schema': self.schema_name, 'table': table_name})
        return [
            RelationalColumn(
                name=row['column_name'],
                type=row['data_type'],
                nullable=bool(row['is_nullable']),
                default=row.get('column_default'),
                description=row.get('description')
            )
            for row in rows
        ]

    def _extract_indexes(self, connection: Connection, table_name: str) -> List[RelationalIndex]:
        rows = self._query(connection, """
            SELECT
                i.relname AS index_name,
                array_agg(a.attname::text ORDER BY array_position(ix.indkey::int2[], a.attnum)) AS columns,
                ix.indisunique AS is_unique,
                ix.indisprimary AS is_primary_key
            FROM pg_class t
            JOIN pg_index ix ON t.oid = ix.indrelid
            JOIN pg_class i ON i.oid = ix.indexrelid
            JOIN pg_namespace n ON n.oid = t.relnamespace
            LEFT JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = ANY(ix.indkey)
            WHERE t.relname = :table AND n.nspname = :schema
            GROUP BY i.relname, ix.indisunique, ix.indisprimary
            ORDER BY i.relname
        """, {'schema': self.schema_name, 'table': table_name})
        return [
            RelationalIndex(
                name=row['index_name'],
                columns=[col for col in (row.get('columns') or []) if col],
                unique=bool(row['is_unique']),
                is_primary_key=bool(row['is_primary_key'])
            )
            for row in rows
        ]

    def _extract_foreign_keys(self, connection: Connection, table_name: str) -> List[ForeignKey]:
        rows = self._query(connection, """
            SELECT
                kcu.column_name,
                ccu.table_name AS references_table,
                ccu.column_name AS references_column,
                rc.delete_rule AS on_delete,
                rc.update_rule AS on_update
            FROM information_schema.table_constraints AS tc
            JOIN information_schema.key_column_usage AS kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
            JOIN information_schema.constraint_column_usage AS ccu
                ON ccu.constraint_name = tc.constraint_name
                AND ccu.table_schema = tc.table_schema
            JOIN information_schema.referential_constraints AS rc
                ON tc.constraint_name = rc.constraint_name
                AND tc.table_schema = rc.constraint_schema
            WHERE tc.constraint_type = 'FOREIGN KEY'
                AND tc.table_schema = :schema
                AND tc.table_name = :table
            ORDER BY kcu.ordinal_position
        """, {'schema': self.schema_name, 'table': table_name})
        return [
            ForeignKey(
                column=row['column_name'],
                references_table=row['references_table'],
                references_column=row['references_column'],
                on_delete=row.get('on_delete'),
                on_update=row.get('on_update')
            )
            for row in rows
        ]

    def _build_schema(self, tables: List[RelationalTable]) -> PostgresSchema:
        return PostgresSchema(tables=tables, schema_name=self.schema_name, source=self.source)


class MySQLAdapter(RelationalAdapter):
    """MySQL schema adapter"""

    database_type = DatabaseType.MYSQL
    label = "MySQL"

    def __init__(self, connection_string: str):
        super().__init__(connection_string)
        self.database_name = make_url(connection_string).database or 'database'

    def _engine_url(self) -> Union[str, URL]:
        url = make_url(self.connection_string)
        if url.drivername == 'mysql':
            url = url.set(drivername='mysql+pymysql')
        return url

    def _extract_tables(self, connection: Connection) -> List[Tuple[str, Dict[str, Any]]]:
        rows = self._query(connection, """
            SELECT
                TABLE_NAME AS table_name,
                TABLE_COMMENT AS table_comment,
                ENGINE AS engine,
                AUTO_INCREMENT AS auto_increment
            FROM information_schema.TABLES
            WHERE TABLE_SCHEMA = :schema AND TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_NAME
        """, {'schema': self.database_name})
        tables = []
        for row in rows:
            auto_increment = row.get('auto_increment')
            tables.append((row['table_name'], {
                'description': row.get('table_comment') or None,
                'engine': row.get('engine') or 'InnoDB',
                'auto_increment': str(auto_increment) if auto_increment is not None else None,
            }))
        return tables

    def _extract_columns(self, connection: Connection, table_name: str) -> List[RelationalColumn]:
        rows = self._query(connection, """
            SELECT
                COLUMN_NAME AS column_name,
                COLUMN_TYPE AS column_type,
                IS_NULLABLE AS is_nullable,
                COLUMN_DEFAULT AS column_default,
                EXTRA AS extra,
                COLUMN_COMMENT AS column_comment
            FROM information_schema.COLUMNS
            WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table
            ORDER BY ORDINAL_POSITION
        """, {'schema': self.database_name, 'table': table_name})
        return [
            RelationalColumn(
                name=row['column_name'],
                type=row['column_type'],
                nullable=row['is_nullable'] == 'YES',
                default=row.get('column_default'),
                description=row.get('column_comment') or None,
                extra=row.get('extra') or None
            )
            for row in rows
        ]

    def _extract_indexes(self, connection: Connection, table_name: str) -> List[RelationalIndex]:
        rows = self._query(connection, """
            SELECT
                INDEX_NAME AS index_name,
                NON_UNIQUE AS non_unique,
                INDEX_TYPE AS index_type,
                GROUP_CONCAT(COLUMN_NAME ORDER BY SEQ_IN_INDEX) AS columns
            FROM information_schema.STATISTICS
            WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table
            GROUP BY INDEX_NAME, NON_UNIQUE, INDEX_TYPE
            ORDER BY INDEX_NAME
        """, {'schema': self.database_name, 'table': table_name})
        return [
            RelationalIndex(
                name=row['index_name'],
                columns=[col for col in (row.get('columns') or '').split(',') if col],
                unique=int(row['non_unique']) == 0,
                is_primary_key=row['index_name'] == 'PRIMARY',
                index_type=row.get('index_type')
            )
            for row in rows
        ]

    def _extract_foreign_keys(self, connection: Connection, table_name: str) -> List[ForeignKey]:
        rows = self._query(connection, """
            SELECT
                kcu.COLUMN_NAME AS column_name,
                kcu.REFERENCED_TABLE_NAME AS referenced_table_name,
                kcu.REFERENCED_COLUMN_NAME AS referenced_column_name,
                rc.DELETE_RULE AS delete_rule,
                rc.UPDATE_RULE AS update_rule
            FROM information_schema.KEY_COLUMN_USAGE kcu
            JOIN information_schema.REFERENTIAL_CONSTRAINTS rc
                ON rc.CONSTRAINT_SCHEMA = kcu.TABLE_SCHEMA
                AND rc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
                AND rc.TABLE_NAME = kcu.TABLE_NAME
            WHERE kcu.TABLE_SCHEMA = :schema
                AND kcu.TABLE_NAME = :table
                AND kcu.REFERENCED_TABLE_NAME IS NOT NULL
            ORDER BY kcu.ORDINAL_POSITION
        """, {'schema': self.database_name, 'table': table_name})
        return [
            ForeignKey(
                column=row['column_name'],
                references_table=row['referenced_table_name'],
                references_column=row['referenced_column_name'],
                on_delete=row.get('delete_rule'),
                on_update=row.get('update_rule')
            )
            for row in rows
        ]

    def _build_schema(self, tables: List[RelationalTable]) -> MySQLSchema:
        return MySQLSchema(tables=tables, database_name=self.database_name, source=self.source)


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SQLiteAdapter(RelationalAdapter):
    """SQLite schema adapter"""

    database_type = DatabaseType.SQLITE
    label = "SQLite"

    def __init__(self, connection_string: str):
        super().__init__(connection_string)
        self.database_path = self._database_path(connection_string)

    @staticmethod
    def _database_path(connection_string: str) -> str:
        if connection_string.startswith('sqlite'):
            return make_url(connection_string).database or ':memory:'
        if connection_string.startswith('file:'):
            return connection_string[len('file:'):]
        return connection_string

    def _engine_url(self) -> Union[str, URL]:
        if self.connection_string.startswith('sqlite'):
            return self.connection_string
        return f"sqlite:///{self.database_path}"

    def _connect(self) -> Connection:
        # the database file must already exist
        if self.database_path != ':memory:' and not os.path.isfile(self.database_path):
            raise SourceConnectionError(f"SQLite database not found at: {self.database_path}")
        return super()._connect()

    def _extract_tables(self, connection: Connection) -> List[Tuple[str, Dict[str, Any]]]:
        rows = self._query(connection, """
            SELECT name FROM sqlite_master
            WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
            ORDER BY name
        """)
        return [(row['name'], {}) for row in rows]

    def _table_info(self, connection: Connection, table_name: str) -> List[Dict[str, Any]]:
        return self._query(connection, f"PRAGMA table_info({_quote_identifier(table_name)})")

    def _extract_columns(self, connection: Connection, table_name: str) -> List[RelationalColumn]:
        return [
            RelationalColumn(
                name=row['name'],
                type=row['type'] or '',
                nullable=not (row['notnull'] or row['pk']),
                default=None if row['dflt_value'] is None else str(row['dflt_value'])
            )
            for row in self._table_info(connection, table_name)
        ]

    def _extract_indexes(self, connection: Connection, table_name: str) -> List[RelationalIndex]:
        indexes = []
        for row in self._query(connection, f"PRAGMA index_list({_quote_identifier(table_name)})"):
            info = self._query(connection, f"PRAGMA index_info({_quote_identifier(row['name'])})")
            info.sort(key=lambda item: item['seqno'])
            indexes.append(RelationalIndex(
                name=row['name'],
                columns=[item['name'] for item in info if item['name']],
                unique=bool(row['unique']),
                is_primary_key=row.get('origin') == 'pk'
            ))

        if not any(index.is_primary_key for index in indexes):
            # rowid-alias primary keys have no entry in index_list
            pk_rows = sorted(
                (row for row in self._table_info(connection, table_name) if row['pk']),
                key=lambda row: row['pk']
            )
            if pk_rows:
                indexes.append(RelationalIndex(
                    name=f"pk_{table_name}",
                    columns=[row['name'] for row in pk_rows],
                    unique=True,
                    is_primary_key=True
                ))
        return indexes

    def _extract_foreign_keys(self, connection: Connection, table_name: str) -> List[ForeignKey]:
        foreign_keys = []
        rows = self._query(connection, f"PRAGMA foreign_key_list({_quote_identifier(table_name)})")
        for row in sorted(rows, key=lambda item: (item['id'], item['seq'])):
            references_column = row['to']
            if references_column is None:
                referenced_pk = [r['name'] for r in self._table_info(connection, row['table']) if r['pk']]
                references_column = referenced_pk[0] if referenced_pk else ''
            foreign_keys.append(ForeignKey(
                column=row['from'],
                references_table=row['table'],
                references_column=references_column,
                on_delete=row.get('on_delete'),
                on_update=row.get('on_update')
            ))
        return foreign_keys

    def _build_schema(self, tables: List[RelationalTable]) -> SQLiteSchema:
        return SQLiteSchema(tables=tables, database_path=self.database_path, source=self.database_path)
