"""
Schema adapters, source models and the unified schema
"""

from .models import DatabaseType
from .unified import (
    Cardinality,
    UnifiedColumn,
    UnifiedIndex,
    UnifiedRelation,
    UnifiedSchema,
    UnifiedTable,
)
from .adapters import SchemaAdapter, PostgreSQLAdapter, MySQLAdapter, SQLiteAdapter
from .documents import MongoDBAdapter, FirestoreAdapter
from .prisma import PrismaAdapter
from .drizzle import DrizzleAdapter
from .converter import SchemaConverter
from .factory import DatabaseFactory, extract_unified_schema

__all__ = [
    'DatabaseType',
    'Cardinality',
    'UnifiedColumn',
    'UnifiedIndex',
    'UnifiedRelation',
    'UnifiedSchema',
    'UnifiedTable',
    'SchemaAdapter',
    'PostgreSQLAdapter',
    'MySQLAdapter',
    'SQLiteAdapter',
    'MongoDBAdapter',
    'FirestoreAdapter',
    'PrismaAdapter',
    'DrizzleAdapter',
    'SchemaConverter',
    'DatabaseFactory',
    'extract_unified_schema'
]
