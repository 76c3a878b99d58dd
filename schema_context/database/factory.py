"""
Database factory for creating appropriate schema adapters
"""

from typing import Dict, Any, List, Union

from ..exceptions import UnsupportedSourceError
from ..utils.logger import get_logger
from .adapters import SchemaAdapter, PostgreSQLAdapter, MySQLAdapter, SQLiteAdapter
from .converter import SchemaConverter
from .documents import DEFAULT_SAMPLE_SIZE, MongoDBAdapter, FirestoreAdapter
from .drizzle import DrizzleAdapter, DEFAULT_SCHEMA_PATH as DRIZZLE_SCHEMA_PATH
from .models import DatabaseType
from .prisma import PrismaAdapter, DEFAULT_SCHEMA_PATH as PRISMA_SCHEMA_PATH
from .unified import UnifiedSchema

logger = get_logger(__name__)

_ALIASES = {
    'postgres': DatabaseType.POSTGRESQL,
    'firestore': DatabaseType.FIREBASE,
}


def _option(config: Any, key: str, default: Any = None) -> Any:
    if isinstance(config, dict):
        value = config.get(key)
    else:
        value = getattr(config, key, None)
    return default if value is None else value


class DatabaseFactory:
    """Factory class to create the schema adapter for a source type"""

    @staticmethod
    def resolve_type(db_type: Union[str, DatabaseType]) -> DatabaseType:
        """Map a type tag or alias onto a DatabaseType"""
        if isinstance(db_type, DatabaseType):
            return db_type
        key = (db_type or '').strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]
        try:
            return DatabaseType(key)
        except ValueError:
            raise UnsupportedSourceError(f"Unsupported database type: {db_type}") from None

    @staticmethod
    def create_adapter(db_type: Union[str, DatabaseType], config: Any) -> SchemaAdapter:
        """Create schema adapter based on type; config is a dict or an ExtractorConfig"""
        resolved = DatabaseFactory.resolve_type(db_type)
        connection_string = _option(config, 'connection_string')
        sample_size = _option(config, 'sample_size', DEFAULT_SAMPLE_SIZE)
        strict = _option(config, 'strict', False)

        if resolved == DatabaseType.POSTGRESQL:
            return PostgreSQLAdapter(connection_string, _option(config, 'schema_name', 'public'))
        elif resolved == DatabaseType.MYSQL:
            return MySQLAdapter(connection_string)
        elif resolved == DatabaseType.SQLITE:
            return SQLiteAdapter(connection_string)
        elif resolved == DatabaseType.MONGODB:
            return MongoDBAdapter(connection_string, sample_size)
        elif resolved == DatabaseType.FIREBASE:
            return FirestoreAdapter(
                _option(config, 'project_id'),
                _option(config, 'service_account_path'),
                _option(config, 'use_default_credentials', False),
                sample_size
            )
        elif resolved == DatabaseType.PRISMA:
            return PrismaAdapter(_option(config, 'schema_path', PRISMA_SCHEMA_PATH), strict)
        elif resolved == DatabaseType.DRIZZLE:
            return DrizzleAdapter(
                _option(config, 'schema_path', DRIZZLE_SCHEMA_PATH),
                strict,
                _option(config, 'dialect')
            )
        raise UnsupportedSourceError(f"Unsupported database type: {db_type}")

    @staticmethod
    def get_supported_types() -> List[str]:
        """Get list of supported database types"""
        return [db_type.value for db_type in DatabaseType]

    @staticmethod
    def get_required_config(db_type: Union[str, DatabaseType]) -> List[str]:
        """Get required configuration keys for database type"""
        configs: Dict[DatabaseType, List[str]] = {
            DatabaseType.POSTGRESQL: ['connection_string'],
            DatabaseType.MYSQL: ['connection_string'],
            DatabaseType.SQLITE: ['connection_string'],
            DatabaseType.MONGODB: ['connection_string'],
            DatabaseType.FIREBASE: ['project_id', 'service_account_path'],
            DatabaseType.PRISMA: ['schema_path'],
            DatabaseType.DRIZZLE: ['schema_path'],
        }
        try:
            return configs[DatabaseFactory.resolve_type(db_type)]
        except UnsupportedSourceError:
            return []


def extract_unified_schema(config: Any) -> UnifiedSchema:
    """Create the adapter for config, extract, convert and always release the adapter"""
    db_type = _option(config, 'database_type')
    if not db_type:
        raise UnsupportedSourceError("No database type configured or detected")

    adapter = DatabaseFactory.create_adapter(db_type, config)
    try:
        source_schema = adapter.extract()
    finally:
        adapter.close()

    unified = SchemaConverter.convert(source_schema)
    logger.info(f"Unified schema has {len(unified.tables)} tables ({unified.database_type})")
    return unified
