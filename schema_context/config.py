"""
Configuration loading and source detection
"""

import os
import json
from dataclasses import dataclass, fields
from typing import Optional, Dict, Any

from dotenv import load_dotenv

from .database.drizzle import DEFAULT_SCHEMA_PATH as DRIZZLE_SCHEMA_PATH
from .database.prisma import DEFAULT_SCHEMA_PATH as PRISMA_SCHEMA_PATH
from .utils.connection import sanitize_connection_string
from .utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = os.path.join('.ai', 'cohere-config.json')
DRIZZLE_CONFIG_FILE = 'drizzle.config.ts'

# Keys of the JSON config file mapped onto ExtractorConfig fields
_FILE_KEYS = {
    'databaseType': 'database_type',
    'databaseUrl': 'connection_string',
    'outputDir': 'output_dir',
    'schema': 'schema_name',
    'format': 'output_format',
    'sampleSize': 'sample_size',
    'projectId': 'project_id',
    'serviceAccountPath': 'service_account_path',
    'useDefaultCredentials': 'use_default_credentials',
    'schemaPath': 'schema_path',
    'strict': 'strict',
    'dialect': 'dialect',
}


@dataclass
class ExtractorConfig:
    """Explicit inputs for building and running an adapter"""
    database_type: Optional[str] = None
    connection_string: Optional[str] = None
    schema_path: Optional[str] = None
    schema_name: str = 'public'
    sample_size: int = 100
    project_id: Optional[str] = None
    service_account_path: Optional[str] = None
    use_default_credentials: bool = False
    strict: bool = False
    dialect: Optional[str] = None
    output_dir: str = '.ai'
    output_format: str = 'markdown'

    def to_dict(self) -> Dict[str, Any]:
        """Config values safe for logging"""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['connection_string'] = sanitize_connection_string(self.connection_string) or None
        return data


def detect_database_type(connection_string: Optional[str] = None, base_dir: str = '.',
                         project_id: Optional[str] = None,
                         credentials_path: Optional[str] = None) -> Optional[str]:
    """Guess the source kind from project files and the connection string"""
    if os.path.isfile(os.path.join(base_dir, PRISMA_SCHEMA_PATH)):
        return 'prisma'
    if (os.path.isfile(os.path.join(base_dir, DRIZZLE_CONFIG_FILE))
            or os.path.isfile(os.path.join(base_dir, DRIZZLE_SCHEMA_PATH))):
        return 'drizzle'
    if connection_string and connection_string.startswith(('mongodb://', 'mongodb+srv://')):
        return 'mongodb'
    if project_id or credentials_path:
        return 'firebase'
    if connection_string:
        if connection_string.startswith('mysql'):
            return 'mysql'
        if (connection_string.startswith(('file:', 'sqlite:'))
                or connection_string.endswith(('.db', '.sqlite', '.sqlite3'))):
            return 'sqlite'
        return 'postgresql'
    return None


def _read_config_file(config_path: str) -> Dict[str, Any]:
    if not os.path.isfile(config_path):
        return {}
    with open(config_path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a JSON object")
    logger.debug(f"Loaded configuration from {config_path}")
    return data


def load_config(config_path: str = DEFAULT_CONFIG_PATH, overrides: Optional[Dict[str, Any]] = None,
                base_dir: str = '.') -> ExtractorConfig:
    """Build an ExtractorConfig from the config file, environment and explicit overrides"""
    load_dotenv()

    file_values = {
        _FILE_KEYS[key]: value
        for key, value in _read_config_file(config_path).items()
        if key in _FILE_KEYS and value not in (None, '')
    }

    config = ExtractorConfig(**file_values)

    if not config.connection_string:
        config.connection_string = os.getenv('DATABASE_URL') or None
    if not config.project_id:
        config.project_id = os.getenv('FIREBASE_PROJECT_ID') or None
    if not config.service_account_path:
        config.service_account_path = os.getenv('GOOGLE_APPLICATION_CREDENTIALS') or None
    if 'sample_size' not in file_values and os.getenv('SCHEMA_SAMPLE_SIZE'):
        config.sample_size = int(os.getenv('SCHEMA_SAMPLE_SIZE'))

    known_fields = {f.name for f in fields(ExtractorConfig)}
    for key, value in (overrides or {}).items():
        if key not in known_fields:
            raise ValueError(f"Unknown configuration option: {key}")
        if value is not None:
            setattr(config, key, value)

    config.sample_size = int(config.sample_size)

    if not config.database_type:
        config.database_type = detect_database_type(
            config.connection_string,
            base_dir,
            config.project_id,
            config.service_account_path
        )
        if config.database_type:
            logger.info(f"Detected source type: {config.database_type}")

    if not config.schema_path:
        if config.database_type == 'prisma':
            config.schema_path = os.path.join(base_dir, PRISMA_SCHEMA_PATH)
        elif config.database_type == 'drizzle':
            config.schema_path = os.path.join(base_dir, DRIZZLE_SCHEMA_PATH)

    return config
