"""
Schema extraction and normalization for AI context generation
"""

from .database import DatabaseFactory, SchemaConverter, UnifiedSchema, extract_unified_schema
from .config import ExtractorConfig, load_config

__version__ = "0.1.0"

__all__ = [
    'DatabaseFactory',
    'SchemaConverter',
    'UnifiedSchema',
    'extract_unified_schema',
    'ExtractorConfig',
    'load_config'
]
