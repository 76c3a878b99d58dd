"""
Utility functions and helper classes
"""

from .logger import get_logger
from .connection import sanitize_connection_string
from .inference import DocumentSchemaInferrer, MongoDBSchemaInferrer, FirestoreSchemaInferrer
from .schema_analyzer import SchemaAnalyzer
from .validator import ContextValidator, ValidationResult

__all__ = [
    'get_logger',
    'sanitize_connection_string',
    'DocumentSchemaInferrer',
    'MongoDBSchemaInferrer',
    'FirestoreSchemaInferrer',
    'SchemaAnalyzer',
    'ContextValidator',
    'ValidationResult'
]
