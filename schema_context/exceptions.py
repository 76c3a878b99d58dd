"""
Exception types raised while extracting and normalizing schemas
"""

from typing import Optional


class SchemaContextError(Exception):
    """Base class for all schema extraction errors"""
    pass


class SourceConnectionError(SchemaContextError, ConnectionError):
    """Raised when a database or document store cannot be reached"""
    pass


class MissingCredentialsError(SchemaContextError, ValueError):
    """Raised when a source needs credentials that were not supplied"""
    pass


class SchemaFileNotFoundError(SchemaContextError, FileNotFoundError):
    """Raised when an ORM schema file does not exist"""

    def __init__(self, kind: str, path: str):
        self.path = path
        super().__init__(f"{kind} schema not found at: {path}")


class SchemaParseError(SchemaContextError, ValueError):
    """Raised by strict ORM parsers for a declaration they cannot read"""

    def __init__(self, message: str, declaration: Optional[str] = None):
        self.declaration = declaration
        if declaration:
            message = f"{message}: {declaration.strip()!r}"
        super().__init__(message)


class UnsupportedSourceError(SchemaContextError, ValueError):
    """Raised for a source type tag no adapter or converter handles"""
    pass
