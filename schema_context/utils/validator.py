"""
Validation of generated context documents against a unified schema
"""

import os
import re
from dataclasses import dataclass, field
from typing import List, Optional, Set

from ..database.unified import UnifiedSchema
from .logger import get_logger

logger = get_logger(__name__)

_TABLE_HEADING = re.compile(r'^###\s+([A-Za-z_][A-Za-z0-9_]*)', re.MULTILINE)


@dataclass
class ValidationResult:
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    documented_tables: Set[str] = field(default_factory=set)


class ContextValidator:
    """Check that a context document still matches the live schema"""

    def __init__(self, strict: bool = False):
        self.strict = strict

    @staticmethod
    def documented_tables(content: str) -> Set[str]:
        """Table names documented as ``### name`` headings"""
        return set(_TABLE_HEADING.findall(content))

    def validate(self, schema: UnifiedSchema, context_path: str) -> ValidationResult:
        result = ValidationResult()

        if not os.path.isfile(context_path):
            result.valid = False
            result.errors.append(f"Generated context file not found: {context_path}")
            logger.error(result.errors[-1])
            return result

        with open(context_path, 'r', encoding='utf-8') as f:
            result.documented_tables = self.documented_tables(f.read())

        return self.compare(schema, result.documented_tables, result)

    def compare(self, schema: UnifiedSchema, documented: Set[str], result: Optional[ValidationResult] = None) -> ValidationResult:
        result = result or ValidationResult(documented_tables=set(documented))
        current = {table.name for table in schema.tables}

        for table in schema.tables:
            if table.name not in documented:
                result.warnings.append(f"Table '{table.name}' exists in schema but not in generated context")

        for table_name in sorted(documented - current):
            result.warnings.append(f"Table '{table_name}' in generated context but not in current schema")

        for table in schema.tables:
            if table.name in documented and not table.columns:
                result.warnings.append(f"Table '{table.name}' has no columns")

        if result.errors or (self.strict and result.warnings):
            result.valid = False

        for warning in result.warnings:
            logger.warning(warning)
        return result
