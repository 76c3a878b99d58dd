"""
Drizzle ORM schema file adapter
"""

import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..exceptions import SchemaFileNotFoundError, SchemaParseError
from ..utils.logger import get_logger
from .adapters import SchemaAdapter
from .models import (
    DatabaseType,
    DrizzleColumn,
    DrizzleSchema,
    DrizzleTable,
    OrmIndex,
    OrmRelation,
)
from .schema_text import call_arguments, find_closing, split_top_level, strip_comments, unquote

logger = get_logger(__name__)

DEFAULT_SCHEMA_PATH = 'src/db/schema.ts'

DIALECTS = ('postgresql', 'mysql', 'sqlite')

_TABLE_PATTERN = re.compile(r'(?:export\s+)?const\s+(\w+)\s*=\s*(pgTable|mysqlTable|sqliteTable)\s*\(')
_RELATIONS_PATTERN = re.compile(r'(?:export\s+)?const\s+(\w+)\s*=\s*relations\s*\(')
_ENTRY_PATTERN = re.compile(r'^(\w+|"[^"]+"|\'[^\']+\')\s*:\s*(.+)$', re.DOTALL)
_BUILDER_PATTERN = re.compile(r'^(?:\w+\.)?(\w+)\s*\(')
_REFERENCE_PATTERN = re.compile(r'=>\s*(\w+)\.(\w+)')
_INDEX_PATTERN = re.compile(r'(?<![\w.])(uniqueIndex|index|unique)\s*\(([^)]*)\)\s*\.on\s*\(([^)]*)\)')


def _member_names(text: str) -> List[str]:
    """Column keys from ``t.a, t.b`` or ``[t.a, t.b]``"""
    text = text.strip()
    if text.startswith('[') and text.endswith(']'):
        text = text[1:-1]
    return [item.split('.')[-1].strip() for item in split_top_level(text) if item.strip()]


def _rule(options: str, key: str) -> Optional[str]:
    match = re.search(r'\b' + key + r'\s*:\s*["\']([\w ]+)["\']', options)
    return match.group(1).upper() if match else None


@dataclass
class _RelationDeclaration:
    """Entry of a ``relations(table, ({ one, many }) => ({...}))`` block"""
    key: str
    kind: str
    target: str
    fields: List[str] = field(default_factory=list)
    references: List[str] = field(default_factory=list)
    relation_name: Optional[str] = None


class DrizzleAdapter(SchemaAdapter):
    """Two-pass parser for Drizzle TypeScript schema files"""

    database_type = DatabaseType.DRIZZLE

    def __init__(self, schema_path: str = DEFAULT_SCHEMA_PATH, strict: bool = False,
                 dialect: Optional[str] = None):
        if dialect and dialect not in DIALECTS:
            raise ValueError(f"Unsupported Drizzle dialect: {dialect}")
        self.schema_path = schema_path or DEFAULT_SCHEMA_PATH
        self.strict = strict
        self.dialect = dialect or None

    def extract(self) -> DrizzleSchema:
        """Read and parse the schema file"""
        if not os.path.isfile(self.schema_path):
            raise SchemaFileNotFoundError('Drizzle', self.schema_path)

        with open(self.schema_path, 'r', encoding='utf-8') as f:
            content = f.read()

        schema = self.parse(content)
        logger.info(f"Parsed {len(schema.tables)} Drizzle tables from {self.schema_path}")
        return schema

    def close(self) -> None:
        pass

    def parse(self, content: str) -> DrizzleSchema:
        content = strip_comments(content)
        tables = self._parse_tables(content)
        self._resolve_relations(tables, self._parse_relation_blocks(content))
        return DrizzleSchema(tables=tables, dialect=self.dialect or self.detect_dialect(content),
                             schema_path=self.schema_path)

    @staticmethod
    def detect_dialect(content: str) -> str:
        if 'pgTable' in content or 'pgEnum' in content:
            return 'postgresql'
        if 'mysqlTable' in content or 'mysqlEnum' in content:
            return 'mysql'
        if 'sqliteTable' in content:
            return 'sqlite'
        return 'postgresql'

    def _skip(self, message: str, declaration: str):
        if self.strict:
            raise SchemaParseError(message, declaration)
        logger.debug(f"Skipping {message}: {declaration.strip()!r}")

    @staticmethod
    def _call_arguments_at(content: str, match: re.Match) -> Optional[List[str]]:
        open_paren = match.end() - 1
        close_paren = find_closing(content, open_paren)
        if close_paren is None:
            return None
        return split_top_level(content[open_paren + 1:close_paren])

    # Pass 1: tables and columns

    def _parse_tables(self, content: str) -> List[DrizzleTable]:
        tables = []
        for match in _TABLE_PATTERN.finditer(content):
            args = self._call_arguments_at(content, match)
            if not args or len(args) < 2 or not args[1].startswith('{'):
                self._skip(f"malformed table {match.group(1)}", content[match.start():match.end() + 80])
                continue
            table = self._parse_table(match.group(1), unquote(args[0]), args[1], args[2] if len(args) > 2 else None)
            tables.append(table)
        return tables

    def _parse_table(self, name: str, db_name: str, columns_body: str, extras: Optional[str]) -> DrizzleTable:
        table = DrizzleTable(name=name, columns=[], db_name=db_name)

        for entry in split_top_level(columns_body.strip()[1:-1]):
            column = self._parse_column(entry)
            if column is None:
                self._skip(f"malformed column in table {name}", entry)
                continue

            table.columns.append(column)
            if column.is_primary_key:
                table.primary_key.append(column.name)
            if column.is_unique:
                table.indexes.append(OrmIndex(
                    name=f"{db_name}_{column.db_name}_unique",
                    columns=[column.name],
                    unique=True
                ))

        if extras:
            self._parse_extras(table, extras)
        return table

    def _parse_column(self, entry: str) -> Optional[DrizzleColumn]:
        entry_match = _ENTRY_PATTERN.match(entry.strip())
        if not entry_match:
            return None
        key = unquote(entry_match.group(1))
        definition = entry_match.group(2).strip()

        builder_match = _BUILDER_PATTERN.match(definition)
        if not builder_match:
            return None
        close_paren = find_closing(definition, builder_match.end() - 1)
        if close_paren is None:
            return None

        builder_args = split_top_level(definition[builder_match.end():close_paren])
        chain = definition[close_paren + 1:]

        db_name = key
        if builder_args and builder_args[0][:1] in ('"', "'", '`'):
            db_name = unquote(builder_args[0])

        is_primary_key = '.primaryKey()' in chain
        column = DrizzleColumn(
            name=key,
            type=builder_match.group(1),
            db_name=db_name,
            is_optional=not ('.notNull()' in chain or is_primary_key),
            is_unique=re.search(r'\.unique\s*\(', chain) is not None,
            is_primary_key=is_primary_key
        )

        default_args = call_arguments(chain, 'default')
        if default_args is not None:
            column.is_default = True
            column.default_value = default_args.strip() or None
        elif '.defaultNow()' in chain:
            column.is_default = True
            column.default_value = 'now()'
        elif '.defaultRandom()' in chain:
            column.is_default = True
            column.default_value = 'gen_random_uuid()'

        reference_args = call_arguments(chain, 'references')
        if reference_args is not None:
            reference = _REFERENCE_PATTERN.search(reference_args)
            if reference is None:
                return None
            column.is_relation = True
            column.relation_name = reference.group(1)
            column.references_column = reference.group(2)
            column.on_delete = _rule(reference_args, 'onDelete')
            column.on_update = _rule(reference_args, 'onUpdate')

        return column

    def _parse_extras(self, table: DrizzleTable, extras: str):
        """Indexes and composite keys from the third table argument"""
        for kind, name_args, on_args in _INDEX_PATTERN.findall(extras):
            columns = _member_names(on_args)
            if not columns:
                continue
            unique = kind != 'index'
            index_name = unquote(name_args) if name_args.strip() else f"{table.db_name}_{'_'.join(columns)}_idx"
            table.indexes.append(OrmIndex(name=index_name, columns=columns, unique=unique))
            if kind == 'unique':
                table.unique_constraints.append(columns)

        primary_key_args = call_arguments(extras, 'primaryKey')
        if primary_key_args is not None:
            columns_match = re.search(r'columns\s*:\s*(\[[^\]]*\])', primary_key_args)
            columns = _member_names(columns_match.group(1) if columns_match else primary_key_args)
            if columns:
                table.primary_key = columns
                for column in table.columns:
                    if column.name in columns:
                        column.is_primary_key = True
                        column.is_optional = False

    # Pass 2: relations

    def _parse_relation_blocks(self, content: str) -> Dict[str, List[_RelationDeclaration]]:
        declarations: Dict[str, List[_RelationDeclaration]] = {}

        for match in _RELATIONS_PATTERN.finditer(content):
            args = self._call_arguments_at(content, match)
            if not args or len(args) < 2 or '=>' not in args[1]:
                self._skip(f"malformed relations block {match.group(1)}", content[match.start():match.end() + 80])
                continue

            callback = args[1]
            open_brace = callback.find('{', callback.index('=>'))
            close_brace = find_closing(callback, open_brace) if open_brace != -1 else None
            if close_brace is None:
                self._skip(f"malformed relations block {match.group(1)}", callback)
                continue

            table_name = args[0].strip()
            for entry in split_top_level(callback[open_brace + 1:close_brace]):
                declaration = self._parse_relation_entry(entry)
                if declaration is None:
                    self._skip(f"malformed relation in {match.group(1)}", entry)
                    continue
                declarations.setdefault(table_name, []).append(declaration)

        return declarations

    @staticmethod
    def _parse_relation_entry(entry: str) -> Optional[_RelationDeclaration]:
        match = re.match(r'^(\w+)\s*:\s*(one|many)\s*\(', entry.strip())
        if not match:
            return None
        args = call_arguments(entry.strip()[match.start(2):], match.group(2))
        if args is None:
            return None
        parts = split_top_level(args)
        if not parts:
            return None

        declaration = _RelationDeclaration(key=match.group(1), kind=match.group(2), target=parts[0].strip())
        if len(parts) > 1:
            options = parts[1]
            fields_match = re.search(r'fields\s*:\s*(\[[^\]]*\])', options)
            references_match = re.search(r'references\s*:\s*(\[[^\]]*\])', options)
            name_match = re.search(r'relationName\s*:\s*["\']([^"\']+)["\']', options)
            if fields_match:
                declaration.fields = _member_names(fields_match.group(1))
            if references_match:
                declaration.references = _member_names(references_match.group(1))
            if name_match:
                declaration.relation_name = name_match.group(1)
        return declaration

    def _resolve_relations(self, tables: List[DrizzleTable], declarations: Dict[str, List[_RelationDeclaration]]):
        table_map = {table.name: table for table in tables}

        for table in tables:
            for column in table.columns:
                if not column.is_relation:
                    continue
                if column.relation_name not in table_map:
                    if self.strict:
                        raise SchemaParseError(
                            f"Column {table.name}.{column.name} references unknown table {column.relation_name}"
                        )
                    logger.debug(f"Skipping reference {table.name}.{column.name}: unknown table {column.relation_name}")
                    continue
                table.relations.append(OrmRelation(
                    name=f"{table.name}_{column.name}_fk",
                    from_table=table.name,
                    from_fields=[column.name],
                    to_table=column.relation_name,
                    to_fields=[column.references_column],
                    type='many-to-one',
                    on_delete=column.on_delete,
                    on_update=column.on_update
                ))

        for table_name, table_declarations in declarations.items():
            table = table_map.get(table_name)
            if table is None:
                if self.strict:
                    raise SchemaParseError(f"relations() declared for unknown table {table_name}")
                logger.debug(f"Skipping relations for unknown table {table_name}")
                continue

            for declaration in table_declarations:
                related = table_map.get(declaration.target)
                if related is None:
                    if self.strict:
                        raise SchemaParseError(
                            f"Relation {table_name}.{declaration.key} targets unknown table {declaration.target}"
                        )
                    logger.debug(f"Skipping relation {table_name}.{declaration.key}: unknown table {declaration.target}")
                    continue
                self._add_declared_relation(table, related, declaration, declarations.get(related.name, []))

    @staticmethod
    def _add_declared_relation(table: DrizzleTable, related: DrizzleTable,
                               declaration: _RelationDeclaration, related_declarations: List[_RelationDeclaration]):
        back = None
        for candidate in related_declarations:
            if candidate is declaration or candidate.target != table.name:
                continue
            if declaration.relation_name and candidate.relation_name != declaration.relation_name:
                continue
            back = candidate
            break

        if declaration.kind == 'many':
            relation_type = 'many-to-many' if back is not None and back.kind == 'many' else 'one-to-many'
        elif back is not None:
            relation_type = 'many-to-one' if back.kind == 'many' else 'one-to-one'
        else:
            relation_type = 'many-to-one' if declaration.fields else 'one-to-one'

        from_fields = declaration.fields or [declaration.key]
        to_fields = declaration.references or (back.fields if back is not None else []) or list(related.primary_key)

        for existing in table.relations:
            if existing.to_table == related.name and existing.from_fields == from_fields:
                existing.type = relation_type
                return

        on_delete = on_update = None
        for column in table.columns:
            if column.name in declaration.fields:
                column.is_relation = True
                column.relation_name = column.relation_name or related.name
                on_delete = on_delete or column.on_delete
                on_update = on_update or column.on_update

        table.relations.append(OrmRelation(
            name=declaration.relation_name or f"{table.name}_{declaration.key}",
            from_table=table.name,
            from_fields=from_fields,
            to_table=related.name,
            to_fields=to_fields,
            type=relation_type,
            on_delete=on_delete,
            on_update=on_update
        ))
