"""
Prisma schema file adapter
"""

import os
import re
from typing import Dict, Iterator, List, Optional, Tuple

from ..exceptions import SchemaFileNotFoundError, SchemaParseError
from ..utils.connection import sanitize_connection_string
from ..utils.logger import get_logger
from .adapters import SchemaAdapter
from .models import (
    DatabaseType,
    OrmIndex,
    OrmRelation,
    PrismaColumn,
    PrismaDatasource,
    PrismaGenerator,
    PrismaModel,
    PrismaSchema,
)
from .schema_text import find_closing, iter_blocks, split_top_level, strip_line_comment, unquote

logger = get_logger(__name__)

DEFAULT_SCHEMA_PATH = 'prisma/schema.prisma'

SCALAR_TYPES = {
    'String', 'Boolean', 'Int', 'BigInt', 'Float', 'Decimal',
    'DateTime', 'Json', 'Bytes', 'Unsupported',
}

_BLOCK_PATTERN = re.compile(r'^[ \t]*(model|enum|type|view|datasource|generator)\s+(\w+)\s*\{', re.MULTILINE)
_FIELD_PATTERN = re.compile(r'^(\w+)\s+(\S.*)$')
_TYPE_PATTERN = re.compile(r'^(Unsupported\s*\(\s*"[^"]*"\s*\)|[A-Za-z_]\w*)(\[\])?(\?)?')
_ATTRIBUTE_PATTERN = re.compile(r'@([\w.]+)')
_SETTING_PATTERN = re.compile(r'^(\w+)\s*=\s*(.+)$')


def _parse_list(value: str) -> List[str]:
    """Field names of a Prisma list literal, dropping sort/length modifiers"""
    items = []
    for item in split_top_level(value):
        match = re.match(r'["\']?(\w+)', item)
        if match:
            items.append(match.group(1))
    return items


def _list_argument(args: str, key: Optional[str] = None) -> Optional[List[str]]:
    if key:
        match = re.search(r'\b' + key + r'\s*:\s*\[', args)
    else:
        match = re.match(r'\s*\[', args)
    if not match:
        return None
    open_bracket = match.end() - 1
    close_bracket = find_closing(args, open_bracket)
    if close_bracket is None:
        return None
    return _parse_list(args[open_bracket + 1:close_bracket])


def _string_argument(args: str, key: str) -> Optional[str]:
    match = re.search(r'\b' + key + r'\s*:\s*"([^"]*)"', args)
    return match.group(1) if match else None


def _iter_attributes(text: str) -> Iterator[Tuple[str, Optional[str]]]:
    """Yield (attribute name, raw argument text) for each ``@attr`` in a field declaration"""
    position = 0
    while True:
        match = _ATTRIBUTE_PATTERN.search(text, position)
        if not match:
            return
        name = match.group(1)
        end = match.end()
        if end < len(text) and text[end] == '(':
            close_paren = find_closing(text, end)
            if close_paren is None:
                raise ValueError(f"unbalanced arguments for @{name}")
            yield name, text[end + 1:close_paren]
            position = close_paren + 1
        else:
            yield name, None
            position = end


class PrismaAdapter(SchemaAdapter):
    """Two-pass parser for ``schema.prisma`` files"""

    database_type = DatabaseType.PRISMA

    def __init__(self, schema_path: str = DEFAULT_SCHEMA_PATH, strict: bool = False):
        self.schema_path = schema_path or DEFAULT_SCHEMA_PATH
        self.strict = strict

    def extract(self) -> PrismaSchema:
        """Read and parse the schema file"""
        if not os.path.isfile(self.schema_path):
            raise SchemaFileNotFoundError('Prisma', self.schema_path)

        with open(self.schema_path, 'r', encoding='utf-8') as f:
            content = f.read()

        schema = self.parse(content)
        logger.info(f"Parsed {len(schema.tables)} Prisma models from {self.schema_path}")
        return schema

    def close(self) -> None:
        pass

    def parse(self, content: str) -> PrismaSchema:
        """Parse schema text; pass 1 builds models, pass 2 resolves relations"""
        blocks = [
            (match.group(1), match.group(2), body, self._doc_comment(content, match.start()))
            for match, body, _end in iter_blocks(content, _BLOCK_PATTERN)
        ]

        enums = {
            name: self._parse_enum(body)
            for kind, name, body, _doc in blocks if kind == 'enum'
        }
        composite_types = {name for kind, name, _body, _doc in blocks if kind == 'type'}
        scalar_names = SCALAR_TYPES | set(enums) | composite_types

        datasource = PrismaDatasource()
        generator = PrismaGenerator()
        models: List[PrismaModel] = []
        seen_datasource = seen_generator = False

        for kind, name, body, doc in blocks:
            if kind == 'datasource' and not seen_datasource:
                datasource = self._parse_datasource(body)
                seen_datasource = True
            elif kind == 'generator' and not seen_generator:
                generator = self._parse_generator(body)
                seen_generator = True
            elif kind in ('model', 'view'):
                models.append(self._parse_model(name, body, doc, scalar_names))

        self._resolve_relations(models)

        return PrismaSchema(
            tables=models,
            datasource=datasource,
            generator=generator,
            enums=enums,
            schema_path=self.schema_path
        )

    @staticmethod
    def _doc_comment(content: str, block_start: int) -> Optional[str]:
        """Collect the ``///`` lines directly above a block"""
        lines = content[:block_start].rstrip('\n').split('\n')
        docs: List[str] = []
        for line in reversed(lines):
            stripped = line.strip()
            if not stripped.startswith('///'):
                break
            docs.insert(0, stripped[3:].strip())
        return ' '.join(docs) or None

    @staticmethod
    def _settings(body: str) -> Dict[str, str]:
        settings = {}
        for line in body.splitlines():
            match = _SETTING_PATTERN.match(strip_line_comment(line).strip())
            if match:
                settings[match.group(1)] = match.group(2).strip()
        return settings

    def _parse_datasource(self, body: str) -> PrismaDatasource:
        settings = self._settings(body)
        url = settings.get('url', '')
        env_match = re.match(r'env\(\s*["\']([^"\']+)["\']\s*\)', url)
        return PrismaDatasource(
            provider=unquote(settings.get('provider', '"postgresql"')),
            url=env_match.group(1) if env_match else sanitize_connection_string(unquote(url))
        )

    def _parse_generator(self, body: str) -> PrismaGenerator:
        settings = self._settings(body)
        defaults = PrismaGenerator()
        return PrismaGenerator(
            provider=unquote(settings.get('provider', defaults.provider)),
            output=unquote(settings.get('output', defaults.output))
        )

    @staticmethod
    def _parse_enum(body: str) -> List[str]:
        values = []
        for line in body.splitlines():
            line = strip_line_comment(line).strip()
            match = re.match(r'^(\w+)', line)
            if match:
                values.append(match.group(1))
        return values

    def _skip(self, message: str, declaration: str):
        if self.strict:
            raise SchemaParseError(message, declaration)
        logger.debug(f"Skipping {message}: {declaration.strip()!r}")

    def _parse_model(self, name: str, body: str, description: Optional[str], scalar_names) -> PrismaModel:
        model = PrismaModel(name=name, columns=[], description=description)
        composite_primary_key: Optional[List[str]] = None
        pending_doc: List[str] = []

        for raw_line in body.splitlines():
            stripped = raw_line.strip()
            if stripped.startswith('///'):
                pending_doc.append(stripped[3:].strip())
                continue

            line = strip_line_comment(stripped).strip()
            if not line:
                continue

            if line.startswith('@@'):
                pending_doc = []
                primary_key = self._parse_model_attribute(model, line)
                if primary_key is not None:
                    composite_primary_key = primary_key
                continue

            column = self._parse_field(line, scalar_names)
            if column is None:
                self._skip(f"malformed field in model {name}", line)
                pending_doc = []
                continue

            column.description = ' '.join(pending_doc) or None
            pending_doc = []
            model.columns.append(column)

            if column.is_id and not column.is_relation:
                model.primary_key = [column.name]
            if column.is_unique:
                model.indexes.append(OrmIndex(name=f"{name}_{column.name}_key", columns=[column.name], unique=True))

        if composite_primary_key is not None:
            model.primary_key = composite_primary_key
        return model

    def _parse_model_attribute(self, model: PrismaModel, line: str) -> Optional[List[str]]:
        """Apply a block attribute; returns the columns of an ``@@id``"""
        match = re.match(r'@@(\w+)\s*\(', line)
        if not match:
            self._skip(f"unknown block attribute in model {model.name}", line)
            return None

        attribute = match.group(1)
        close_paren = find_closing(line, match.end() - 1)
        if close_paren is None:
            self._skip(f"unbalanced @@{attribute} in model {model.name}", line)
            return None
        args = line[match.end():close_paren]

        if attribute == 'map':
            model.db_name = unquote(split_top_level(args)[0]) if args.strip() else None
            return None

        if attribute not in ('id', 'unique', 'index'):
            return None

        columns = _list_argument(args) or _list_argument(args, 'fields')
        if not columns:
            self._skip(f"@@{attribute} without fields in model {model.name}", line)
            return None

        if attribute == 'id':
            return columns

        index_name = _string_argument(args, 'name') or _string_argument(args, 'map')
        if attribute == 'unique':
            model.unique_constraints.append(columns)
            model.indexes.append(OrmIndex(
                name=index_name or f"{model.name}_{'_'.join(columns)}_key",
                columns=columns,
                unique=True
            ))
        else:
            model.indexes.append(OrmIndex(
                name=index_name or f"idx_{model.name}_{columns[0]}",
                columns=columns,
                unique=False
            ))
        return None

    def _parse_field(self, line: str, scalar_names) -> Optional[PrismaColumn]:
        field_match = _FIELD_PATTERN.match(line)
        if not field_match:
            return None
        name, definition = field_match.groups()

        type_match = _TYPE_PATTERN.match(definition)
        if not type_match:
            return None

        field_type = type_match.group(1)
        if field_type.startswith('Unsupported'):
            field_type = 'Unsupported'

        column = PrismaColumn(
            name=name,
            type=field_type,
            is_list=bool(type_match.group(2)),
            is_optional=bool(type_match.group(3))
        )

        try:
            attributes = list(_iter_attributes(definition[type_match.end():]))
        except ValueError:
            return None

        for attribute, args in attributes:
            if attribute == 'id':
                column.is_id = True
            elif attribute == 'unique':
                column.is_unique = True
            elif attribute == 'default':
                column.is_default = True
                column.default_value = args.strip() if args and args.strip() else None
            elif attribute == 'relation':
                column.is_relation = True
                if args:
                    self._apply_relation_arguments(column, args)

        if field_type not in scalar_names:
            column.is_relation = True

        return column

    @staticmethod
    def _apply_relation_arguments(column: PrismaColumn, args: str):
        positional = re.match(r'\s*"([^"]*)"', args)
        column.relation_name = _string_argument(args, 'name') or (positional.group(1) if positional else None)
        column.relation_fields = _list_argument(args, 'fields') or []
        column.relation_references = _list_argument(args, 'references') or []

        on_delete = re.search(r'\bonDelete\s*:\s*(\w+)', args)
        if on_delete:
            column.on_delete = on_delete.group(1).upper()
        on_update = re.search(r'\bonUpdate\s*:\s*(\w+)', args)
        if on_update:
            column.on_update = on_update.group(1).upper()

    @staticmethod
    def _back_reference(model: PrismaModel, column: PrismaColumn, related: PrismaModel) -> Optional[PrismaColumn]:
        for candidate in related.columns:
            if candidate is column or not candidate.is_relation or candidate.type != model.name:
                continue
            if column.relation_name and candidate.relation_name != column.relation_name:
                continue
            return candidate
        return None

    @staticmethod
    def _target_fields(column: PrismaColumn, back: Optional[PrismaColumn], related: PrismaModel) -> List[str]:
        """Explicit references, else the key fields held by the other side, else its primary key"""
        if column.relation_references:
            return list(column.relation_references)
        if back is not None and back.relation_fields:
            return list(back.relation_fields)
        return list(related.primary_key)

    def _resolve_relations(self, models: List[PrismaModel]):
        model_map = {model.name: model for model in models}

        for model in models:
            for column in model.columns:
                if not column.is_relation:
                    continue

                related = model_map.get(column.type)
                if related is None:
                    if self.strict:
                        raise SchemaParseError(
                            f"Relation {model.name}.{column.name} targets unknown model {column.type}"
                        )
                    logger.debug(f"Skipping relation {model.name}.{column.name}: unknown model {column.type}")
                    continue

                back = self._back_reference(model, column, related)

                if column.is_list:
                    relation_type = 'many-to-many' if back is not None and back.is_list else 'one-to-many'
                elif back is not None:
                    relation_type = 'many-to-one' if back.is_list else 'one-to-one'
                else:
                    relation_type = 'many-to-one' if column.relation_fields else 'one-to-one'

                model.relations.append(OrmRelation(
                    name=column.relation_name or f"{model.name}_{column.name}",
                    from_table=model.name,
                    from_fields=list(column.relation_fields) or [column.name],
                    to_table=related.name,
                    to_fields=self._target_fields(column, back, related),
                    type=relation_type,
                    on_delete=column.on_delete or (back.on_delete if back is not None else None),
                    on_update=column.on_update or (back.on_update if back is not None else None)
                ))
