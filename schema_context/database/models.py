"""
Data models for the source-specific schemas each adapter returns
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Optional


class DatabaseType(Enum):
    """Kinds of schema sources"""
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    PRISMA = "prisma"
    DRIZZLE = "drizzle"
    MONGODB = "mongodb"
    FIREBASE = "firebase"


# Relational catalogs

@dataclass
class RelationalColumn:
    """Column as reported by a relational catalog"""
    name: str
    type: str
    nullable: bool
    default: Optional[str] = None
    description: Optional[str] = None
    extra: Optional[str] = None


@dataclass
class RelationalIndex:
    """Index with its columns in ordinal order"""
    name: str
    columns: List[str]
    unique: bool
    is_primary_key: bool = False
    index_type: Optional[str] = None


@dataclass
class ForeignKey:
    """Single-column foreign key constraint"""
    column: str
    references_table: str
    references_column: str
    on_delete: Optional[str] = None
    on_update: Optional[str] = None


@dataclass
class RelationalTable:
    """Information about a database table"""
    name: str
    columns: List[RelationalColumn]
    indexes: List[RelationalIndex]
    foreign_keys: List[ForeignKey]
    primary_key: List[str]
    description: Optional[str] = None
    engine: Optional[str] = None
    auto_increment: Optional[str] = None


@dataclass
class PostgresSchema:
    tables: List[RelationalTable]
    schema_name: str = "public"
    source: Optional[str] = None
    database_type: DatabaseType = field(default=DatabaseType.POSTGRESQL, init=False)


@dataclass
class MySQLSchema:
    tables: List[RelationalTable]
    database_name: str
    source: Optional[str] = None
    database_type: DatabaseType = field(default=DatabaseType.MYSQL, init=False)


@dataclass
class SQLiteSchema:
    tables: List[RelationalTable]
    database_path: str
    source: Optional[str] = None
    database_type: DatabaseType = field(default=DatabaseType.SQLITE, init=False)


# Document stores

@dataclass
class FieldInfo:
    """Inferred description of one document field path"""
    name: str
    type: str
    nullable: bool
    is_array: bool = False
    is_reference: bool = False
    sample_values: List[Any] = field(default_factory=list)


@dataclass
class DocumentIndex:
    name: str
    keys: List[str]
    unique: bool = False


@dataclass
class CollectionInfo:
    """Sampled collection with its inferred fields"""
    name: str
    document_count: int
    sample_size: int
    fields: List[FieldInfo]
    indexes: List[DocumentIndex] = field(default_factory=list)


@dataclass
class MongoDBSchema:
    collections: List[CollectionInfo]
    database_name: str
    source: Optional[str] = None
    database_type: DatabaseType = field(default=DatabaseType.MONGODB, init=False)


@dataclass
class FirestoreSchema:
    collections: List[CollectionInfo]
    project_id: str
    source: Optional[str] = None
    database_type: DatabaseType = field(default=DatabaseType.FIREBASE, init=False)


# ORM schema files

@dataclass
class OrmIndex:
    name: str
    columns: List[str]
    unique: bool = False


@dataclass
class OrmRelation:
    """Relation resolved between two models of a schema file"""
    name: str
    from_table: str
    from_fields: List[str]
    to_table: str
    to_fields: List[str]
    type: str
    on_delete: Optional[str] = None
    on_update: Optional[str] = None


@dataclass
class PrismaColumn:
    """Field of a Prisma model"""
    name: str
    type: str
    is_list: bool = False
    is_optional: bool = False
    is_unique: bool = False
    is_id: bool = False
    is_default: bool = False
    default_value: Optional[str] = None
    is_relation: bool = False
    relation_name: Optional[str] = None
    relation_fields: List[str] = field(default_factory=list)
    relation_references: List[str] = field(default_factory=list)
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    description: Optional[str] = None


@dataclass
class PrismaModel:
    name: str
    columns: List[PrismaColumn]
    indexes: List[OrmIndex] = field(default_factory=list)
    relations: List[OrmRelation] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)
    unique_constraints: List[List[str]] = field(default_factory=list)
    description: Optional[str] = None
    db_name: Optional[str] = None


@dataclass
class PrismaDatasource:
    provider: str = "postgresql"
    url: str = ""


@dataclass
class PrismaGenerator:
    provider: str = "prisma-client-js"
    output: str = "./node_modules/.prisma/client"


@dataclass
class PrismaSchema:
    tables: List[PrismaModel]
    datasource: PrismaDatasource
    generator: PrismaGenerator
    enums: Dict[str, List[str]] = field(default_factory=dict)
    schema_path: Optional[str] = None
    database_type: DatabaseType = field(default=DatabaseType.PRISMA, init=False)


@dataclass
class DrizzleColumn:
    """Column built by a Drizzle table builder call"""
    name: str
    type: str
    db_name: Optional[str] = None
    is_optional: bool = True
    is_unique: bool = False
    is_primary_key: bool = False
    is_default: bool = False
    default_value: Optional[str] = None
    is_relation: bool = False
    relation_name: Optional[str] = None
    references_column: Optional[str] = None
    on_delete: Optional[str] = None
    on_update: Optional[str] = None


@dataclass
class DrizzleTable:
    name: str
    columns: List[DrizzleColumn]
    db_name: Optional[str] = None
    indexes: List[OrmIndex] = field(default_factory=list)
    relations: List[OrmRelation] = field(default_factory=list)
    primary_key: List[str] = field(default_factory=list)
    unique_constraints: List[List[str]] = field(default_factory=list)
    description: Optional[str] = None


@dataclass
class DrizzleSchema:
    tables: List[DrizzleTable]
    dialect: str = "postgresql"
    schema_path: Optional[str] = None
    database_type: DatabaseType = field(default=DatabaseType.DRIZZLE, init=False)
