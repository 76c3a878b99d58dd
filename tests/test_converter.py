import json
from dataclasses import replace

import pytest

from schema_context.database.converter import SchemaConverter
from schema_context.database.drizzle import DrizzleAdapter
from schema_context.database.models import (
    CollectionInfo,
    DocumentIndex,
    FieldInfo,
    FirestoreSchema,
    MongoDBSchema,
    OrmRelation,
    RelationalIndex,
)
from schema_context.database.prisma import PrismaAdapter
from schema_context.database.unified import Cardinality, map_cardinality
from schema_context.exceptions import UnsupportedSourceError

ALLOWED_CARDINALITIES = {'1:1', '1:N', 'N:1', 'N:M'}


def _mongodb_schema():
    users = CollectionInfo(
        name='users',
        document_count=1200,
        sample_size=100,
        fields=[
            FieldInfo(name='_id', type='ObjectId', nullable=False, sample_values=['65a0c0ffee']),
            FieldInfo(name='age', type='Int', nullable=True, sample_values=[31]),
            FieldInfo(name='orgId', type='ObjectId', nullable=False, is_reference=True),
            FieldInfo(name='tags', type='Mixed(Array|Array<String>)', nullable=False, is_array=True,
                      sample_values=[]),
            FieldInfo(name='labels', type='Mixed(String|Array|Array<Int>)', nullable=False, is_array=True,
                      sample_values=['x']),
            FieldInfo(name='scores', type='Array<Int>', nullable=False, is_array=True, sample_values=[]),
        ],
        indexes=[
            DocumentIndex(name='_id_', keys=['_id'], unique=True),
            DocumentIndex(name='email_1', keys=['email'], unique=True),
        ]
    )
    empty = CollectionInfo(name='audit', document_count=0, sample_size=0, fields=[])
    return MongoDBSchema(collections=[users, empty], database_name='app', source='mongodb://localhost/app')


def _firestore_schema():
    posts = CollectionInfo(
        name='posts',
        document_count=2,
        sample_size=2,
        fields=[
            FieldInfo(name='author', type='Reference', nullable=False, is_reference=True),
            FieldInfo(name='id', type='String', nullable=False, sample_values=['p1']),
            FieldInfo(name='title', type='String', nullable=False, sample_values=['Hello']),
        ]
    )
    return FirestoreSchema(collections=[posts], project_id='demo', source='firebase://demo')


@pytest.fixture
def all_sources(postgres_schema, prisma_schema_path, drizzle_schema_path):
    return [
        postgres_schema,
        PrismaAdapter(prisma_schema_path).extract(),
        DrizzleAdapter(drizzle_schema_path).extract(),
        _mongodb_schema(),
        _firestore_schema(),
    ]


def test_convert_is_idempotent(all_sources):
    """Test converting the same source twice gives equal output"""
    for source in all_sources:
        first = SchemaConverter.convert(source)
        second = SchemaConverter.convert(source)
        assert first == second
        assert first.to_json() == second.to_json()


def test_primary_key_flag_matches_primary_key_list(all_sources):
    """Test is_primary_key is set exactly for columns listed in primary_key"""
    for source in all_sources:
        for table in SchemaConverter.convert(source).tables:
            for column in table.columns:
                assert column.is_primary_key == (column.name in table.primary_key), (table.name, column.name)


def test_foreign_key_flag_matches_relations(all_sources):
    """Test is_foreign_key follows the relations of the table for non-document sources"""
    for source in all_sources[:3]:
        for table in SchemaConverter.convert(source).tables:
            sources = {relation.from_column for relation in table.relations}
            for column in table.columns:
                assert column.is_foreign_key == (column.name in sources), (table.name, column.name)


def test_cardinality_is_always_enumerated(all_sources):
    """Test every relation carries one of the four cardinalities"""
    for source in all_sources:
        for relation in SchemaConverter.convert(source).relations:
            assert isinstance(relation.cardinality, Cardinality)
            assert relation.cardinality.value in ALLOWED_CARDINALITIES


def test_unknown_orm_relation_type_maps_to_one_to_many(prisma_schema_path):
    """Test unrecognized relation tags fall back to 1:N"""
    schema = PrismaAdapter(prisma_schema_path).extract()
    schema.tables[0].relations.append(OrmRelation(
        name='odd', from_table='User', from_fields=['name'], to_table='Tag', to_fields=['id'], type='sideways'
    ))
    unified = SchemaConverter.convert(schema)
    odd = [r for r in unified.relations if r.from_column == 'name'][0]
    assert odd.cardinality == Cardinality.ONE_TO_MANY


def test_orm_navigation_fields_are_foreign_keys(prisma_schema_path):
    """Test relation fields such as User.posts point at their target model"""
    unified = SchemaConverter.convert(PrismaAdapter(prisma_schema_path).extract())
    user = unified.get_table('User')

    posts = user.get_column('posts')
    assert posts.type == 'Post[]'
    assert posts.is_foreign_key is True
    assert posts.references_table == 'Post'

    profile = user.get_column('profile')
    assert profile.is_foreign_key is True
    assert profile.references_table == 'Profile'
    assert profile.references_column == 'userId'
    assert profile.on_delete == 'CASCADE'
    assert user.get_column('email').is_foreign_key is False


def test_map_cardinality():
    assert map_cardinality('one-to-one') == Cardinality.ONE_TO_ONE
    assert map_cardinality('many-to-one') == Cardinality.MANY_TO_ONE
    assert map_cardinality('many-to-many') == Cardinality.MANY_TO_MANY
    assert map_cardinality('N:M') == Cardinality.MANY_TO_MANY
    assert map_cardinality(None) == Cardinality.ONE_TO_MANY
    assert map_cardinality('unknown') == Cardinality.ONE_TO_MANY


def test_unique_index_propagation(postgres_schema):
    """Test a unique index marks the column unique and a plain index does not"""
    unified = SchemaConverter.convert(postgres_schema)
    users = unified.get_table('users')
    assert users.get_column('email').is_unique is True
    assert users.get_column('nickname').is_unique is False


def test_non_unique_index_does_not_set_unique(postgres_schema):
    """Test replacing the unique email index with a plain one clears the flag"""
    users = postgres_schema.tables[1]
    users.indexes = [
        index if index.name != 'users_email_key'
        else RelationalIndex(name='users_email_idx', columns=['email'], unique=False)
        for index in users.indexes
    ]
    unified = SchemaConverter.convert(postgres_schema)
    assert unified.get_table('users').get_column('email').is_unique is False


def test_relational_relations_are_many_to_one(postgres_schema):
    unified = SchemaConverter.convert(postgres_schema)
    assert [r.cardinality for r in unified.relations] == [Cardinality.MANY_TO_ONE]
    assert unified.schema_name == 'public'
    assert unified.database_type == 'postgresql'
    assert unified.get_table('organizations').description == 'Tenant organizations'


def test_mongodb_conversion():
    """Test collections become tables keyed by _id with no relations"""
    unified = SchemaConverter.convert(_mongodb_schema())
    users = unified.get_table('users')

    assert users.primary_key == ('_id',)
    assert users.relations == ()
    assert users.description == 'MongoDB collection (1200 documents, sampled 100)'
    assert users.get_column('_id').is_primary_key is True
    assert users.get_column('_id').is_unique is True
    assert users.get_column('orgId').is_foreign_key is True
    assert users.get_column('orgId').references_table is None
    assert users.get_column('tags').type == 'String[]'
    assert users.get_column('scores').type == 'Int[]'
    assert users.get_column('labels').type == 'Mixed(String|Array|Array<Int>)'
    assert users.get_column('age').description == 'Sample: 31'
    assert users.get_column('tags').description is None
    assert unified.schema_name == 'app'


def test_empty_collection_yields_table_without_columns():
    """Test a collection with zero sampled documents converts without failure"""
    unified = SchemaConverter.convert(_mongodb_schema())
    audit = unified.get_table('audit')
    assert audit is not None
    assert audit.columns == ()


def test_firestore_conversion():
    unified = SchemaConverter.convert(_firestore_schema())
    posts = unified.get_table('posts')

    assert posts.primary_key == ('id',)
    assert posts.get_column('id').is_primary_key is True
    assert posts.get_column('id').is_unique is True
    assert posts.get_column('author').is_foreign_key is True
    assert posts.relations == ()
    assert posts.description == 'Firestore collection (2 documents sampled)'
    assert posts.get_column('title').description == 'Sample: "Hello"'
    assert unified.source == 'firebase://demo'


def test_unknown_source_type_is_fatal(postgres_schema):
    """Test an unrecognized source tag raises UnsupportedSourceError"""
    class Unknown:
        database_type = 'oracle'

    with pytest.raises(UnsupportedSourceError):
        SchemaConverter.convert(Unknown())
    with pytest.raises(UnsupportedSourceError):
        SchemaConverter.convert(object())


def test_to_dict_uses_camel_case_and_drops_unset(postgres_schema):
    unified = SchemaConverter.convert(postgres_schema)
    data = json.loads(unified.to_json())

    assert data['databaseType'] == 'postgresql'
    users = [t for t in data['tables'] if t['name'] == 'users'][0]
    assert users['primaryKey'] == ['id']
    assert 'description' not in users
    org_column = [c for c in users['columns'] if c['name'] == 'organization_id'][0]
    assert org_column['isForeignKey'] is True
    assert org_column['referencesTable'] == 'organizations'
    assert users['relations'][0]['cardinality'] == 'N:1'


def test_unified_model_is_frozen(postgres_schema):
    unified = SchemaConverter.convert(postgres_schema)
    table = unified.tables[0]
    with pytest.raises(Exception):
        table.name = 'renamed'
    assert replace(table, name='renamed').name == 'renamed'
