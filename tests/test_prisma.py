import pytest

from schema_context.database.converter import SchemaConverter
from schema_context.database.models import DatabaseType
from schema_context.database.prisma import PrismaAdapter
from schema_context.exceptions import SchemaFileNotFoundError, SchemaParseError


@pytest.fixture
def prisma_schema(prisma_schema_path):
    return PrismaAdapter(prisma_schema_path).extract()


def _model(schema, name):
    return [m for m in schema.tables if m.name == name][0]


def _column(model, name):
    return [c for c in model.columns if c.name == name][0]


def _relation(model, from_field, to_table):
    return [r for r in model.relations if r.from_fields[0] == from_field and r.to_table == to_table][0]


def test_header_blocks(prisma_schema):
    assert prisma_schema.database_type == DatabaseType.PRISMA
    assert prisma_schema.datasource.provider == 'postgresql'
    assert prisma_schema.datasource.url == 'DATABASE_URL'
    assert prisma_schema.generator.provider == 'prisma-client-js'
    assert prisma_schema.enums == {'Role': ['USER', 'ADMIN']}
    assert [m.name for m in prisma_schema.tables] == ['User', 'Profile', 'Post', 'Tag']


def test_user_profile_and_posts_relations(prisma_schema):
    """Test optional one-to-one and list relations on User"""
    user = _model(prisma_schema, 'User')

    profile = _column(user, 'profile')
    assert profile.is_relation is True
    assert profile.is_optional is True
    assert profile.is_list is False

    posts = _column(user, 'posts')
    assert posts.is_relation is True
    assert posts.is_list is True

    to_profile = _relation(user, 'profile', 'Profile')
    assert to_profile.type == 'one-to-one'
    assert to_profile.on_delete == 'CASCADE'
    assert to_profile.to_fields == ['userId']

    to_posts = _relation(user, 'posts', 'Post')
    assert to_posts.type == 'one-to-many'


def test_owning_side_uses_relation_fields(prisma_schema):
    profile = _model(prisma_schema, 'Profile')
    relation = _relation(profile, 'userId', 'User')
    assert relation.to_fields == ['id']
    assert relation.type == 'one-to-one'
    assert relation.on_delete == 'CASCADE'

    post = _model(prisma_schema, 'Post')
    author = _relation(post, 'authorId', 'User')
    assert author.type == 'many-to-one'
    assert author.on_delete is None


def test_implicit_many_to_many(prisma_schema):
    post = _model(prisma_schema, 'Post')
    tag = _model(prisma_schema, 'Tag')
    assert _relation(post, 'tags', 'Tag').type == 'many-to-many'
    assert _relation(tag, 'posts', 'Post').type == 'many-to-many'


def test_scalar_fields_and_attributes(prisma_schema):
    user = _model(prisma_schema, 'User')

    assert user.primary_key == ['id']
    assert user.db_name == 'users'
    assert user.description == 'Application users'
    assert _column(user, 'id').default_value == 'uuid()'
    assert _column(user, 'email').is_unique is True
    assert _column(user, 'email').description == 'Login address'
    assert _column(user, 'name').is_optional is True
    assert _column(user, 'role').is_relation is False
    assert _column(user, 'createdAt').default_value == 'now()'
    assert [i.name for i in user.indexes] == ['User_email_key']


def test_block_indexes(prisma_schema):
    post = _model(prisma_schema, 'Post')
    indexes = {i.name: i for i in post.indexes}

    assert indexes['idx_Post_authorId'].unique is False
    assert indexes['Post_authorId_title_key'].columns == ['authorId', 'title']
    assert indexes['Post_authorId_title_key'].unique is True
    assert post.unique_constraints == [['authorId', 'title']]


def test_normalized_prisma_schema(prisma_schema):
    """Test the unified view of the Prisma fixture"""
    unified = SchemaConverter.convert(prisma_schema)
    user = unified.get_table('User')

    assert unified.database_type == 'prisma'
    assert unified.schema_name == 'postgresql'
    assert user.get_column('posts').type == 'Post[]'
    assert user.get_column('profile').nullable is True
    assert user.get_column('email').is_unique is True

    profile_relation = [r for r in user.relations if r.to_table == 'Profile'][0]
    assert profile_relation.cardinality.value == '1:1'
    assert profile_relation.on_delete == 'CASCADE'

    post = unified.get_table('Post')
    assert post.get_column('authorId').is_foreign_key is True
    assert post.get_column('authorId').references_table == 'User'
    # composite unique constraint does not make title unique on its own
    assert post.get_column('title').is_unique is False


def test_composite_id_and_named_relations():
    content = '''
    model Follow {
      followerId Int
      followingId Int
      follower   Account @relation("followers", fields: [followerId], references: [id], onDelete: Cascade)
      following  Account @relation("following", fields: [followingId], references: [id])

      @@id([followerId, followingId])
      @@index([followingId], map: "follow_following_idx")
    }

    model Account {
      id        Int      @id
      followers Follow[] @relation("followers")
      following Follow[] @relation("following")
    }
    '''
    schema = PrismaAdapter('schema.prisma').parse(content)
    follow = _model(schema, 'Follow')
    account = _model(schema, 'Account')

    assert follow.primary_key == ['followerId', 'followingId']
    assert follow.indexes[0].name == 'follow_following_idx'
    assert _relation(follow, 'followerId', 'Account').name == 'followers'
    assert _relation(follow, 'followerId', 'Account').type == 'many-to-one'

    followers = _relation(account, 'followers', 'Follow')
    assert followers.type == 'one-to-many'
    assert followers.to_fields == ['followerId']
    assert followers.on_delete == 'CASCADE'
    assert _relation(account, 'following', 'Follow').to_fields == ['followingId']


def test_forgiving_mode_skips_malformed_declarations():
    content = '''
    model Item {
      id    Int @id
      ???   broken
      owner Ghost @relation(fields: [ownerId], references: [id])
      ownerId Int
    }
    '''
    schema = PrismaAdapter('schema.prisma').parse(content)
    item = schema.tables[0]
    assert [c.name for c in item.columns] == ['id', 'owner', 'ownerId']
    assert item.relations == []


def test_strict_mode_raises_on_malformed_field():
    content = 'model Item {\n  id Int @id\n  ??? broken\n}\n'
    with pytest.raises(SchemaParseError) as exc_info:
        PrismaAdapter('schema.prisma', strict=True).parse(content)
    assert exc_info.value.declaration == '??? broken'


def test_strict_mode_raises_on_unknown_model():
    content = 'model Item {\n  id Int @id\n  owner Ghost\n}\n'
    with pytest.raises(SchemaParseError):
        PrismaAdapter('schema.prisma', strict=True).parse(content)


def test_missing_schema_file(tmp_path):
    path = str(tmp_path / 'missing.prisma')
    with pytest.raises(SchemaFileNotFoundError) as exc_info:
        PrismaAdapter(path).extract()
    assert str(exc_info.value) == f"Prisma schema not found at: {path}"
    assert isinstance(exc_info.value, FileNotFoundError)
