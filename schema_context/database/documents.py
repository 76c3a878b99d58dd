"""
Schema adapters for document stores (sampling based)
"""

import uuid
from typing import List, Optional
from urllib.parse import urlsplit

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import GoogleAPIError
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ..exceptions import MissingCredentialsError, SourceConnectionError
from ..utils.connection import sanitize_connection_string
from ..utils.inference import FirestoreSchemaInferrer, MongoDBSchemaInferrer
from ..utils.logger import get_logger
from .adapters import SchemaAdapter
from .models import (
    CollectionInfo,
    DatabaseType,
    DocumentIndex,
    FirestoreSchema,
    MongoDBSchema,
)

logger = get_logger(__name__)

DEFAULT_SAMPLE_SIZE = 100


def _validate_sample_size(sample_size: int) -> int:
    if sample_size is None:
        return DEFAULT_SAMPLE_SIZE
    sample_size = int(sample_size)
    if sample_size < 1:
        raise ValueError(f"Sample size must be positive, got {sample_size}")
    return sample_size


class MongoDBAdapter(SchemaAdapter):
    """MongoDB schema adapter"""

    database_type = DatabaseType.MONGODB

    def __init__(self, connection_string: str, sample_size: int = DEFAULT_SAMPLE_SIZE):
        if not connection_string:
            raise ValueError("MongoDB connection string must not be empty")
        self.connection_string = connection_string
        self.sample_size = _validate_sample_size(sample_size)
        self.database_name = urlsplit(connection_string).path.lstrip('/') or 'test'
        self.client: Optional[MongoClient] = None
        self.inferrer = MongoDBSchemaInferrer()

    def extract(self) -> MongoDBSchema:
        """Sample every collection of the database"""
        self.client = MongoClient(self.connection_string)
        try:
            try:
                self.client.admin.command('ping')
            except PyMongoError as e:
                raise SourceConnectionError(f"MongoDB connection failed: {e}") from e

            db = self.client[self.database_name]
            collections = [
                self._extract_collection(db[name])
                for name in sorted(db.list_collection_names())
            ]

            logger.info(f"Sampled {len(collections)} collections from MongoDB database {self.database_name}")
            return MongoDBSchema(
                collections=collections,
                database_name=self.database_name,
                source=sanitize_connection_string(self.connection_string)
            )
        finally:
            self.close()

    def _extract_collection(self, collection) -> CollectionInfo:
        document_count = collection.count_documents({})
        documents = list(collection.find({}).limit(self.sample_size))

        indexes = []
        for name, info in collection.index_information().items():
            indexes.append(DocumentIndex(
                name=name,
                keys=[key for key, _direction in info.get('key', [])],
                unique=bool(info.get('unique')) or name == '_id_'
            ))

        logger.debug(f"Collection {collection.name}: {len(documents)} of {document_count} documents sampled")
        return CollectionInfo(
            name=collection.name,
            document_count=document_count,
            sample_size=len(documents),
            fields=self.inferrer.infer(documents),
            indexes=indexes
        )

    def close(self) -> None:
        if self.client is not None:
            client, self.client = self.client, None
            client.close()


class FirestoreAdapter(SchemaAdapter):
    """Firestore schema adapter (top-level collections)"""

    database_type = DatabaseType.FIREBASE

    def __init__(self, project_id: Optional[str], service_account_path: Optional[str] = None,
                 use_default_credentials: bool = False, sample_size: int = DEFAULT_SAMPLE_SIZE):
        self.project_id = project_id
        self.service_account_path = service_account_path
        self.use_default_credentials = use_default_credentials
        self.sample_size = _validate_sample_size(sample_size)
        self.app: Optional[firebase_admin.App] = None
        self.inferrer = FirestoreSchemaInferrer()

    def _credentials(self):
        if not self.project_id:
            raise MissingCredentialsError("Firebase project ID is required")
        if self.service_account_path:
            try:
                return credentials.Certificate(self.service_account_path)
            except (OSError, ValueError) as e:
                raise MissingCredentialsError(
                    f"Invalid service account file {self.service_account_path}: {e}"
                ) from e
        if self.use_default_credentials:
            return credentials.ApplicationDefault()
        raise MissingCredentialsError(
            "Firebase credentials not provided: set a service account path or GOOGLE_APPLICATION_CREDENTIALS"
        )

    def extract(self) -> FirestoreSchema:
        """Sample every top-level collection of the project"""
        cred = self._credentials()
        self.app = firebase_admin.initialize_app(
            cred,
            {'projectId': self.project_id},
            name=f"schema-context-{uuid.uuid4().hex}"
        )
        try:
            db = firestore.client(self.app)
            try:
                collection_refs = list(db.collections())
            except GoogleAPIError as e:
                raise SourceConnectionError(f"Firestore connection failed: {e}") from e

            collections = [self._extract_collection(ref) for ref in collection_refs]

            logger.info(f"Sampled {len(collections)} collections from Firestore project {self.project_id}")
            return FirestoreSchema(
                collections=collections,
                project_id=self.project_id,
                source=f"firebase://{self.project_id}"
            )
        finally:
            self.close()

    def _extract_collection(self, collection_ref) -> CollectionInfo:
        documents: List[Optional[dict]] = []
        for snapshot in collection_ref.limit(self.sample_size).stream():
            data = snapshot.to_dict()
            if data and 'id' not in data:
                data = {'id': snapshot.id, **data}
            documents.append(data)

        return CollectionInfo(
            name=collection_ref.id,
            document_count=len(documents),
            sample_size=len(documents),
            fields=self.inferrer.infer(documents)
        )

    def close(self) -> None:
        if self.app is not None:
            app, self.app = self.app, None
            firebase_admin.delete_app(app)
