"""
Field type inference over sampled documents
"""

import datetime
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional

from bson import Binary, Decimal128, ObjectId
from google.cloud.firestore_v1 import DocumentReference, GeoPoint

from ..database.models import FieldInfo

MAX_SAMPLE_VALUES = 3


class _FieldStats:
    """Observations accumulated for one field path"""

    def __init__(self):
        self.types: List[str] = []
        self.null_count = 0
        self.presence = 0
        self.is_array = False
        self.is_reference = False
        self.samples: List[Any] = []

    def add_type(self, tag: str):
        if tag not in self.types:
            self.types.append(tag)

    def add_sample(self, value: Any):
        if len(self.samples) < MAX_SAMPLE_VALUES:
            self.samples.append(value)

    def resolve_type(self) -> str:
        tags = self.types
        if not tags:
            return 'null'
        if len(tags) == 1:
            return tags[0]
        return f"Mixed({'|'.join(tags)})"


class DocumentSchemaInferrer:
    """Merge observed value types per dot-joined field path"""

    object_tag = 'Object'

    def infer(self, documents: Iterable[Optional[Mapping]]) -> List[FieldInfo]:
        """Infer field descriptors from documents in the order given"""
        fields: Dict[str, _FieldStats] = {}
        analyzed = 0

        for data in documents:
            if not data:
                continue
            analyzed += 1
            self._walk(data, '', fields)

        return [
            FieldInfo(
                name=path,
                type=stats.resolve_type(),
                nullable=stats.null_count > 0 or stats.presence < analyzed,
                is_array=stats.is_array,
                is_reference=stats.is_reference,
                sample_values=list(stats.samples)
            )
            for path, stats in sorted(fields.items())
        ]

    def _walk(self, data: Mapping, prefix: str, fields: Dict[str, _FieldStats]):
        for key, value in data.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            stats = fields.setdefault(path, _FieldStats())
            stats.presence += 1

            if value is None:
                stats.null_count += 1
                continue

            if isinstance(value, (list, tuple)):
                stats.is_array = True
                stats.add_type('Array')
                if value:
                    first = value[0]
                    stats.add_type(f"Array<{self.tag_for(first)}>")
                    if self.is_reference(path, first):
                        stats.is_reference = True
                continue

            if self.is_reference(path, value):
                stats.is_reference = True

            stats.add_type(self.tag_for(value))
            if self.is_plain_object(value):
                self._walk(value, path, fields)
            else:
                stats.add_sample(value)

    def is_plain_object(self, value: Any) -> bool:
        return isinstance(value, Mapping)

    def is_reference(self, path: str, value: Any) -> bool:
        return False

    def tag_for(self, value: Any) -> str:
        """Canonical tag of a single non-container value"""
        if value is None:
            return 'null'
        if isinstance(value, (list, tuple)):
            return 'Array'
        if isinstance(value, bool):
            return 'Boolean'
        if isinstance(value, str):
            return 'String'
        if isinstance(value, int):
            return 'Int'
        if isinstance(value, float):
            return 'Int' if value.is_integer() else 'Double'
        if isinstance(value, Mapping):
            return self.object_tag
        return type(value).__name__


class MongoDBSchemaInferrer(DocumentSchemaInferrer):
    """BSON-aware inference for MongoDB documents"""

    object_tag = 'Object'

    def is_reference(self, path: str, value: Any) -> bool:
        return isinstance(value, ObjectId) and path != '_id'

    def tag_for(self, value: Any) -> str:
        if isinstance(value, ObjectId):
            return 'ObjectId'
        if isinstance(value, datetime.datetime):
            return 'Date'
        if isinstance(value, (Binary, bytes)):
            return 'Binary'
        if isinstance(value, Decimal128):
            return 'Decimal128'
        return super().tag_for(value)


class FirestoreSchemaInferrer(DocumentSchemaInferrer):
    """Inference for Firestore document snapshots"""

    object_tag = 'Map'

    def is_reference(self, path: str, value: Any) -> bool:
        return isinstance(value, DocumentReference)

    def tag_for(self, value: Any) -> str:
        if isinstance(value, DocumentReference):
            return 'Reference'
        if isinstance(value, datetime.datetime):
            return 'Timestamp'
        if isinstance(value, GeoPoint):
            return 'GeoPoint'
        if isinstance(value, bytes):
            return 'Bytes'
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return 'Number'
        return super().tag_for(value)
