"""
Repository Base
Shared Motor plumbing for the CRM read models and the intelligence collections.
"""
from typing import Generic, TypeVar, Type, Optional, List, Dict, Any
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
import datetime as dt

from ..models.base import MongoBaseModel
from ..utils.observability import logger

T = TypeVar("T", bound=MongoBaseModel)

Sort = List[tuple]


def to_object_id(document_id: Any) -> Any:
    """
    ObjectId when the string is one, the raw value otherwise.
    CRM records imported from other stores keep string ids.
    """
    if isinstance(document_id, ObjectId):
        return document_id
    try:
        return ObjectId(document_id)
    except (InvalidId, TypeError):
        return document_id


class BaseRepository(Generic[T]):
    """
    Typed access to one collection.

    Subclasses bind the collection name and model:

        class LeadRepository(BaseRepository[Lead]):
            def __init__(self, database: AsyncIOMotorDatabase):
                super().__init__(database, "leads", Lead)

    Reads validate documents into `model_class`; unknown document keys
    (fields the wider CRM stores that this service never reads) are dropped
    before validation.
    """

    def __init__(
        self,
        database: AsyncIOMotorDatabase,
        collection_name: str,
        model_class: Type[T]
    ):
        self.database = database
        self.collection: AsyncIOMotorCollection = database[collection_name]
        self.model_class = model_class
        self.collection_name = collection_name

    # ============================================
    # CONVERSION
    # ============================================

    def _to_document(self, record: T) -> Dict[str, Any]:
        return record.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)

    def _to_model(self, doc: Dict[str, Any]) -> T:
        known = self.model_class.model_fields.keys()
        fields = {k: v for k, v in doc.items() if k in known}
        if "_id" in doc:
            fields["_id"] = str(doc["_id"])
        return self.model_class.model_validate(fields)

    @staticmethod
    def _stamp(records: List[T]) -> None:
        now = dt.datetime.now(dt.UTC)
        for record in records:
            record.created_at = now
            record.updated_at = now

    # ============================================
    # WRITES
    # ============================================

    async def create(self, record: T) -> T:
        """
        Insert one record and return it with `id` set.

        Raises:
            pymongo.errors.DuplicateKeyError: A unique index rejected the record
        """
        self._stamp([record])
        result = await self.collection.insert_one(self._to_document(record))
        record.id = str(result.inserted_id)

        logger.bind(document_id=record.id).debug(f"Inserted into {self.collection_name}")
        return record

    async def bulk_create(self, records: List[T]) -> List[T]:
        """Insert records in one round trip; an empty list is a no-op."""
        if not records:
            return []

        self._stamp(records)
        result = await self.collection.insert_many([self._to_document(r) for r in records])
        for record, inserted_id in zip(records, result.inserted_ids):
            record.id = str(inserted_id)

        logger.debug(f"Inserted {len(records)} into {self.collection_name}")
        return records

    async def upsert_one(
        self,
        filter_dict: Dict[str, Any],
        set_fields: Dict[str, Any],
        set_on_insert: Optional[Dict[str, Any]] = None,
        inc_fields: Optional[Dict[str, int]] = None
    ) -> T:
        """
        Update-or-insert the single document matching `filter_dict`.

        The filter must be backed by a unique index, otherwise two concurrent
        first writes can both insert. `set_fields` is applied on every call,
        `set_on_insert` only on creation, `inc_fields` on every call.

        Returns:
            The document as stored after the write
        """
        now = dt.datetime.now(dt.UTC)
        update: Dict[str, Any] = {
            "$set": {**set_fields, "updated_at": now},
            "$setOnInsert": {"created_at": now, **(set_on_insert or {})},
        }
        if inc_fields:
            update["$inc"] = inc_fields

        doc = await self.collection.find_one_and_update(
            filter_dict,
            update,
            upsert=True,
            return_document=ReturnDocument.AFTER
        )

        logger.bind(document_id=str(doc["_id"])).debug(f"Upserted into {self.collection_name}")
        return self._to_model(doc)

    # ============================================
    # READS
    # ============================================

    async def find_one(self, filter_dict: Dict[str, Any], sort: Optional[Sort] = None) -> Optional[T]:
        doc = await self.collection.find_one(filter_dict, sort=sort)
        return self._to_model(doc) if doc else None

    async def find_many(
        self,
        filter_dict: Dict[str, Any],
        limit: int = 100,
        skip: int = 0,
        sort: Optional[Sort] = None
    ) -> List[T]:
        """
        Args:
            filter_dict: MongoDB query filter
            limit: Page size
            skip: Documents skipped before the page
            sort: (field, direction) pairs, applied before skip/limit
        """
        cursor = self.collection.find(filter_dict)
        if sort:
            cursor = cursor.sort(sort)
        docs = await cursor.skip(skip).limit(limit).to_list(length=limit)
        return [self._to_model(doc) for doc in docs]

    async def count(self, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        return await self.collection.count_documents(filter_dict or {})
