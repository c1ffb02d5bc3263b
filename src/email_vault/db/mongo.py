from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Type, TypeVar
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from .base import BaseDBManager
from ..errors import StorageError
from ..models.base import DBSerializableModel
from ..models.credits import CreditBalance
from ..models.history import HistoryRecord
from ..models.ledger import LedgerEntry
from ..models.signup import SignupLog


TModel = TypeVar("TModel", bound=DBSerializableModel)

_MODELS: List[Type[DBSerializableModel]] = [CreditBalance, HistoryRecord, SignupLog]


@asynccontextmanager
async def _storage_errors(operation: str) -> AsyncIterator[None]:
    try:
        yield
    except DuplicateKeyError as exc:
        raise StorageError(f"{operation}: duplicate key") from exc
    except PyMongoError as exc:
        raise StorageError(f"{operation}: {exc}") from exc


class MongoDBManager(BaseDBManager):
    """
    MongoDB implementation of BaseDBManager using motor (async driver).

    Each model's primary key is stored as the document `_id` and mirrored in
    the model attribute, which keeps the rest of the system agnostic of
    MongoDB specifics. Credit balances use `user_id` as `_id`.
    """

    def __init__(self, database: AsyncIOMotorDatabase) -> None:
        self._db = database

    @classmethod
    def from_client_uri(cls, uri: str, db_name: str) -> "MongoDBManager":
        client = AsyncIOMotorClient(uri, tz_aware=True)
        return cls(client[db_name])

    async def ensure_indexes(self) -> None:
        async with _storage_errors("ensure_indexes"):
            for model in _MODELS:
                col = self._db[model.collection_name]
                for index in model.indexes:
                    await col.create_index(list(index))
                for fields in model.unique_indexes:
                    await col.create_index([(f, 1) for f in fields], unique=True)

    # Helper utilities
    @staticmethod
    def _prepare_insert(model: TModel) -> Dict[str, Any]:
        data = model.serialize_for_db()
        pk = model.primary_key or "id"
        model_id = getattr(model, pk, None)
        if not model_id:
            model_id = uuid4().hex
            setattr(model, pk, model_id)
            data[pk] = model_id
        data["_id"] = model_id
        return data

    @staticmethod
    def _decode(model_cls: Type[TModel], doc: Optional[Mapping[str, Any]]) -> Optional[TModel]:
        if doc is None:
            return None
        data = dict(doc)
        pk = model_cls.primary_key or "id"
        if "_id" in data and pk not in data:
            data[pk] = str(data["_id"])
        data.pop("_id", None)
        return model_cls.model_validate(data)

    # Credit balance
    async def create_credit_balance(self, balance: CreditBalance) -> CreditBalance:
        col = self._db[CreditBalance.collection_name]
        async with _storage_errors("create_credit_balance"):
            await col.insert_one(self._prepare_insert(balance))
        return balance

    async def get_credit_balance(self, user_id: str) -> Optional[CreditBalance]:
        col = self._db[CreditBalance.collection_name]
        async with _storage_errors("get_credit_balance"):
            doc = await col.find_one({"_id": user_id})
        return self._decode(CreditBalance, doc)

    async def debit_credits(self, user_id: str, amount: int) -> Optional[int]:
        col = self._db[CreditBalance.collection_name]
        async with _storage_errors("debit_credits"):
            doc = await col.find_one_and_update(
                {"_id": user_id, "credits": {"$gte": amount}},
                {
                    "$inc": {"credits": -amount},
                    "$set": {"updated_at": datetime.now(timezone.utc)},
                },
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            return None
        return int(doc["credits"])

    # History
    async def add_history_record(self, record: HistoryRecord) -> HistoryRecord:
        col = self._db[HistoryRecord.collection_name]
        async with _storage_errors("add_history_record"):
            await col.insert_one(self._prepare_insert(record))
        return record

    async def get_history_record(self, record_id: str) -> Optional[HistoryRecord]:
        col = self._db[HistoryRecord.collection_name]
        async with _storage_errors("get_history_record"):
            doc = await col.find_one({"_id": record_id})
        return self._decode(HistoryRecord, doc)

    async def list_history_records(self, user_id: str) -> List[HistoryRecord]:
        col = self._db[HistoryRecord.collection_name]
        async with _storage_errors("list_history_records"):
            cursor = col.find({"user_id": user_id}).sort("created_at", -1)
            docs = await cursor.to_list(length=None)
        return [self._decode(HistoryRecord, d) for d in docs if d is not None]  # type: ignore[misc]

    async def delete_history_record(self, record_id: str) -> bool:
        col = self._db[HistoryRecord.collection_name]
        async with _storage_errors("delete_history_record"):
            result = await col.delete_one({"_id": record_id})
        return result.deleted_count > 0

    # Sign-up log
    async def add_signup_log(self, entry: SignupLog) -> SignupLog:
        col = self._db[SignupLog.collection_name]
        async with _storage_errors("add_signup_log"):
            await col.insert_one(self._prepare_insert(entry))
        return entry

    async def get_signup_log_by_ip(self, ip_address: str) -> Optional[SignupLog]:
        col = self._db[SignupLog.collection_name]
        async with _storage_errors("get_signup_log_by_ip"):
            doc = await col.find_one({"ip_address": ip_address})
        return self._decode(SignupLog, doc)

    # Ledger
    async def add_ledger_entry(self, entry: LedgerEntry) -> LedgerEntry:
        col = self._db[LedgerEntry.collection_name]
        async with _storage_errors("add_ledger_entry"):
            await col.insert_one(self._prepare_insert(entry))
        return entry
