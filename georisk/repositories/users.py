from __future__ import annotations

import logging

from pydantic import TypeAdapter

from georisk.models import UserRecord
from georisk.record_store import RecordStore, validate_key
from georisk.repositories._collection import decode_collection, encode_collection

logger = logging.getLogger(__name__)

DEFAULT_USERS_KEY = "georisk.users"

_USERS_ADAPTER = TypeAdapter(list[UserRecord])


class UserRepository:
    def __init__(self, record_store: RecordStore, *, key: str = DEFAULT_USERS_KEY) -> None:
        self._store = record_store
        self._key = validate_key(key)

    @property
    def key(self) -> str:
        return self._key

    def list_all(self) -> list[UserRecord]:
        return decode_collection(_USERS_ADAPTER, key=self._key, raw=self._store.read_collection(self._key))

    def upsert(self, user: UserRecord) -> UserRecord:
        """Replace the user with the same id in place, or append a new one."""
        with self._store.lock_for(self._key):
            users = self.list_all()
            for index, existing in enumerate(users):
                if existing.id == user.id:
                    users[index] = user
                    break
            else:
                users.append(user)
            self._store.write_collection(self._key, encode_collection(users))
        logger.info("user_upserted id=%s role=%s", user.id, user.role.value)
        return user
