import copy
import json
import os
import tempfile
from typing import Any, Callable, Dict, Optional

from filelock import FileLock, Timeout
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.repositories.slot_repo import SlotRepository
from storefront.utils.log import get_logger
from storefront.utils.transactions import smart_transaction

log = get_logger("storage")


class StorageUnavailable(Exception):
    """Raised when the client-local store cannot be read or written."""
    pass


class SlotStorage:
    """
    Named-slot key/value store for client-local state.

    Values are JSON-compatible structures. Implementations must make each
    write atomic: a reader sees either the previous value or the new one.
    """

    def read(self, name: str) -> Optional[Any]:
        raise NotImplementedError

    def write(self, name: str, value: Any) -> None:
        raise NotImplementedError

    def delete(self, name: str) -> None:
        raise NotImplementedError

    def health_check(self) -> bool:
        try:
            self.read("__health__")
            return True
        except StorageUnavailable:
            return False


class MemorySlotStorage(SlotStorage):
    """In-process store. Values are deep-copied so callers never share state."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._slots: Dict[str, Any] = copy.deepcopy(initial or {})
        self.fail_writes = False
        self.fail_reads = False

    def read(self, name):
        if self.fail_reads:
            raise StorageUnavailable("memory storage read disabled")
        return copy.deepcopy(self._slots.get(name))

    def write(self, name, value):
        if self.fail_writes:
            raise StorageUnavailable("memory storage quota exceeded")
        self._slots[name] = copy.deepcopy(value)

    def delete(self, name):
        if self.fail_writes:
            raise StorageUnavailable("memory storage quota exceeded")
        self._slots.pop(name, None)


class SqlSlotStorage(SlotStorage):
    """Slots kept in the `storage_slots` table; one transaction per write."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def read(self, name):
        try:
            with self.session_factory() as s:
                slot = SlotRepository(s).get(name)
                return copy.deepcopy(slot.value) if slot else None
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"slot read failed: {e}")
        except ValueError as e:
            log.warning(f"slot {name!r} holds undecodable JSON, treating as empty: {e}")
            return None

    def write(self, name, value):
        try:
            with self.session_factory() as s:
                with smart_transaction(s):
                    SlotRepository(s).put(name, value)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"slot write failed: {e}")

    def delete(self, name):
        try:
            with self.session_factory() as s:
                with smart_transaction(s):
                    SlotRepository(s).delete(name)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"slot delete failed: {e}")


class FileSlotStorage(SlotStorage):
    """
    All slots in one JSON document on disk.

    Writers hold a FileLock next to the document and swap in a fully written
    temp file with os.replace, so a concurrent reader never observes a
    half-written document.
    """

    def __init__(self, path: str, lock_timeout: float = 10):
        self.path = os.path.abspath(path)
        self.lock = FileLock(self.path + ".lock")
        self.lock_timeout = lock_timeout

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except ValueError as e:
                # undecodable or corrupted document: treated as empty, the next write replaces it
                log.warning(f"slot file {self.path} is corrupt, treating as empty: {e}")
                return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: Dict[str, Any]):
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".slots-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def read(self, name):
        try:
            return self._load().get(name)
        except OSError as e:
            raise StorageUnavailable(f"slot file unreadable: {e}")

    def _mutate(self, fn):
        try:
            with self.lock.acquire(timeout=self.lock_timeout):
                data = self._load()
                fn(data)
                self._dump(data)
        except Timeout:
            raise StorageUnavailable("could not acquire slot file lock")
        except (OSError, TypeError, ValueError) as e:
            raise StorageUnavailable(f"slot file write failed: {e}")

    def write(self, name, value):
        self._mutate(lambda data: data.__setitem__(name, value))

    def delete(self, name):
        self._mutate(lambda data: data.pop(name, None))


def build_storage(backend: str, session_factory=None, path: Optional[str] = None) -> SlotStorage:
    if backend == "sql":
        if session_factory is None:
            from storefront.db import SessionLocal

            session_factory = SessionLocal
        return SqlSlotStorage(session_factory)
    if backend == "file":
        return FileSlotStorage(path or "./storefront_slots.json")
    if backend == "memory":
        return MemorySlotStorage()
    raise ValueError(f"unknown storage backend: {backend}")
