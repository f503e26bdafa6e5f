# persistence.py
import os, json, sqlite3, tempfile, shutil, logging
from threading import Lock
from typing import Callable, Dict, List, Optional
from datetime import datetime, timezone
import random
import string

from models import DATA_DIR, COLLECTIONS, SQLITE_PATH, SCHEMA_SQL

logger = logging.getLogger(__name__)

STORE_PATH = os.path.join(DATA_DIR, "store.json")

_ID_PREFIX = {"bookings": "BK", "attendance": "AT", "settings": "ST"}

Callback = Callable[[List[Dict]], None]


class StoreError(RuntimeError):
    """Raised when a write to the store fails."""
    pass


def atomic_write_json(path: str, obj, prefix: str = ".tmp.") -> None:
    """Write JSON to a temp file in the same directory, then move it into place."""
    folder = os.path.dirname(path) or "."
    os.makedirs(folder, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=prefix, dir=folder)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(obj, f, ensure_ascii=False, indent=2)
        shutil.move(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)


def get_store(backend: str, path: str = None):
    backend = (backend or "json").lower()
    if backend == "db":
        return SQLiteStore(path or SQLITE_PATH)
    return JSONStore(path or STORE_PATH)


def _gen_id(collection: str) -> str:
    # BK-YYYYMMDD-XXXXX (letters/digits)
    salt = ''.join(random.choices(string.ascii_uppercase + string.digits, k=5))
    prefix = _ID_PREFIX.get(collection, "ID")
    return f"{prefix}-{datetime.now(timezone.utc).strftime('%Y%m%d')}-{salt}"


def _is_unsaved(record_id) -> bool:
    rid = str(record_id or "").strip()
    return rid == "" or rid.startswith("TEMP")


class _NotifyingStore:
    """
    Shared upsert/delete/subscribe plumbing. Subclasses implement
    `_load(collection) -> {id: record}` and `_save(collection, records)`.

    Writes are last-writer-wins; every subscriber of a collection is handed
    the full collection after each change, and once on subscribe.
    """

    def __init__(self):
        self._lock = Lock()
        self._subscribers: Dict[str, List[Callback]] = {c: [] for c in COLLECTIONS}

    # ===== API =====

    def list(self, collection: str) -> List[Dict]:
        self._check(collection)
        with self._lock:
            return [dict(r) for r in self._load(collection).values()]

    def get(self, collection: str, record_id: str) -> Optional[Dict]:
        self._check(collection)
        with self._lock:
            row = self._load(collection).get(record_id)
        return dict(row) if row else None

    def upsert(self, collection: str, record: Dict) -> Dict:
        """Insert or overwrite by id; assigns an id on first save. Returns the stored record."""
        self._check(collection)
        row = dict(record or {})
        if _is_unsaved(row.get("id")):
            row["id"] = _gen_id(collection)
        row["updatedAt"] = datetime.now(timezone.utc).isoformat(timespec="seconds")
        with self._lock:
            data = self._load(collection)
            data[row["id"]] = row
            self._write(collection, data)
        logger.info("saved %s/%s", collection, row["id"])
        self._notify(collection)
        return dict(row)

    def delete(self, collection: str, record_id: str) -> None:
        self._check(collection)
        with self._lock:
            data = self._load(collection)
            if record_id not in data:
                raise KeyError(f"{collection} record '{record_id}' not found")
            del data[record_id]
            self._write(collection, data)
        logger.info("deleted %s/%s", collection, record_id)
        self._notify(collection)

    def delete_all(self, collection: str) -> int:
        self._check(collection)
        with self._lock:
            n = len(self._load(collection))
            self._write(collection, {})
        logger.warning("⚠️ wiped %d records from %s", n, collection)
        self._notify(collection)
        return n

    def subscribe(self, collection: str, callback: Callback) -> Callable[[], None]:
        """Register `callback`; it fires right away with the current collection. Returns an unsubscribe function."""
        self._check(collection)
        self._subscribers[collection].append(callback)
        callback(self.list(collection))

        def unsubscribe():
            try:
                self._subscribers[collection].remove(callback)
            except ValueError:
                pass
        return unsubscribe

    # ===== internals =====

    def _check(self, collection: str):
        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown collection '{collection}'")

    def _write(self, collection: str, data: Dict[str, Dict]):
        try:
            self._save(collection, data)
        except (OSError, sqlite3.Error) as e:
            logger.error("⚠️ store write failed for %s: %s", collection, e)
            raise StoreError(f"Could not save {collection}: {e}") from e

    def _notify(self, collection: str):
        rows = self.list(collection)
        for cb in list(self._subscribers[collection]):
            try:
                cb([dict(r) for r in rows])
            except Exception:
                logger.exception("⚠️ %s subscriber failed", collection)

    def _load(self, collection: str) -> Dict[str, Dict]:
        raise NotImplementedError

    def _save(self, collection: str, data: Dict[str, Dict]) -> None:
        raise NotImplementedError


class JSONStore(_NotifyingStore):
    """All collections in one JSON document: {collection: {id: record}}."""

    def __init__(self, path: str = STORE_PATH):
        super().__init__()
        self.path = path
        self._ensure_file()

    def _ensure_file(self):
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        if not os.path.exists(self.path):
            self._atomic_write({c: {} for c in COLLECTIONS})

    def _read_all(self) -> Dict[str, Dict]:
        with open(self.path, "r", encoding="utf-8") as f:
            raw = json.load(f) or {}
        for c in COLLECTIONS:
            raw.setdefault(c, {})
        return raw

    def _atomic_write(self, obj: Dict):
        atomic_write_json(self.path, obj, prefix=".store.")

    def _load(self, collection: str) -> Dict[str, Dict]:
        return self._read_all()[collection]

    def _save(self, collection: str, data: Dict[str, Dict]) -> None:
        everything = self._read_all()
        everything[collection] = data
        self._atomic_write(everything)


class SQLiteStore(_NotifyingStore):
    """One `documents` table; each record is stored as a JSON body."""

    def __init__(self, path: str = SQLITE_PATH):
        super().__init__()
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        self.conn = sqlite3.connect(path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        with self.conn:
            self.conn.executescript(SCHEMA_SQL)

    def _load(self, collection: str) -> Dict[str, Dict]:
        rows = self.conn.execute(
            "SELECT id, body FROM documents WHERE collection = ? ORDER BY rowid",
            (collection,)
        ).fetchall()
        return {r["id"]: json.loads(r["body"]) for r in rows}

    def _save(self, collection: str, data: Dict[str, Dict]) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM documents WHERE collection = ?", (collection,))
            self.conn.executemany(
                "INSERT INTO documents (collection, id, body) VALUES (?, ?, ?)",
                [(collection, rid, json.dumps(row, ensure_ascii=False)) for rid, row in data.items()]
            )
