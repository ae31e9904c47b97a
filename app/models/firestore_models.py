"""
Pydantic base model and lightweight Firestore helpers.
These are thin wrappers to map Firestore documents <-> Pydantic models
and provide the CRUD helpers used by the Firestore adapters.
"""
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T", bound="FirestoreModel")

VERSION_FIELD = "version"


class FirestoreModel(BaseModel):
    id: Optional[str] = Field(None, alias="id")

    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    @classmethod
    def from_doc(cls: Type[T], doc: Any) -> Optional[T]:
        if doc is None:
            return None
        if hasattr(doc, "to_dict"):
            data = doc.to_dict() or {}
            data["id"] = getattr(doc, "id", None)
        elif isinstance(doc, dict):
            data = dict(doc)
        else:
            return None
        data.pop(VERSION_FIELD, None)
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        d = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        # remove `id` when writing into Firestore (use document id instead)
        d.pop("id", None)
        return d


# --- Firestore helpers ---
try:
    from firebase_admin import firestore
except Exception:  # pragma: no cover - allows importing without firebase during tests
    firestore = None


def _get_client():
    if firestore is None:
        raise RuntimeError("firebase_admin.firestore is not available. Initialize Firebase before using these helpers.")
    return firestore.client()


def get_doc(collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
    db = _get_client()
    ref = db.collection(collection).document(str(doc_id))
    doc = ref.get()
    if not doc.exists:
        return None
    d = doc.to_dict()
    d["id"] = doc.id
    return d


def list_docs(collection: str, where: Optional[List[tuple]] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    db = _get_client()
    q = db.collection(collection)
    if where:
        for w in where:
            if len(w) == 3:
                field, op, value = w
                q = q.where(field, op, value)
    if limit:
        docs = q.limit(limit).stream()
    else:
        docs = q.stream()
    out = []
    for d in docs:
        dd = d.to_dict()
        dd["id"] = d.id
        out.append(dd)
    return out


def commit_versioned(
    collection: str,
    doc_id: str,
    data: Dict[str, Any],
    expected_version: int,
    on_conflict: Callable[[int], Exception],
) -> int:
    """Write `data` only if the stored version still equals `expected_version`.

    The read and the write happen inside one Firestore transaction. A brand new
    document has version 0. Returns the new version; raises `on_conflict(actual)`
    otherwise.
    """
    db = _get_client()
    ref = db.collection(collection).document(str(doc_id))
    transaction = db.transaction()

    @firestore.transactional
    def _commit(tx):
        snapshot = ref.get(transaction=tx)
        actual = int((snapshot.to_dict() or {}).get(VERSION_FIELD, 0)) if snapshot.exists else 0
        if actual != expected_version:
            raise on_conflict(actual)
        new_version = actual + 1
        tx.set(ref, {**data, VERSION_FIELD: new_version})
        return new_version

    return _commit(transaction)


def create_unique(
    collection: str,
    doc_id: str,
    data: Dict[str, Any],
    where: List[tuple],
    check: Callable[[Dict[str, Any]], Optional[Exception]],
) -> int:
    """Create a document unless a matching one is refused by `check`.

    The query runs inside the transaction, so two racing creates for the same
    key cannot both commit. `check` returns the exception to raise, or None.
    """
    db = _get_client()
    ref = db.collection(collection).document(str(doc_id))
    query = db.collection(collection)
    for field, op, value in where:
        query = query.where(field, op, value)
    transaction = db.transaction()

    @firestore.transactional
    def _create(tx):
        for snapshot in query.stream(transaction=tx):
            existing = snapshot.to_dict() or {}
            existing["id"] = snapshot.id
            error = check(existing)
            if error is not None:
                raise error
        tx.create(ref, {**data, VERSION_FIELD: 1})
        return 1

    return _create(transaction)


__all__ = [
    "FirestoreModel",
    "VERSION_FIELD",
    "get_doc",
    "list_docs",
    "commit_versioned",
    "create_unique",
]
