"""A small persistent store of embedded documents grouped into collections."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping

from huntr.models import CVChunk

log = logging.getLogger(__name__)

VECTOR_DB_PATH = "/data/chromadb"
MAX_COLLECTIONS = 2


class VectorDBError(Exception):
    """Raised when the vector store cannot be opened or updated."""


@dataclass
class Document:
    """A stored piece of text with its embedding and metadata."""

    id: str
    content: str = ""
    metadata: dict[str, str] = field(default_factory=dict)
    embedding: list[float] = field(default_factory=list)


def _document_to_dict(doc: Document) -> dict[str, Any]:
    return {
        "id": doc.id,
        "content": doc.content,
        "metadata": dict(doc.metadata),
        "embedding": list(doc.embedding),
    }


def _string_map(value: Any, what: str) -> dict[str, str]:
    if not isinstance(value, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ValueError(f"{what}: expected a string map")
    return dict(value)


def _document_from_dict(data: Any) -> Document:
    if not isinstance(data, dict):
        raise ValueError("document: expected an object")
    doc_id, content, embedding = data.get("id"), data.get("content", ""), data.get("embedding")
    if not isinstance(doc_id, str) or not isinstance(content, str) or not isinstance(embedding, list):
        raise ValueError("document: malformed fields")
    return Document(
        id=doc_id,
        content=content,
        metadata=_string_map(data.get("metadata", {}), "document metadata"),
        embedding=[float(value) for value in embedding],
    )


class Collection:
    """A named set of documents persisted to one file."""

    def __init__(
        self,
        name: str,
        metadata: Mapping[str, str],
        file_path: Path,
        documents: Iterable[Document] = (),
    ) -> None:
        self.name = name
        self.metadata = dict(metadata)
        self.documents: dict[str, Document] = {doc.id: doc for doc in documents}
        self._file = file_path

    def __len__(self) -> int:
        return len(self.documents)

    def add_documents(self, documents: Iterable[Document]) -> None:
        """Add or replace documents; each needs an id and an embedding."""
        documents = list(documents)
        for doc in documents:
            if not doc.id:
                raise VectorDBError("document has no id")
            if not doc.embedding:
                raise VectorDBError(f"document {doc.id}: no embedding")
        for doc in documents:
            self.documents[doc.id] = doc
        self._save()

    def _save(self) -> None:
        payload = {
            "name": self.name,
            "metadata": self.metadata,
            "documents": [_document_to_dict(doc) for doc in self.documents.values()],
        }
        temp = self._file.with_name(self._file.name + ".tmp")
        try:
            temp.write_text(json.dumps(payload), encoding="utf-8")
            os.replace(temp, self._file)
        except OSError as exc:
            raise VectorDBError(f"persist collection {self.name}: {exc}") from exc

    @classmethod
    def _load(cls, file_path: Path) -> Collection:
        data = json.loads(file_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{file_path.name}: expected an object")
        name, documents = data.get("name"), data.get("documents", [])
        if not isinstance(name, str) or not name or not isinstance(documents, list):
            raise ValueError(f"{file_path.name}: malformed collection")
        return cls(
            name,
            _string_map(data.get("metadata", {}), "collection metadata"),
            file_path,
            (_document_from_dict(item) for item in documents),
        )


class VectorDB:
    """Persistent collections of embedded documents under one directory."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or VECTOR_DB_PATH)
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise VectorDBError(f"vector_db: mkdir: {exc}") from exc
        try:
            self._collections = self._load_all()
        except (OSError, ValueError) as exc:
            log.warning(
                "vector DB open failed, removing corrupted data and recreating",
                extra={"path": str(self.path), "error": str(exc)},
            )
            self._collections = self._recover(exc)
            log.info("vector DB recovered successfully", extra={"path": str(self.path)})

    def _load_all(self) -> dict[str, Collection]:
        collections: dict[str, Collection] = {}
        for file_path in sorted(self.path.glob("*.json")):
            collection = Collection._load(file_path)
            if collection.name in collections:
                raise ValueError(f"duplicate collection {collection.name}")
            collections[collection.name] = collection
        return collections

    def _recover(self, cause: Exception) -> dict[str, Collection]:
        try:
            shutil.rmtree(self.path)
        except OSError as exc:
            raise VectorDBError(f"vector_db: open: {cause} (recovery failed: {exc})") from exc
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise VectorDBError(f"vector_db: mkdir after recovery: {exc}") from exc
        try:
            return self._load_all()
        except (OSError, ValueError) as exc:
            raise VectorDBError(f"vector_db: open after recovery: {exc}") from exc

    def _file_for(self, name: str) -> Path:
        digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:32]
        return self.path / f"{digest}.json"

    def create_collection(self, name: str) -> Collection:
        """Create a new, empty collection stamped with its creation time."""
        if not name:
            raise VectorDBError("create collection: empty name")
        if name in self._collections:
            raise VectorDBError(f"create collection {name}: already exists")
        created_at = datetime.now().astimezone().isoformat(timespec="seconds")
        collection = Collection(name, {"created_at": created_at}, self._file_for(name))
        collection._save()
        self._collections[name] = collection
        log.info("created collection", extra={"collection": name})
        return collection

    def get_collection(self, name: str) -> Collection | None:
        """Return the named collection, or None if there is none."""
        return self._collections.get(name)

    def list_collections(self) -> list[str]:
        """Return all collection names in sorted order."""
        return sorted(self._collections)

    def delete_collection(self, name: str) -> None:
        """Delete a collection; deleting a missing one does nothing."""
        collection = self._collections.pop(name, None)
        if collection is None:
            return
        try:
            collection._file.unlink(missing_ok=True)
        except OSError as exc:
            raise VectorDBError(f"delete collection {name}: {exc}") from exc

    def auto_rotate_collections(self) -> None:
        """Delete the oldest collections beyond MAX_COLLECTIONS.

        Collection names carry a sortable timestamp, so name order is age order.
        """
        names = self.list_collections()
        excess = len(names) - MAX_COLLECTIONS
        for name in names[: max(excess, 0)]:
            try:
                self.delete_collection(name)
            except VectorDBError as exc:
                log.error("error deleting collection", extra={"collection": name, "error": str(exc)})
            else:
                log.info("auto-rotated collection", extra={"removed": name})

    def store_cv_chunks(
        self,
        collection_name: str,
        chunks: Iterable[CVChunk],
        metadata: Mapping[str, str] | None = None,
    ) -> Collection:
        """Store embedded CV chunks in the named collection and return it."""
        self.auto_rotate_collections()
        try:
            collection = self.create_collection(collection_name)
        except VectorDBError as exc:
            existing = self.get_collection(collection_name)
            if existing is None:
                raise VectorDBError(
                    f"could not create or get collection {collection_name}: {exc}"
                ) from exc
            collection = existing

        chunks = list(chunks)
        documents = [
            Document(
                id=f"chunk_{position}",
                content=chunk.text,
                metadata={
                    "chunk_index": str(chunk.index),
                    "start_char": str(chunk.start_char),
                    "end_char": str(chunk.end_char),
                    **(metadata or {}),
                },
                embedding=list(chunk.embedding),
            )
            for position, chunk in enumerate(chunks)
        ]
        try:
            collection.add_documents(documents)
        except VectorDBError as exc:
            raise VectorDBError(f"store chunks: {exc}") from exc

        log.info("stored CV chunks", extra={"collection": collection_name, "count": len(chunks)})
        return collection