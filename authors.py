"""
Author references

Forum entries are written either by a User or by a Doctor. An entry stores
the author id plus an ``author_type`` tag, and the tag selects the collection
the id is looked up in. Resolution yields a display projection, or None when
the referenced record is gone.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, NamedTuple, Optional, Tuple

from database import get_documents_by_ids, get_document

logger = logging.getLogger(__name__)

# author_type tag -> (collection, projected fields)
AUTHOR_KINDS = {
    "User": ("user", ("name",)),
    "Doctor": ("doctor", ("name", "specialization")),
}


class AuthorRef(NamedTuple):
    kind: str
    id: str


def _project(doc: dict, fields: Tuple[str, ...]) -> dict:
    out = {"id": str(doc["_id"])}
    for field in fields:
        out[field] = doc.get(field)
    return out


def resolve(ref: AuthorRef) -> Optional[dict]:
    kind = AUTHOR_KINDS.get(ref.kind)
    if kind is None:
        logger.warning(f"Unknown author type {ref.kind!r} for author {ref.id}")
        return None
    collection, fields = kind
    doc = get_document(collection, ref.id, projection={f: 1 for f in fields})
    return _project(doc, fields) if doc else None


def resolve_many(refs: Iterable[AuthorRef]) -> Dict[AuthorRef, dict]:
    """Resolve a batch of references with one query per author kind. Missing authors are left out."""
    by_kind = defaultdict(set)
    for ref in refs:
        if ref.kind in AUTHOR_KINDS:
            by_kind[ref.kind].add(ref.id)

    resolved = {}
    for kind, ids in by_kind.items():
        collection, fields = AUTHOR_KINDS[kind]
        for doc in get_documents_by_ids(collection, ids, projection={f: 1 for f in fields}):
            resolved[AuthorRef(kind, str(doc["_id"]))] = _project(doc, fields)
    return resolved


def ref_of(entry: dict) -> AuthorRef:
    return AuthorRef(entry.get("author_type"), str(entry.get("author")))
