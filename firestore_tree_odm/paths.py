"""
Path resolution for hierarchical schemas.

A location alternates collection names and document ids::

    profiles/john/contactInfo/1/emails/gmail
    ^^^^^^^^      ^^^^^^^^^^^   ^^^^^^

The collection-name segments (even positions) must equal the names found by
walking a schema's ``parent`` chain from the root down to the schema itself.
"""

import logging
from typing import TYPE_CHECKING, List, NamedTuple, Optional

from .exceptions import SchemaMismatch

if TYPE_CHECKING:
    from .schema import CollectionSchema

logger = logging.getLogger(__name__)

SEPARATOR = "/"


class ResolvedPath(NamedTuple):
    """A validated location: a collection path plus an optional document id."""

    collection_path: str
    document_id: Optional[str] = None

    @property
    def path(self) -> str:
        if self.document_id is None:
            return self.collection_path
        return join_path(self.collection_path, self.document_id)


def join_path(*segments: str) -> str:
    return SEPARATOR.join(str(segment).strip(SEPARATOR) for segment in segments)


def split_path(path: str) -> List[str]:
    if not isinstance(path, str) or not path.strip(SEPARATOR):
        raise SchemaMismatch(f"Invalid path {path!r}: expected a non-empty string", path=path)
    segments = path.strip(SEPARATOR).split(SEPARATOR)
    if any(not segment for segment in segments):
        raise SchemaMismatch(f"Invalid path {path!r}: empty segment", path=path)
    return segments


def expected_layout(schema: "CollectionSchema", document: bool = True) -> str:
    """Human readable template, e.g. ``profiles/{id}/emails/{id}``."""
    parts = []
    for name in schema.collection_names:
        parts.extend([name, "{id}"])
    if not document:
        parts.pop()
    return SEPARATOR.join(parts)


def _check_alignment(schema: "CollectionSchema", path: str, segments: List[str], document: bool) -> None:
    names = schema.collection_names
    expected_length = 2 * len(names) - (0 if document else 1)
    layout = expected_layout(schema, document=document)
    if len(segments) != expected_length:
        raise SchemaMismatch(
            f"Path {path!r} has {len(segments)} segments; "
            f"schema {schema.collection_name!r} expects {layout!r}",
            path=path,
            expected=layout,
        )
    for level, (found, declared) in enumerate(zip(segments[0::2], names)):
        if found != declared:
            raise SchemaMismatch(
                f"Path {path!r} names collection {found!r} at level {level}; "
                f"schema {schema.collection_name!r} expects {layout!r}",
                path=path,
                expected=layout,
            )


def resolve_document_path(schema: "CollectionSchema", path: str) -> ResolvedPath:
    """Validate ``path`` as a document location of ``schema``."""
    segments = split_path(path)
    _check_alignment(schema, path, segments, document=True)
    resolved = ResolvedPath(SEPARATOR.join(segments[:-1]), segments[-1])
    logger.debug(f"Resolved document path {path!r} -> {resolved}")
    return resolved


def resolve_collection_path(schema: "CollectionSchema", path: str) -> ResolvedPath:
    """Validate ``path`` as one concrete instance of ``schema``'s collection."""
    segments = split_path(path)
    _check_alignment(schema, path, segments, document=False)
    return ResolvedPath(SEPARATOR.join(segments))


def collection_group_id(schema: "CollectionSchema") -> str:
    # Matches every collection with this name, at any depth, under any parent.
    return schema.collection_name


def parent_path_of(path: str) -> Optional[str]:
    """Location of the document owning ``path``'s collection, if any."""
    segments = split_path(path)
    if len(segments) <= 2:
        return None
    return SEPARATOR.join(segments[:-2])


def matches_schema(schema: "CollectionSchema", path: str) -> bool:
    """True when ``path`` is a document location of ``schema``."""
    try:
        resolve_document_path(schema, path)
    except SchemaMismatch:
        return False
    return True
