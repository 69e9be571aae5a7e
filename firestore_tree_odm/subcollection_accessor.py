"""
Accessor bound to one subcollection instance under a specific document.

Backs ``Document.subcollections``::

    john = await profiles.get_by_id("john")
    emails = john.subcollections["emails"]
    await emails.add({"address": "john@gmail.com"})

It is a runtime helper, never part of the document's fields.
"""

from typing import TYPE_CHECKING, Any, AsyncGenerator, Iterable, List, Mapping, Optional

from .paths import join_path

if TYPE_CHECKING:
    from .document import Document
    from .firestore_fields import Constraint
    from .options import Options
    from .schema import CollectionSchema


class SubCollectionAccessor:
    """
    Child schema operations scoped to ``<parent path>/<collection name>``.
    """

    def __init__(self, parent: "Document", child_schema: "CollectionSchema"):
        if child_schema.parent is not parent.schema:
            raise ValueError(
                f"{child_schema.collection_name!r} is not declared as a subcollection "
                f"of {parent.schema.collection_name!r}"
            )
        self._parent = parent
        self._child_schema = child_schema

    @property
    def schema(self) -> "CollectionSchema":
        return self._child_schema

    @property
    def path(self) -> str:
        return join_path(self._parent.path, self._child_schema.collection_name)

    def _doc_path(self, doc_id: str) -> str:
        return join_path(self.path, doc_id)

    def __repr__(self) -> str:
        return f"SubCollectionAccessor(path={self.path!r})"

    async def add(self, data: Mapping[str, Any], options: Optional["Options"] = None) -> "Document":
        """Create a document with a generated id in this subcollection."""
        return await self._child_schema.create_in(self.path, data, options)

    async def set(self, doc_id: str, data: Mapping[str, Any], options: Optional["Options"] = None) -> "Document":
        return await self._child_schema.write_to_path(self._doc_path(doc_id), data, options)

    async def get(self, doc_id: str, options: Optional["Options"] = None) -> Optional["Document"]:
        return await self._child_schema.get_by_path(self._doc_path(doc_id), options)

    async def exists(self, doc_id: str, options: Optional["Options"] = None) -> bool:
        return await self._child_schema.exists_by_path(self._doc_path(doc_id), options)

    async def delete(self, doc_id: str, options: Optional["Options"] = None) -> None:
        await self._child_schema.delete_by_path(self._doc_path(doc_id), options)

    async def find(
        self,
        constraints: Optional[Iterable["Constraint"]] = None,
        options: Optional["Options"] = None,
        limit: Optional[int] = None,
    ) -> AsyncGenerator["Document", None]:
        """Query this subcollection instance."""
        async for document in self._child_schema.stream_by_query_in_instance(self.path, constraints, options, limit):
            yield document

    async def find_all(
        self,
        constraints: Optional[Iterable["Constraint"]] = None,
        options: Optional["Options"] = None,
        limit: Optional[int] = None,
    ) -> List["Document"]:
        return await self._child_schema.get_by_query_in_instance(self.path, constraints, options, limit)
