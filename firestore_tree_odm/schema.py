import logging
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    AsyncGenerator,
    ClassVar,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
)

from google.cloud.firestore_v1.base_query import FieldFilter
from google.cloud.firestore_v1.field_path import FieldPath

from .document import Document
from .firestore_fields import Constraint, FirestoreField, split_constraints
from .options import Options, resolve_options
from .paths import (
    SEPARATOR,
    ResolvedPath,
    collection_group_id,
    join_path,
    matches_schema,
    resolve_collection_path,
    resolve_document_path,
)
from .pydantic_compat import Field, FrozenModel, PrivateAttr, rebuild_model
from .sanitizer import sanitize

if TYPE_CHECKING:
    from .firestore_client import FirestoreDB

logger = logging.getLogger(__name__)

Data = Mapping[str, Any]


class CollectionSchema(FrozenModel):
    """
    Declared collection: its name, allowed fields, defaults and parent.

    Use :class:`Model` for root collections and :class:`Submodel` for
    collections nested under a document of another schema. Ancestry is the
    chain of ``parent`` references, so a schema can only point at schemas
    that already exist and the tree can never contain a cycle.
    """

    # --------------------------------------------------------------------------
    # Declared definition
    # --------------------------------------------------------------------------
    collection_name: str
    collection_props: FrozenSet[str] = Field(default_factory=frozenset)
    prop_defaults: Mapping[str, Any] = Field(default_factory=dict)
    parent: Optional["CollectionSchema"] = None

    # --------------------------------------------------------------------------
    # Injected FirestoreDB instance (see init_firestore_tree)
    # --------------------------------------------------------------------------
    _db: Optional[Any] = PrivateAttr(default=None)

    _registered_schemas: ClassVar[List["CollectionSchema"]] = []

    # Schemas are compared with ``is`` throughout; hash them the same way.
    __hash__ = object.__hash__

    def __init__(self, **data: Any):
        super().__init__(**data)
        if not self.collection_name or SEPARATOR in self.collection_name:
            raise ValueError(f"Invalid collection name {self.collection_name!r}")
        # frozen=True only guards attribute assignment, not the dict itself
        object.__setattr__(self, "prop_defaults", MappingProxyType(dict(self.prop_defaults)))

    # --------------------------------------------------------------------------
    # Ancestry
    # --------------------------------------------------------------------------
    @property
    def ancestry(self) -> Tuple["CollectionSchema", ...]:
        """Schemas from the root down to (and including) this one."""
        chain = []
        node: Optional[CollectionSchema] = self
        while node is not None:
            chain.append(node)
            node = node.parent
        return tuple(reversed(chain))

    @property
    def collection_names(self) -> Tuple[str, ...]:
        return tuple(node.collection_name for node in self.ancestry)

    @property
    def depth(self) -> int:
        return len(self.ancestry)

    @property
    def is_root(self) -> bool:
        return self.parent is None

    def field(self, name: str) -> FirestoreField:
        """Field handle for building constraints; ``"id"`` targets the document id."""
        return FirestoreField(FieldPath.document_id() if name == "id" else name)

    # --------------------------------------------------------------------------
    # Database initialization and registry
    # --------------------------------------------------------------------------
    def initialize_db(self, db: "FirestoreDB") -> None:
        """
        Inject the FirestoreDB instance to be used for all operations.
        """
        self._db = db

    def _get_db(self) -> "FirestoreDB":
        # Schemas without their own handle use the nearest ancestor's.
        for node in reversed(self.ancestry):
            if node._db is not None:
                return node._db
        raise RuntimeError("Database must be initialized before using the schema.")

    @classmethod
    def register(cls, schema: "CollectionSchema") -> None:
        if not any(known is schema for known in cls._registered_schemas):
            cls._registered_schemas.append(schema)

    @classmethod
    def clear_registry(cls) -> None:
        cls._registered_schemas.clear()

    def get_child_schemas(self) -> List["CollectionSchema"]:
        """Registered schemas whose parent is this schema."""
        return [schema for schema in self._registered_schemas if schema.parent is self]

    def _schema_for_path(self, path: str) -> "CollectionSchema":
        """
        Registered schema whose ancestry matches ``path``.

        Collection-group results may live under a different tree that only
        shares this schema's collection name.
        """
        if matches_schema(self, path):
            return self
        for schema in self._registered_schemas:
            if schema.collection_name == self.collection_name and matches_schema(schema, path):
                return schema
        return self

    # --------------------------------------------------------------------------
    # Internal helpers
    # --------------------------------------------------------------------------
    def _document_ref(self, resolved: ResolvedPath):
        collection_ref = self._get_db().client.collection(resolved.collection_path)
        if resolved.document_id is None:
            return collection_ref.document()
        return collection_ref.document(resolved.document_id)

    def _to_document(self, snapshot, path: str, reference, schema: "CollectionSchema" = None) -> Document:
        # Stored content is sanitized too; defaults are never applied on read.
        fields = sanitize(self, snapshot.to_dict() or {})
        return Document(
            fields,
            id=path.rsplit(SEPARATOR, 1)[-1],
            path=path,
            schema=schema or self,
            reference=reference,
        )

    async def _write(self, resolved: ResolvedPath, data: Optional[Data], options: Optional[Options]) -> Document:
        opts = resolve_options(options)
        fields = sanitize(self, data, merge_with_defaults=opts.merge_with_defaults)
        doc_ref = self._document_ref(resolved)
        doc_id = resolved.document_id or doc_ref.id
        path = join_path(resolved.collection_path, doc_id)

        logger.debug(f"Write: {path} - fields={fields}, transactional={opts.transaction is not None}")
        if opts.transaction is not None:
            opts.transaction.set(doc_ref, fields)
        else:
            await doc_ref.set(fields)
        return Document(fields, id=doc_id, path=path, schema=self, reference=doc_ref)

    # --------------------------------------------------------------------------
    # Document operations
    # --------------------------------------------------------------------------
    async def create_in(self, collection_path: str, data: Optional[Data], options: Optional[Options] = None) -> Document:
        """
        Create a document with a generated id inside ``collection_path``.

        ``collection_path`` is one concrete instance of this collection, so
        for nested schemas it embeds every ancestor id
        (``profiles/john/emails``). The sanitized payload is the whole
        document content.
        """
        resolved = resolve_collection_path(self, collection_path)
        return await self._write(resolved, data, options)

    async def write_to_path(self, path: str, data: Optional[Data], options: Optional[Options] = None) -> Document:
        """
        Replace the document at ``path`` with the sanitized ``data``.

        This is a full overwrite, not a merge: fields stored earlier but
        absent from ``data`` are removed. The document is created if missing.
        """
        resolved = resolve_document_path(self, path)
        return await self._write(resolved, data, options)

    async def get_by_path(self, path: str, options: Optional[Options] = None) -> Optional[Document]:
        """
        Read the document at ``path``; ``None`` if it does not exist.
        """
        resolved = resolve_document_path(self, path)
        opts = resolve_options(options)
        doc_ref = self._document_ref(resolved)
        doc_snap = await doc_ref.get(transaction=opts.transaction)

        if not doc_snap.exists:
            logger.debug(f"Get: {resolved.path} - not found")
            return None
        return self._to_document(doc_snap, resolved.path, doc_ref)

    async def exists_by_path(self, path: str, options: Optional[Options] = None) -> bool:
        resolved = resolve_document_path(self, path)
        opts = resolve_options(options)
        doc_snap = await self._document_ref(resolved).get(transaction=opts.transaction)
        return doc_snap.exists

    async def delete_by_path(self, path: str, options: Optional[Options] = None) -> None:
        """
        Delete the document at ``path``. Deleting a missing document is a no-op.

        Subcollections of the document are left in place, as in Firestore.
        """
        resolved = resolve_document_path(self, path)
        opts = resolve_options(options)
        doc_ref = self._document_ref(resolved)

        logger.debug(f"Delete: {resolved.path} - transactional={opts.transaction is not None}")
        if opts.transaction is not None:
            opts.transaction.delete(doc_ref)
        else:
            await doc_ref.delete()

    # --------------------------------------------------------------------------
    # Queries
    # --------------------------------------------------------------------------
    @staticmethod
    def _build_query(query, constraints: Optional[Iterable[Constraint]], limit: Optional[int] = None):
        """
        Apply filters (ANDed), orderings (in list order) and a limit to ``query``.
        """
        filters, orderings = split_constraints(constraints or [])
        for field_name, op, value in filters:
            query = query.where(filter=FieldFilter(str(field_name), str(op), value))
        for field_name, direction in orderings:
            query = query.order_by(str(field_name), direction=str(direction))
        if limit is not None:
            query = query.limit(limit)
        return query

    async def _stream(self, query, options: Optional[Options], instance_path: Optional[str] = None) -> AsyncGenerator[Document, None]:
        opts = resolve_options(options)
        async for doc_snap in query.stream(transaction=opts.transaction):
            if instance_path is not None:
                yield self._to_document(doc_snap, join_path(instance_path, doc_snap.id), doc_snap.reference)
            else:
                path = doc_snap.reference.path
                yield self._to_document(doc_snap, path, doc_snap.reference, self._schema_for_path(path))

    async def stream_by_query_in_instance(
        self,
        collection_path: str,
        constraints: Optional[Iterable[Constraint]] = None,
        options: Optional[Options] = None,
        limit: Optional[int] = None,
    ) -> AsyncGenerator[Document, None]:
        """
        Query one collection instance, e.g. the emails of ``profiles/john``.
        """
        resolved = resolve_collection_path(self, collection_path)
        client = self._get_db().client
        query = self._build_query(client.collection(resolved.collection_path), constraints, limit)
        logger.debug(f"Query: {resolved.collection_path} - constraints={constraints}")
        async for document in self._stream(query, options, instance_path=resolved.collection_path):
            yield document

    async def stream_by_query(
        self,
        constraints: Optional[Iterable[Constraint]] = None,
        options: Optional[Options] = None,
        limit: Optional[int] = None,
    ) -> AsyncGenerator[Document, None]:
        """
        Query every collection named like this schema.

        For a nested schema this is a collection-group query: documents under
        any ancestor, at any depth, are matched as long as the collection
        name is the same. For a root schema it queries the root collection.
        """
        if self.is_root:
            async for document in self.stream_by_query_in_instance(self.collection_name, constraints, options, limit):
                yield document
            return

        group_id = collection_group_id(self)
        client = self._get_db().client
        query = self._build_query(client.collection_group(group_id), constraints, limit)
        logger.debug(f"Collection group query: {group_id} - constraints={constraints}")
        async for document in self._stream(query, options):
            yield document

    async def get_by_query_in_instance(
        self,
        collection_path: str,
        constraints: Optional[Iterable[Constraint]] = None,
        options: Optional[Options] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        return [
            document
            async for document in self.stream_by_query_in_instance(collection_path, constraints, options, limit)
        ]

    async def get_by_query(
        self,
        constraints: Optional[Iterable[Constraint]] = None,
        options: Optional[Options] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        return [document async for document in self.stream_by_query(constraints, options, limit)]


rebuild_model(CollectionSchema)


class Model(CollectionSchema):
    """
    Root collection schema.

    Example
    -------
    >>> profiles = Model(collection_name="profiles",
    ...                  collection_props=["displayName", "agreedToTerms"])
    """

    __hash__ = CollectionSchema.__hash__

    def __init__(self, **data: Any):
        if data.get("parent") is not None:
            raise ValueError("A root Model cannot declare a parent; use Submodel instead.")
        super().__init__(**data)

    def _doc_path(self, doc_id: str) -> str:
        return join_path(self.collection_name, doc_id)

    async def write_to_new_doc(self, data: Optional[Data], options: Optional[Options] = None) -> Document:
        """Create a document with a generated id in the root collection."""
        return await self.create_in(self.collection_name, data, options)

    async def write_to_id(self, doc_id: str, data: Optional[Data], options: Optional[Options] = None) -> Document:
        return await self.write_to_path(self._doc_path(doc_id), data, options)

    async def get_by_id(self, doc_id: str, options: Optional[Options] = None) -> Optional[Document]:
        return await self.get_by_path(self._doc_path(doc_id), options)

    async def delete_by_id(self, doc_id: str, options: Optional[Options] = None) -> None:
        await self.delete_by_path(self._doc_path(doc_id), options)


class Submodel(CollectionSchema):
    """
    Collection nested under documents of ``parent`` (a Model or a Submodel).

    Example
    -------
    >>> emails = Submodel(collection_name="emails", parent=profiles,
    ...                   collection_props=["address", "domain"])
    >>> await emails.write_to_path("profiles/john/emails/gmail",
    ...                            {"address": "john@gmail.com", "domain": "gmail"})
    """

    parent: CollectionSchema

    __hash__ = CollectionSchema.__hash__

    async def write_to_new_doc(
        self, collection_path: str, data: Optional[Data], options: Optional[Options] = None
    ) -> Document:
        """Create a document with a generated id, e.g. in ``profiles/john/emails``."""
        return await self.create_in(collection_path, data, options)
