from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from .paths import parent_path_of

if TYPE_CHECKING:
    from .schema import CollectionSchema
    from .subcollection_accessor import SubCollectionAccessor


class Document(dict):
    """
    Sanitized document content plus its location.

    The mapping holds only the stored fields. ``id``, ``path``, ``reference``
    and ``subcollections`` are attributes, so comparing two documents (or a
    document and a plain ``dict``) compares content only.
    """

    def __init__(
        self,
        fields: Mapping[str, Any],
        *,
        id: str,
        path: str,
        schema: "CollectionSchema",
        reference: Any = None,
    ):
        super().__init__(fields)
        self.id = id
        self.path = path
        self.schema = schema
        self.reference = reference

    @property
    def parent_path(self) -> Optional[str]:
        return parent_path_of(self.path)

    @property
    def subcollections(self) -> Mapping[str, "SubCollectionAccessor"]:
        """
        Read-only map of the registered child schemas, bound to this document.

        Rebuilt on every access, never cached.
        """
        from .subcollection_accessor import SubCollectionAccessor

        return MappingProxyType({
            child.collection_name: SubCollectionAccessor(self, child)
            for child in self.schema.get_child_schemas()
        })

    def to_dict(self) -> Dict[str, Any]:
        return dict(self)

    def __repr__(self) -> str:
        return f"Document(path={self.path!r}, fields={dict.__repr__(self)})"
