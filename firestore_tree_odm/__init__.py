# firestore_tree_odm/__init__.py
from typing import Iterable

from .schema import CollectionSchema, Model, Submodel
from .document import Document
from .subcollection_accessor import SubCollectionAccessor
from .firestore_fields import FirestoreField, Where, OrderBy, where, order_by
from .firestore_client import FirestoreDB
from .options import Options
from .sanitizer import sanitize
from .transaction import run_transaction
from .enums import FirestoreOperators, OrderByDirection
from .exceptions import FirestoreTreeError, SchemaMismatch, TransactionAborted


def init_firestore_tree(database: FirestoreDB, schemas: Iterable[CollectionSchema]):
    """Bind ``schemas`` to ``database`` and register them for subcollection lookup."""
    for schema in schemas:
        schema.initialize_db(database)
        CollectionSchema.register(schema)


__all__ = [
    "CollectionSchema",
    "Model",
    "Submodel",
    "Document",
    "SubCollectionAccessor",
    "FirestoreField",
    "Where",
    "OrderBy",
    "where",
    "order_by",
    "FirestoreDB",
    "Options",
    "sanitize",
    "run_transaction",
    "FirestoreOperators",
    "OrderByDirection",
    "FirestoreTreeError",
    "SchemaMismatch",
    "TransactionAborted",
    "init_firestore_tree",
]
