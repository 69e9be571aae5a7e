import os
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from google.cloud.firestore_v1 import AsyncClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_TRANSACTION_ATTEMPTS = 5


class FirestoreDB:
    """
    Connection settings plus the :class:`google.cloud.firestore_v1.AsyncClient`
    every schema talks to.

    The same object can point at:

    * **A local Firestore emulator** – local development and CI.
    * **The real Firestore backend** – default when no emulator host is set.
    * **A mocked client** – unit tests that must not touch the network.
    """

    def __init__(
        self,
        project_id: str,
        database: Optional[str] = None,
        credentials=None,
        emulator_host: Optional[str] = None,
        max_transaction_attempts: int = DEFAULT_MAX_TRANSACTION_ATTEMPTS,
    ):
        """
        Parameters
        ----------
        project_id :
            Google Cloud project identifier (e.g. ``"my-gcp-project"``).
        database :
            Optional Firestore **database ID** (defaults to the default database).
        credentials :
            Explicit credentials object; if *None*, the Google SDK default
            credentials chain is used.
        emulator_host :
            Host and port of a running **Firestore emulator** such as
            ``"localhost:8080"``.
        max_transaction_attempts :
            How many times :meth:`run_transaction` lets Firestore run a
            callback before giving up on write conflicts.
        """
        if max_transaction_attempts < 1:
            raise ValueError("max_transaction_attempts must be at least 1")
        self.project_id = project_id
        self.database = database
        self.credentials = credentials
        self.max_transaction_attempts = max_transaction_attempts
        self._emulator_host = emulator_host

        self.client: AsyncClient = self._init_client()

    @classmethod
    def from_env(cls, **overrides: Any) -> "FirestoreDB":
        """
        Build an instance from ``GOOGLE_CLOUD_PROJECT``, ``DATABASE`` and
        ``FIRESTORE_EMULATOR_HOST``. Keyword arguments take precedence.
        """
        settings = {
            "project_id": os.environ.get("GOOGLE_CLOUD_PROJECT") or None,
            "database": os.environ.get("DATABASE") or None,
            "emulator_host": os.environ.get("FIRESTORE_EMULATOR_HOST", "").strip() or None,
        }
        settings.update(overrides)
        if not settings["project_id"]:
            raise RuntimeError("GOOGLE_CLOUD_PROJECT is not set and no project_id was given.")
        return cls(**settings)

    # --------------------------------------------------------------------- #
    # Internal helpers                                                      #
    # --------------------------------------------------------------------- #

    def _init_client(self) -> AsyncClient:
        """
        Instantiate and return an :class:`AsyncClient`.

        With an emulator host, ``FIRESTORE_EMULATOR_HOST`` is exported so the
        Google client libraries route all traffic to it; otherwise any stale
        value is removed so the real backend is used.
        """
        if self._emulator_host:
            os.environ["FIRESTORE_EMULATOR_HOST"] = self._emulator_host
            logger.info(f"Using Firestore emulator on {self._emulator_host}")
        else:
            os.environ.pop("FIRESTORE_EMULATOR_HOST", None)
        return AsyncClient(
            project=self.project_id,
            database=self.database,
            credentials=self.credentials,
        )

    # --------------------------------------------------------------------- #
    # Public utility methods                                                #
    # --------------------------------------------------------------------- #

    def use_emulator(self, host: str = "localhost:8080"):
        """Switch to a **local emulator** and recreate the client."""
        self._emulator_host = host
        self.client = self._init_client()
        logger.info(f"Emulator enabled on {host}")

    def clear_emulator(self):
        """Reconnect to the **production** Firestore endpoint."""
        self._emulator_host = None
        self.client = self._init_client()
        logger.info("Emulator disabled – using real Firestore.")

    def mock_firestore_for_tests(self):
        """
        Replace the underlying client with a :class:`unittest.mock.MagicMock`.
        """
        from unittest.mock import MagicMock

        self.client = MagicMock()
        logger.info("Firestore client replaced with MagicMock for unit tests.")

    async def run_transaction(
        self,
        callback: Callable[[Any], Awaitable[T]],
        max_attempts: Optional[int] = None,
    ) -> T:
        """Shortcut for :func:`firestore_tree_odm.transaction.run_transaction`."""
        from .transaction import run_transaction

        return await run_transaction(self, callback, max_attempts=max_attempts)
