"""
Fixtures for integration tests against the Firestore emulator.

Set ``FIRESTORE_EMULATOR_HOST`` (e.g. ``localhost:8080``) to run them; they
are skipped otherwise. The emulator is wiped before and after every test.
"""

import logging
import os

import httpx
import pytest
import pytest_asyncio

from firestore_tree_odm import FirestoreDB, init_firestore_tree

from ..schemas import build_schemas

logger = logging.getLogger(__name__)

# ── Environment detection ────────────────────────────────────────────────────

EMULATOR_HOST = os.environ.get("FIRESTORE_EMULATOR_HOST", "").strip()
DATABASE = os.environ.get("DATABASE", None) or None
# ``or`` so an empty string from CI still falls through to the fallback.
PROJECT_ID = os.environ.get("GOOGLE_CLOUD_PROJECT") or "tree-testing"

IS_EMULATOR = bool(EMULATOR_HOST)


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def firestore_db():
    """FirestoreDB pointing to the emulator.

    Function-scoped so each test gets a fresh AsyncClient bound to the
    current event loop (avoids 'Event loop is closed' with gRPC).
    """
    return FirestoreDB(
        project_id=PROJECT_ID,
        database=DATABASE,
        emulator_host=EMULATOR_HOST,
    )


@pytest.fixture()
def raw_client(firestore_db):
    """Raw AsyncClient pointing to the same backend as the schemas."""
    return firestore_db.client


@pytest_asyncio.fixture(autouse=True)
async def clean_firestore():
    """Wipe all emulator data before and after each test."""
    await _clear_emulator()
    yield
    await _clear_emulator()


async def _clear_emulator():
    db_name = DATABASE or "(default)"
    url = (
        f"http://{EMULATOR_HOST}/emulator/v1/projects/"
        f"{PROJECT_ID}/databases/{db_name}/documents"
    )
    async with httpx.AsyncClient() as client:
        response = await client.delete(url)
        response.raise_for_status()
    logger.debug(f"Cleared emulator data at {url}")


@pytest.fixture
def tree(firestore_db):
    """Schemas registered against the emulator."""
    schemas = build_schemas()
    init_firestore_tree(firestore_db, list(vars(schemas).values()))
    return schemas
