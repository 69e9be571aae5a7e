from functools import wraps
from firestore_tree_odm import *
import os
import asyncio
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT")
DATABASE = os.getenv("DATABASE")


def async_decorator(f):
    """Decorator to allow calling an async function like a sync function"""
    @wraps(f)
    def wrapper(*args, **kwargs):
        ret = asyncio.run(f(*args, **kwargs))

        return ret
    return wrapper


@async_decorator
async def main():
    # 1. Connect (FIRESTORE_EMULATOR_HOST is honoured if set)
    db = FirestoreDB.from_env()

    # 2. Declare the tree: profiles/{id}/emails/{id}
    profiles = Model(collection_name="profiles", collection_props=["displayName"])
    emails = Submodel(
        collection_name="emails",
        parent=profiles,
        collection_props=["address", "domain", "isValid"],
        prop_defaults={"isValid": True},
    )
    init_firestore_tree(db, [profiles, emails])

    # 3. Write; unknown fields are dropped
    john = await profiles.write_to_id("john", {"displayName": "John", "age": 40})
    print(john.path, john)

    await emails.write_to_new_doc(
        "profiles/john/emails",
        {"address": "john@gmail.com", "domain": "gmail"},
        Options(merge_with_defaults=True),
    )
    await john.subcollections["emails"].set("work", {"address": "john@acme.com", "domain": "acme"})

    # 4. Query one instance, then every emails collection under profiles
    async for email in emails.stream_by_query_in_instance(
        "profiles/john/emails", [emails.field("domain") == "gmail"]
    ):
        print(email.path, email)

    everywhere = await emails.get_by_query([order_by("address", "DESC")], limit=10)
    print("Emails across profiles:", [e["address"] for e in everywhere])

    # 5. Transaction: copy the display name onto a new profile
    async def copy_profile(transaction):
        source = await profiles.get_by_id("john", Options(transaction=transaction))
        await profiles.write_to_id("john-copy", dict(source), Options(transaction=transaction))
        return source.id

    print("Copied from:", await db.run_transaction(copy_profile))

    # 6. Clean up
    await emails.delete_by_path("profiles/john/emails/work")
    await profiles.delete_by_id("john-copy")


main()
