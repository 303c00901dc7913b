import random

import pytest
from sqlalchemy import update

from cabinet.core.config import settings
from cabinet.models.folder import Folder
from cabinet.repositories.folder import FolderRepository
from cabinet.services.file import FileService
from cabinet.services.folder import FolderService, clean_folder_name
from cabinet.services.share import ShareService, share_cache_key
from cabinet.utils.exceptions import (
    ConflictError,
    InvalidOperationError,
    NotEmptyError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def folders(db, redis_client):
    return FolderService(db, redis_client)


@pytest.mark.parametrize("name", ["", "   ", "a" * 101, "bad/name", "semi;colon", "émoji"])
def test_clean_folder_name_rejects(name):
    with pytest.raises(ValidationError):
        clean_folder_name(name)


def test_clean_folder_name_trims():
    assert clean_folder_name("  Tax 2024_v1.final  ") == "Tax 2024_v1.final"


async def test_create_root_and_child(folders, alice):
    root = await folders.create_folder(alice.id, "Documents", "work stuff")
    child = await folders.create_folder(alice.id, "Invoices", parent_id=root.id)

    assert root.parent_id is None
    assert root.owner_id == alice.id
    assert root.description == "work stuff"
    assert child.parent_id == root.id


async def test_create_under_missing_or_foreign_parent(folders, alice, bob):
    bobs = await folders.create_folder(bob.id, "Private")

    with pytest.raises(NotFoundError):
        await folders.create_folder(alice.id, "X", parent_id="does-not-exist")
    with pytest.raises(NotFoundError):
        await folders.create_folder(alice.id, "X", parent_id=bobs.id)


async def test_sibling_names_are_unique(folders, alice, bob):
    root = await folders.create_folder(alice.id, "Photos")
    await folders.create_folder(alice.id, "2024", parent_id=root.id)

    with pytest.raises(ConflictError):
        await folders.create_folder(alice.id, "Photos")
    with pytest.raises(ConflictError):
        await folders.create_folder(alice.id, "2024", parent_id=root.id)

    # Same name is fine under another parent or for another owner
    await folders.create_folder(alice.id, "2024")
    await folders.create_folder(bob.id, "Photos")


async def test_database_enforces_sibling_uniqueness(db, alice):
    repo = FolderRepository(db)
    # A failed insert rolls back and expires loaded objects, so keep plain ids
    owner_id = alice.id
    root = await repo.create(owner_id, "Music", None, None)
    root_id = root.id
    assert await repo.create(owner_id, "Music", None, None) is None

    assert await repo.create(owner_id, "Live", None, root_id) is not None
    assert await repo.create(owner_id, "Live", None, root_id) is None


async def test_list_folders_with_counts(db, folders, storage, alice, bob):
    docs = await folders.create_folder(alice.id, "Docs")
    await folders.create_folder(alice.id, "Archive")
    await folders.create_folder(alice.id, "Sub", parent_id=docs.id)
    await folders.create_folder(bob.id, "Bobs")
    await FileService(db, storage).upload_file(alice.id, b"x", "a.txt", "text/plain", folder_id=docs.id)

    roots = await folders.list_folders(alice.id)
    assert [f.name for f in roots] == ["Archive", "Docs"]
    counts = {f.name: (f.child_count, f.file_count) for f in roots}
    assert counts == {"Archive": (0, 0), "Docs": (1, 1)}

    children = await folders.list_folders(alice.id, docs.id)
    assert [f.name for f in children] == ["Sub"]


async def test_list_folders_of_foreign_parent(folders, alice, bob):
    bobs = await folders.create_folder(bob.id, "Bobs")
    with pytest.raises(NotFoundError):
        await folders.list_folders(alice.id, bobs.id)


async def test_rename(folders, alice):
    folder = await folders.create_folder(alice.id, "Old")
    await folders.create_folder(alice.id, "Taken")

    renamed = await folders.update_folder(folder.id, alice.id, "New", "desc")
    assert renamed.name == "New"
    assert renamed.description == "desc"

    with pytest.raises(ConflictError):
        await folders.update_folder(folder.id, alice.id, "Taken")
    assert (await folders.get_folder(folder.id, alice.id)).name == "New"

    # Keeping its own name is not a conflict
    await folders.update_folder(folder.id, alice.id, "New")


async def test_move_and_move_to_root(folders, alice):
    a = await folders.create_folder(alice.id, "A")
    b = await folders.create_folder(alice.id, "B")

    moved = await folders.update_folder(b.id, alice.id, "B", parent_id=a.id)
    assert moved.parent_id == a.id

    back = await folders.update_folder(b.id, alice.id, "B", parent_id=None)
    assert back.parent_id is None


async def test_move_rejects_cycles(folders, alice):
    a = await folders.create_folder(alice.id, "A")
    b = await folders.create_folder(alice.id, "B", parent_id=a.id)
    c = await folders.create_folder(alice.id, "C", parent_id=b.id)

    with pytest.raises(InvalidOperationError):
        await folders.update_folder(a.id, alice.id, "A", parent_id=a.id)
    with pytest.raises(InvalidOperationError):
        await folders.update_folder(a.id, alice.id, "A", parent_id=c.id)
    with pytest.raises(InvalidOperationError):
        await folders.update_folder(a.id, alice.id, "A", parent_id=b.id)

    assert (await folders.get_folder(a.id, alice.id)).parent_id is None


async def test_move_under_foreign_folder(folders, alice, bob):
    mine = await folders.create_folder(alice.id, "Mine")
    theirs = await folders.create_folder(bob.id, "Theirs")

    with pytest.raises(InvalidOperationError):
        await folders.update_folder(mine.id, alice.id, "Mine", parent_id=theirs.id)
    with pytest.raises(NotFoundError):
        await folders.update_folder(theirs.id, alice.id, "Theirs")


async def test_move_into_corrupted_chain_is_refused(db, folders, alice):
    a = await folders.create_folder(alice.id, "A")
    b = await folders.create_folder(alice.id, "B", parent_id=a.id)
    other = await folders.create_folder(alice.id, "Other")
    # Corrupt the tree behind the service's back: a <-> b
    await db.execute(update(Folder).where(Folder.id == a.id).values(parent_id=b.id))
    await db.commit()

    with pytest.raises(InvalidOperationError):
        await folders.update_folder(other.id, alice.id, "Other", parent_id=b.id)


async def test_create_respects_max_depth(monkeypatch, folders, alice):
    monkeypatch.setattr(settings, "MAX_FOLDER_DEPTH", 4)
    parent_id = None
    for i in range(4):
        parent_id = (await folders.create_folder(alice.id, f"level{i}", parent_id=parent_id)).id

    with pytest.raises(InvalidOperationError):
        await folders.create_folder(alice.id, "level4", parent_id=parent_id)
    # Still allowed one level up
    level3 = await folders.get_folder(parent_id, alice.id)
    await folders.create_folder(alice.id, "sibling", parent_id=level3.parent_id)


async def test_move_respects_max_depth(monkeypatch, folders, alice):
    monkeypatch.setattr(settings, "MAX_FOLDER_DEPTH", 4)
    level0 = await folders.create_folder(alice.id, "level0")
    level1 = await folders.create_folder(alice.id, "level1", parent_id=level0.id)
    level2 = await folders.create_folder(alice.id, "level2", parent_id=level1.id)
    top = await folders.create_folder(alice.id, "Top")
    await folders.create_folder(alice.id, "Bottom", parent_id=top.id)

    # Top/Bottom under level2 would put Bottom at depth 5
    with pytest.raises(InvalidOperationError):
        await folders.update_folder(top.id, alice.id, "Top", parent_id=level2.id)
    assert (await folders.get_folder(top.id, alice.id)).parent_id is None

    moved = await folders.update_folder(top.id, alice.id, "Top", parent_id=level1.id)
    assert moved.parent_id == level1.id


async def test_delete_requires_empty_folder(db, folders, storage, alice):
    parent = await folders.create_folder(alice.id, "Parent")
    child = await folders.create_folder(alice.id, "Child", parent_id=parent.id)

    with pytest.raises(NotEmptyError):
        await folders.delete_folder(parent.id, alice.id)

    file = await FileService(db, storage).upload_file(alice.id, b"x", "a.txt", "text/plain", folder_id=child.id)
    with pytest.raises(NotEmptyError):
        await folders.delete_folder(child.id, alice.id)

    await FileService(db, storage).delete_file(file.id, alice.id)
    await folders.delete_folder(child.id, alice.id)
    await folders.delete_folder(parent.id, alice.id)

    with pytest.raises(NotFoundError):
        await folders.get_folder(parent.id, alice.id)


async def test_delete_refused_when_child_appears_after_count(monkeypatch, folders, alice):
    parent = await folders.create_folder(alice.id, "Parent")
    child = await folders.create_folder(alice.id, "Child", parent_id=parent.id)
    parent_id, child_id = parent.id, child.id
    alice_id = alice.id

    # A child inserted between the emptiness check and the delete
    async def looks_empty(folder_id):
        return 0, 0

    monkeypatch.setattr(folders.folder_repo, "count_contents", looks_empty)
    with pytest.raises(NotEmptyError):
        await folders.delete_folder(parent_id, alice_id)

    assert (await folders.get_folder(child_id, alice_id)).parent_id == parent_id


async def test_delete_foreign_folder(folders, alice, bob):
    theirs = await folders.create_folder(bob.id, "Theirs")
    with pytest.raises(NotFoundError):
        await folders.delete_folder(theirs.id, alice.id)


async def test_delete_revokes_share_links(db, folders, redis_client, fake_redis, alice):
    folder = await folders.create_folder(alice.id, "Shared")
    shares = ShareService(db, redis_client=redis_client)
    share = await shares.issue_share(folder.id, alice.id, "1d")
    assert share_cache_key(share.token) in fake_redis.store

    await folders.delete_folder(folder.id, alice.id)

    assert share_cache_key(share.token) not in fake_redis.store
    with pytest.raises(NotFoundError):
        await shares.resolve_share(share.token)


async def test_resolve_path(folders, alice):
    a = await folders.create_folder(alice.id, "A")
    b = await folders.create_folder(alice.id, "B", parent_id=a.id)
    c = await folders.create_folder(alice.id, "C", parent_id=b.id)

    assert [f.id for f in await folders.resolve_path(c.id, alice.id)] == [a.id, b.id, c.id]
    assert [f.id for f in await folders.resolve_path(a.id, alice.id)] == [a.id]


async def test_resolve_path_survives_corrupted_chain(db, folders, alice):
    a = await folders.create_folder(alice.id, "A")
    b = await folders.create_folder(alice.id, "B", parent_id=a.id)
    await db.execute(update(Folder).where(Folder.id == a.id).values(parent_id=b.id))
    await db.commit()

    path = await folders.resolve_path(b.id, alice.id)
    assert {f.id for f in path} == {a.id, b.id}


async def test_random_operations_keep_tree_acyclic(db, folders, alice):
    rng = random.Random(1234)
    ids = []
    for i in range(12):
        parent = rng.choice(ids) if ids and rng.random() < 0.7 else None
        ids.append((await folders.create_folder(alice.id, f"f{i}", parent_id=parent)).id)

    for _ in range(60):
        folder_id = rng.choice(ids)
        target = rng.choice(ids + [None])
        folder = await folders.get_folder(folder_id, alice.id)
        try:
            await folders.update_folder(folder_id, alice.id, folder.name, parent_id=target)
        except (InvalidOperationError, ConflictError):
            pass

    repo = FolderRepository(db)
    for folder_id in ids:
        seen = set()
        current = folder_id
        while current is not None:
            assert current not in seen
            seen.add(current)
            current = await repo.get_parent_id(current)
