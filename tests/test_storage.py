import pytest

from cabinet.core.storage import generate_storage_path, sanitize_filename
from cabinet.utils.exceptions import StorageFailureError


def test_sanitize_filename():
    assert sanitize_filename("my report (final).pdf") == "my_report__final_.pdf"
    assert sanitize_filename("photo-1.jpg") == "photo-1.jpg"


def test_storage_path_layout_in_folder():
    path = generate_storage_path("user-1", "folder-9", "a b.txt", timestamp=1700000000000)
    owner, marker, folder, name = path.split("/")
    assert (owner, marker, folder) == ("user-1", "folders", "folder-9")
    assert name.startswith("1700000000000-")
    assert name.endswith("-a_b.txt")


def test_storage_path_layout_at_root():
    path = generate_storage_path("user-1", None, "notes.txt")
    owner, marker, name = path.split("/")
    assert (owner, marker) == ("user-1", "root")
    assert name.endswith("-notes.txt")


def test_storage_paths_never_collide_for_same_name():
    paths = {generate_storage_path("user-1", "f", "same.txt", timestamp=1) for _ in range(200)}
    assert len(paths) == 200


async def test_put_get_roundtrip(storage, object_storage):
    path = await storage.put("user-1", None, "hello.txt", b"hello", "text/plain")
    assert object_storage.objects[path] == (b"hello", "text/plain")
    assert await storage.get(path) == b"hello"


async def test_put_failure_is_wrapped(storage, object_storage):
    object_storage.fail_put = True
    with pytest.raises(StorageFailureError) as excinfo:
        await storage.put("user-1", None, "hello.txt", b"hello", "text/plain")
    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert object_storage.objects == {}


async def test_get_missing_object_is_wrapped(storage):
    with pytest.raises(StorageFailureError):
        await storage.get("user-1/root/missing.txt")


async def test_delete_missing_object_is_not_an_error(storage):
    await storage.delete("user-1/root/missing.txt")


async def test_delete_failure_is_wrapped(storage, object_storage):
    object_storage.fail_remove = True
    with pytest.raises(StorageFailureError):
        await storage.delete("user-1/root/x.txt")


async def test_sign_url(storage):
    path = await storage.put("user-1", "f", "a.png", b"\x89PNG", "image/png")
    url = await storage.sign_url(path, 60)
    assert path in url
    assert "expires=60" in url


async def test_legacy_store_read_and_delete(legacy_store, tmp_path):
    (tmp_path / "old.txt").write_bytes(b"legacy")
    assert await legacy_store.exists("old.txt")
    assert await legacy_store.read("old.txt") == b"legacy"

    await legacy_store.delete("old.txt")
    assert not await legacy_store.exists("old.txt")
    # Deleting twice is harmless
    await legacy_store.delete("old.txt")


async def test_legacy_store_missing_file(legacy_store):
    with pytest.raises(StorageFailureError):
        await legacy_store.read("nope.txt")
