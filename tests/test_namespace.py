import threading
from io import BytesIO

import pytest

from filevault.core.errors import NotFoundError, StorageIOError, ValidationError
from filevault.services.blobs import BlobHandle, BlobManager, S3BlobBackend
from filevault.services.namespace import Namespace
from tests.tools import UnreachableS3


def _upload(namespace, user, name="notes.txt", data=b"x" * 100, folder_id=None):
    return namespace.upload(user, BytesIO(data), name, folder_id=folder_id)


def test_create_folder_trims_name(namespace, alice):
    folder = namespace.create_folder(alice, "  Reports  ")
    assert folder.name == "Reports"
    assert folder.owner_id == alice.id
    assert folder.parent_id is None


@pytest.mark.parametrize("name", ["", "   ", "\t\n", None])
def test_create_folder_blank_name(namespace, alice, name):
    with pytest.raises(ValidationError) as e:
        namespace.create_folder(alice, name)
    assert e.value.token == "invalid-folder-name"
    assert namespace.list_root(alice).folders == []


def test_list_root_and_folder(namespace, alice):
    docs = namespace.create_folder(alice, "Docs")
    sub = namespace.create_folder(alice, "Sub", parent_id=docs.id)
    top = _upload(namespace, alice, "top.txt")
    inner = _upload(namespace, alice, "inner.txt", folder_id=docs.id)

    root = namespace.list_root(alice)
    assert [f.id for f in root.folders] == [docs.id]
    assert [f.id for f in root.files] == [top.id]

    folder, listing = namespace.list_folder(alice, docs.id)
    assert folder.name == "Docs"
    assert [f.id for f in listing.folders] == [sub.id]
    assert [f.id for f in listing.files] == [inner.id]


def test_upload_records_metadata(namespace, alice):
    file = _upload(namespace, alice, "notes.txt", b"hello")
    assert file.original_name == "notes.txt"
    assert file.stored_name != "notes.txt"
    assert file.size == 5
    assert file.content_type == "text/plain"
    assert file.folder_id is None


def test_upload_without_filename(namespace, alice):
    with pytest.raises(ValidationError) as e:
        namespace.upload(alice, BytesIO(b"x"), "")
    assert e.value.token == "no-file"


def test_users_are_isolated(namespace, alice, bob):
    folder = namespace.create_folder(bob, "Private")
    file = _upload(namespace, bob, "secret.txt", folder_id=folder.id)

    assert namespace.list_root(alice).folders == []
    assert namespace.list_root(alice).files == []
    with pytest.raises(NotFoundError):
        namespace.list_folder(alice, folder.id)
    with pytest.raises(NotFoundError):
        namespace.open_file(alice, file.id)
    with pytest.raises(NotFoundError):
        namespace.delete_file(alice, file.id)
    with pytest.raises(NotFoundError):
        namespace.delete_folder(alice, folder.id)
    with pytest.raises(NotFoundError):
        namespace.create_folder(alice, "Sneaky", parent_id=folder.id)

    # Bob's data is untouched
    _, listing = namespace.list_folder(bob, folder.id)
    assert [f.id for f in listing.files] == [file.id]


def test_cannot_place_file_in_foreign_folder(namespace, alice, bob):
    folder = namespace.create_folder(bob, "Private")
    with pytest.raises(NotFoundError):
        _upload(namespace, alice, folder_id=folder.id)
    with pytest.raises(NotFoundError):
        _upload(namespace, alice, folder_id="no-such-folder")
    assert namespace.store.load_collection("files") == []
    # No blob was written for the rejected uploads
    assert list(namespace.blobs.backend.directory.iterdir()) == []


def test_delete_file(namespace, alice):
    file = _upload(namespace, alice)
    deleted = namespace.delete_file(alice, file.id)
    assert deleted.id == file.id
    with pytest.raises(NotFoundError):
        namespace.get_file(alice, file.id)
    with pytest.raises(NotFoundError):
        namespace.blobs.retrieve(file.stored_name)
    with pytest.raises(NotFoundError):
        namespace.delete_file(alice, file.id)


def test_delete_file_with_missing_blob(namespace, alice):
    file = _upload(namespace, alice)
    namespace.blobs.remove(file.stored_name)
    with pytest.raises(NotFoundError):
        namespace.open_file(alice, file.id)
    namespace.delete_file(alice, file.id)
    assert namespace.list_root(alice).files == []


def test_delete_file_when_blob_removal_fails(namespace, alice, monkeypatch):
    file = _upload(namespace, alice)

    def broken_remove(name):
        raise StorageIOError("disk on fire")

    monkeypatch.setattr(namespace.blobs, "remove", broken_remove)
    namespace.delete_file(alice, file.id)
    assert namespace.list_root(alice).files == []


def test_unreachable_blob_store(store, alice):
    namespace = Namespace(store, BlobManager(S3BlobBackend(UnreachableS3(), "filevault")))
    with pytest.raises(StorageIOError):
        _upload(namespace, alice)
    assert namespace.list_root(alice).files == []

    # A record whose blob cannot be removed is still deleted
    file = namespace.place_file(alice, BlobHandle("0" * 32, 1), "a.txt")
    namespace.delete_file(alice, file.id)
    assert namespace.list_root(alice).files == []


def test_failed_record_removes_blob(namespace, alice, monkeypatch):
    def broken_save(name, records):
        raise StorageIOError("read-only")

    monkeypatch.setattr(namespace.store, "save_collection", broken_save)
    with pytest.raises(StorageIOError):
        _upload(namespace, alice)
    assert list(namespace.blobs.backend.directory.iterdir()) == []


def test_concurrent_uploads(namespace, alice):
    n = 16
    barrier = threading.Barrier(n)
    errors = []

    def upload(i):
        barrier.wait()
        try:
            _upload(namespace, alice, f"file{i}.txt")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=upload, args=(i,)) for i in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []
    assert sorted(f.original_name for f in namespace.list_root(alice).files) == sorted(
        f"file{i}.txt" for i in range(n)
    )


def test_move_folder(namespace, alice):
    a = namespace.create_folder(alice, "A")
    b = namespace.create_folder(alice, "B")
    namespace.move_folder(alice, b.id, a.id)
    _, listing = namespace.list_folder(alice, a.id)
    assert [f.id for f in listing.folders] == [b.id]

    namespace.move_folder(alice, b.id, None)
    assert {f.id for f in namespace.list_root(alice).folders} == {a.id, b.id}


def test_move_folder_rejects_cycles(namespace, alice):
    a = namespace.create_folder(alice, "A")
    b = namespace.create_folder(alice, "B", parent_id=a.id)
    c = namespace.create_folder(alice, "C", parent_id=b.id)
    for target in (a, b, c):
        with pytest.raises(ValidationError) as e:
            namespace.move_folder(alice, a.id, target.id)
        assert e.value.token == "invalid-folder-move"
    assert namespace.get_folder(alice, a.id).parent_id is None


def test_delete_folder_cascades(namespace, alice, bob):
    docs = namespace.create_folder(alice, "Docs")
    sub = namespace.create_folder(alice, "Sub", parent_id=docs.id)
    kept = namespace.create_folder(alice, "Kept")
    in_docs = _upload(namespace, alice, "a.txt", folder_id=docs.id)
    in_sub = _upload(namespace, alice, "b.txt", folder_id=sub.id)
    in_kept = _upload(namespace, alice, "c.txt", folder_id=kept.id)
    bobs = _upload(namespace, bob, "d.txt")

    assert namespace.delete_folder(alice, docs.id) == 2

    assert [f.id for f in namespace.list_root(alice).folders] == [kept.id]
    with pytest.raises(NotFoundError):
        namespace.list_folder(alice, sub.id)
    for file in (in_docs, in_sub):
        with pytest.raises(NotFoundError):
            namespace.blobs.retrieve(file.stored_name)
    assert namespace.get_file(alice, in_kept.id)
    assert namespace.get_file(bob, bobs.id)


def test_usage(namespace, alice, bob):
    _upload(namespace, alice, "a.txt", b"x" * 10)
    _upload(namespace, alice, "b.txt", b"x" * 20)
    _upload(namespace, bob, "c.txt", b"x" * 40)
    usage = namespace.usage(alice)
    assert usage.total_files == 2
    assert usage.total_bytes == 30
    assert usage.recent_files == 2
