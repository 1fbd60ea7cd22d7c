"""Tests for the filesystem blob store."""
import io
import re

import pytest

from filedrop.errors import StorageFailure
from filedrop.services.file_storage import MAX_STORAGE_NAME_LENGTH, BlobStore, BlobTooLarge


@pytest.fixture
def store(tmp_path) -> BlobStore:
    return BlobStore(tmp_path / "blobs", chunk_size=4)


def test_creates_directory(tmp_path) -> None:
    BlobStore(tmp_path / "a" / "b")
    assert (tmp_path / "a" / "b").is_dir()


def test_storage_name_keeps_base_and_extension() -> None:
    name = BlobStore.make_storage_name("report.pdf")
    assert re.fullmatch(r"report-\d+-\d+\.pdf", name)


def test_storage_names_differ_for_same_input() -> None:
    names = {BlobStore.make_storage_name("same.txt") for _ in range(50)}
    assert len(names) == 50


def test_storage_name_length_capped() -> None:
    name = BlobStore.make_storage_name("x" * 255 + ".txt")
    assert len(name) < MAX_STORAGE_NAME_LENGTH
    assert name.endswith(".txt")


def test_storage_name_counts_utf8_bytes() -> None:
    name = BlobStore.make_storage_name("報告" * 100 + ".pdf")
    assert len((name + ".part").encode("utf-8")) <= MAX_STORAGE_NAME_LENGTH
    assert name.endswith(".pdf")
    assert re.search(r"-\d+-\d+\.pdf$", name)


def test_storage_name_drops_oversized_extension() -> None:
    name = BlobStore.make_storage_name("a" * 230 + "." + "b" * 200)
    assert len((name + ".part").encode("utf-8")) <= MAX_STORAGE_NAME_LENGTH
    assert re.search(r"-\d+-\d+$", name)


async def test_write_cjk_named_blob(store: BlobStore) -> None:
    name = BlobStore.make_storage_name("報告" * 100 + ".pdf")
    assert await store.write_stream(name, io.BytesIO(b"%PDF"), max_bytes=10) == 4
    assert [p.name for p in store.base_path.iterdir()] == [name]


async def test_existing_part_file_is_left_alone(store: BlobStore) -> None:
    (store.base_path / "busy.txt.part").write_bytes(b"someone else")

    with pytest.raises(FileExistsError):
        await store.write_stream("busy.txt", io.BytesIO(b"mine"), max_bytes=10)
    assert (store.base_path / "busy.txt.part").read_bytes() == b"someone else"


def test_path_for_rejects_escape(store: BlobStore) -> None:
    with pytest.raises(StorageFailure):
        store.path_for("../outside.txt")


async def test_write_then_read_back(store: BlobStore) -> None:
    size = await store.write_stream("a.bin", io.BytesIO(b"0123456789"), max_bytes=10)
    assert size == 10
    assert await store.exists("a.bin")
    assert await store.size_of("a.bin") == 10
    chunks = [c async for c in store.iter_chunks("a.bin")]
    assert b"".join(chunks) == b"0123456789"
    assert [p.name for p in store.base_path.iterdir()] == ["a.bin"]


async def test_oversized_write_leaves_nothing(store: BlobStore) -> None:
    with pytest.raises(BlobTooLarge):
        await store.write_stream("big.bin", io.BytesIO(b"x" * 11), max_bytes=10)
    assert list(store.base_path.iterdir()) == []
    assert not await store.exists("big.bin")


async def test_failed_source_read_removes_partial(store: BlobStore) -> None:
    class Broken(io.BytesIO):
        def __init__(self) -> None:
            super().__init__(b"abcdefgh")
            self.calls = 0

        def read(self, size: int = -1) -> bytes:
            self.calls += 1
            if self.calls > 1:
                raise OSError("client went away")
            return super().read(size)

    with pytest.raises(OSError):
        await store.write_stream("cut.bin", Broken(), max_bytes=100)
    assert list(store.base_path.iterdir()) == []


async def test_delete_is_idempotent(store: BlobStore) -> None:
    await store.write_stream("gone.txt", io.BytesIO(b"bye"), max_bytes=10)
    assert await store.delete("gone.txt") is True
    assert await store.delete("gone.txt") is False
