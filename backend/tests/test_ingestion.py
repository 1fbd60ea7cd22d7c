"""Tests for the ingestion pipeline below the HTTP layer."""
import io

import pytest
from sqlalchemy.exc import SQLAlchemyError
from starlette.datastructures import FormData, Headers, UploadFile

from filedrop.errors import (
    FileCountExceeded,
    MetadataWriteFailed,
    NoFileUploaded,
    PayloadTooLarge,
)
from filedrop.services.ingestion import (
    MULTIPART_OVERHEAD_BYTES,
    check_declared_length,
    ingest_upload,
    pick_single_upload,
)
from tests.helpers import MB, count_records, stored_blobs


def make_upload(name: str = "note.txt", data: bytes = b"hello", mime: str = "text/plain") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        size=len(data),
        filename=name,
        headers=Headers({"content-type": mime}),
    )


async def test_ingest_stores_blob_and_row(db_session, blob_store) -> None:
    result = await ingest_upload(db_session, blob_store, make_upload(), limit_mb=1)

    record = result.record
    assert result.file_url == f"/api/files/{record.public_id}"
    assert record.original_name == "note.txt"
    assert record.mime_type == "text/plain"
    assert record.size_bytes == 5
    assert stored_blobs(blob_store) == [record.storage_name]
    assert await count_records(db_session) == 1


async def test_metadata_failure_removes_orphan_blob(db_session, blob_store, monkeypatch) -> None:
    async def failing_commit() -> None:
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(MetadataWriteFailed):
        await ingest_upload(db_session, blob_store, make_upload(), limit_mb=1)
    assert stored_blobs(blob_store) == []


async def test_orphan_cleanup_failure_keeps_original_error(db_session, blob_store, monkeypatch, caplog) -> None:
    async def failing_commit() -> None:
        raise SQLAlchemyError("disk I/O error")

    async def failing_delete(storage_name: str) -> bool:
        raise OSError("read-only file system")

    monkeypatch.setattr(db_session, "commit", failing_commit)
    monkeypatch.setattr(blob_store, "delete", failing_delete)

    with pytest.raises(MetadataWriteFailed):
        await ingest_upload(db_session, blob_store, make_upload(), limit_mb=1)
    assert "Error deleting orphaned blob" in caplog.text


async def test_oversized_stream_rejected(db_session, blob_store) -> None:
    upload = make_upload("big.pdf", b"x" * (MB + 1), "application/pdf")
    with pytest.raises(PayloadTooLarge) as exc_info:
        await ingest_upload(db_session, blob_store, upload, limit_mb=1)
    assert exc_info.value.limit_mb == 1
    assert stored_blobs(blob_store) == []
    assert await count_records(db_session) == 0


def test_declared_length_check() -> None:
    check_declared_length(None, 1)
    check_declared_length("garbage", 1)
    check_declared_length(str(MB + MULTIPART_OVERHEAD_BYTES), 1)
    with pytest.raises(PayloadTooLarge):
        check_declared_length(str(MB + MULTIPART_OVERHEAD_BYTES + 1), 1)


def test_pick_single_upload() -> None:
    upload = make_upload()
    assert pick_single_upload(FormData([("file", upload), ("note", "hi")])) is upload


def test_pick_single_upload_counts_every_field() -> None:
    form = FormData([("file", make_upload()), ("extra", make_upload("b.txt"))])
    with pytest.raises(FileCountExceeded):
        pick_single_upload(form)


@pytest.mark.parametrize(
    "form",
    [
        FormData([]),
        FormData([("file", "not a file")]),
        FormData([("attachment", make_upload())]),
        FormData([("file", make_upload(name=""))]),
    ],
)
def test_pick_single_upload_without_file(form: FormData) -> None:
    with pytest.raises(NoFileUploaded):
        pick_single_upload(form)
