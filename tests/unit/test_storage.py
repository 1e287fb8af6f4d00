"""Tests for local document storage and signed links."""

from __future__ import annotations

import time

import pytest

from cardiva.ingestion.storage import LocalFileStorage, StorageError


@pytest.fixture
def storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path, "rfp-documents", signing_key="test-key")


class TestLocalFileStorage:
    def test_upload_download_remove(self, storage):
        storage.upload("user/job/concurso.pdf", b"%PDF")

        assert storage.exists("user/job/concurso.pdf")
        assert storage.download("user/job/concurso.pdf") == b"%PDF"

        storage.remove("user/job/concurso.pdf")
        assert not storage.exists("user/job/concurso.pdf")

    def test_remove_missing_is_silent(self, storage):
        storage.remove("missing.pdf")

    def test_download_missing_raises(self, storage):
        with pytest.raises(StorageError):
            storage.download("missing.pdf")

    def test_key_cannot_escape_bucket(self, storage):
        with pytest.raises(StorageError):
            storage.upload("../outside.pdf", b"x")


class TestSignedUrls:
    def test_round_trip(self, storage):
        url = storage.signed_url("user/job/a.pdf", expires_in=60)

        path, query = url.split("?")
        params = dict(pair.split("=") for pair in query.split("&"))
        assert path == "/files/rfp-documents/user/job/a.pdf"
        assert storage.verify_signature("user/job/a.pdf", int(params["expires"]), params["signature"])

    def test_signature_is_bound_to_key(self, storage):
        url = storage.signed_url("user/job/a.pdf")
        params = dict(pair.split("=") for pair in url.split("?")[1].split("&"))

        assert not storage.verify_signature(
            "user/job/b.pdf", int(params["expires"]), params["signature"]
        )

    def test_expired_link_is_rejected(self, storage):
        expires = int(time.time()) - 10
        signature = storage._sign("a.pdf", expires)

        assert not storage.verify_signature("a.pdf", expires, signature)
