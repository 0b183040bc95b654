"""Unit tests for blob handle ownership."""

from __future__ import annotations

import pytest

from md2tree.constants import BLOB_URL_PREFIX
from md2tree.render.blobs import BlobSet, BlobStore, CommittedBlobs, collect_blob_urls, revoke_blobs


@pytest.mark.unit
class TestBlobStore:
    """Test creation and revocation of blob handles."""

    def test_create_returns_prefixed_unique_urls(self, blob_store):
        first = blob_store.create(b"png", "image/png")
        second = blob_store.create("<svg/>", "image/svg+xml")
        assert first.url.startswith(BLOB_URL_PREFIX)
        assert first.url != second.url
        assert second.size == len("<svg/>")
        assert blob_store.get(second) == ("image/svg+xml", b"<svg/>")
        assert len(blob_store) == 2

    def test_revoke_twice_is_noop(self, blob_store):
        handle = blob_store.create(b"x", "image/png")
        assert blob_store.revoke(handle) is True
        assert blob_store.revoke(handle) is False
        assert blob_store.revoked_count == 1
        assert not blob_store.is_live(handle)
        assert blob_store.get(handle.url) is None

    def test_revoke_unknown_url(self, blob_store):
        assert blob_store.revoke("blob:md2tree/missing") is False

    def test_revoke_blobs_counts_live_handles(self, blob_store):
        handles = [blob_store.create(b"a", "image/png"), blob_store.create(b"b", "image/png")]
        blob_store.revoke(handles[0])
        assert revoke_blobs(blob_store, handles) == 1
        assert len(blob_store) == 0


@pytest.mark.unit
class TestBlobSet:
    """Test per-attempt handle collections."""

    def test_release_revokes_all_once(self, blob_store):
        blobs = BlobSet(blob_store)
        blobs.add(blob_store.create(b"a", "image/png"))
        blobs.extend([blob_store.create(b"b", "image/png")])
        assert len(blobs) == 2
        assert blobs.release() == 2
        assert blobs.release() == 0
        assert not blobs
        assert blob_store.revoked_count == 2

    def test_urls_follow_insertion_order(self, blob_store):
        handles = [blob_store.create(b"a", "image/png"), blob_store.create(b"b", "image/png")]
        blobs = BlobSet(blob_store, handles)
        assert blobs.urls == [h.url for h in handles]
        assert blobs.handles == tuple(handles)


@pytest.mark.unit
class TestCommittedBlobs:
    """Test ownership transfer between an attempt and the committed set."""

    def test_commit_revokes_previous(self, blob_store):
        committed = CommittedBlobs(blob_store)
        first_handle = blob_store.create(b"1", "image/png")
        first = BlobSet(blob_store, [first_handle])
        second = BlobSet(blob_store, [blob_store.create(b"2", "image/png")])

        assert committed.commit_or_release(first, True) is True
        assert committed.current is first
        committed.commit_or_release(second, True)

        assert committed.current is second
        assert not blob_store.is_live(first_handle)
        assert blob_store.revoked_count == 1
        assert blob_store.is_live(second.handles[0])

    def test_release_keeps_committed(self, blob_store):
        committed = CommittedBlobs(blob_store)
        kept = BlobSet(blob_store, [blob_store.create(b"1", "image/png")])
        committed.commit_or_release(kept, True)
        attempt = BlobSet(blob_store, [blob_store.create(b"2", "image/png")])

        assert committed.commit_or_release(attempt, False) is False
        assert committed.current is kept
        assert len(blob_store) == 1

    def test_recommitting_same_set_keeps_handles(self, blob_store):
        committed = CommittedBlobs(blob_store)
        attempt = BlobSet(blob_store, [blob_store.create(b"1", "image/png")])
        committed.commit_or_release(attempt, True)
        committed.commit_or_release(attempt, True)
        assert len(blob_store) == 1

    def test_clear(self, blob_store):
        committed = CommittedBlobs(blob_store)
        committed.commit_or_release(BlobSet(blob_store, [blob_store.create(b"1", "image/png")]), True)
        assert committed.clear() == 1
        assert committed.clear() == 0
        assert len(blob_store) == 0


@pytest.mark.unit
def test_collect_blob_urls_in_order():
    text = "<img src=\"blob:md2tree/a\"> text <img src='blob:md2tree/b'> <img src=\"data:x\">"
    assert collect_blob_urls(text) == ["blob:md2tree/a", "blob:md2tree/b"]
    assert collect_blob_urls("") == []


@pytest.mark.unit
def test_blob_store_fixture_is_fresh(blob_store):
    assert isinstance(blob_store, BlobStore)
    assert blob_store.created_count == 0
