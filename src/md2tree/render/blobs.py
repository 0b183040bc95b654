#  Copyright (c) 2025 Tom Villani, Ph.D.
#
# src/md2tree/render/blobs.py
"""Transient binary image handles.

Rendered diagrams are materialized into a :class:`BlobStore`, which hands back
a :class:`BlobHandle` whose ``url`` can be used as an ``<img src>``. Handles
have a single owner at any time:

- a :class:`BlobSet` collects the handles one render attempt allocates
- :class:`CommittedBlobs` holds the set of the last committed render

:meth:`CommittedBlobs.commit_or_release` is the only transfer point between the
two: the attempt's set either becomes the committed set (and the previous one
is revoked) or is released. Revoking a handle twice is a no-op.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from md2tree.constants import BLOB_SRC_PATTERN, BLOB_URL_PREFIX

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlobHandle:
    """Reference to binary data held by a :class:`BlobStore`."""

    url: str
    mime: str
    size: int


class BlobStore:
    """In-memory store of materialized image data keyed by blob URL.

    Attributes
    ----------
    created_count : int
        Number of handles ever created.
    revoked_count : int
        Number of handles actually revoked (repeat revocations are not counted).

    """

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, bytes]] = {}
        self.created_count = 0
        self.revoked_count = 0

    def create(self, data: bytes | str, mime: str) -> BlobHandle:
        """Materialize ``data`` and return a handle to it.

        Text data is stored UTF-8 encoded.
        """
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        url = f"{BLOB_URL_PREFIX}{uuid.uuid4()}"
        self._data[url] = (mime, payload)
        self.created_count += 1
        return BlobHandle(url=url, mime=mime, size=len(payload))

    def revoke(self, handle: BlobHandle | str) -> bool:
        """Release the data behind ``handle``.

        Returns
        -------
        bool
            True if the handle was live, False if it was already revoked or unknown.

        """
        url = handle if isinstance(handle, str) else handle.url
        if self._data.pop(url, None) is None:
            logger.debug("Ignoring revoke of unknown or already revoked blob %s", url)
            return False
        self.revoked_count += 1
        return True

    def get(self, handle: BlobHandle | str) -> Optional[tuple[str, bytes]]:
        """Return ``(mime, data)`` for a live handle, or None."""
        url = handle if isinstance(handle, str) else handle.url
        return self._data.get(url)

    def is_live(self, handle: BlobHandle | str) -> bool:
        url = handle if isinstance(handle, str) else handle.url
        return url in self._data

    def __len__(self) -> int:
        return len(self._data)


def revoke_blobs(store: BlobStore, handles: Iterable[BlobHandle]) -> int:
    """Revoke every handle in ``handles``; return how many were live."""
    return sum(1 for handle in list(handles) if store.revoke(handle))


def collect_blob_urls(text: str) -> list[str]:
    """Return every ``src="blob:..."`` URL in ``text``, in document order."""
    return BLOB_SRC_PATTERN.findall(text or "")


class BlobSet:
    """Handles allocated by one render attempt."""

    def __init__(self, store: BlobStore, handles: Iterable[BlobHandle] = ()):
        self.store = store
        self._handles: list[BlobHandle] = list(handles)

    def add(self, handle: BlobHandle) -> None:
        self._handles.append(handle)

    def extend(self, handles: Iterable[BlobHandle]) -> None:
        self._handles.extend(handles)

    @property
    def handles(self) -> tuple[BlobHandle, ...]:
        return tuple(self._handles)

    @property
    def urls(self) -> list[str]:
        return [handle.url for handle in self._handles]

    def release(self) -> int:
        """Revoke all handles and empty the set. Safe to call more than once."""
        handles, self._handles = self._handles, []
        released = revoke_blobs(self.store, handles)
        if released:
            logger.debug("Released %d blob(s)", released)
        return released

    def __iter__(self) -> Iterator[BlobHandle]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def __bool__(self) -> bool:
        return bool(self._handles)


class CommittedBlobs:
    """The blob set of the last committed render."""

    def __init__(self, store: BlobStore):
        self.store = store
        self._current = BlobSet(store)

    @property
    def current(self) -> BlobSet:
        return self._current

    def commit_or_release(self, attempt: BlobSet, commit: bool) -> bool:
        """Transfer ownership of ``attempt``.

        Parameters
        ----------
        attempt : BlobSet
            Handles allocated by one render attempt.
        commit : bool
            When True the previously committed handles are revoked and ``attempt``
            becomes the committed set. When False ``attempt`` is released.

        Returns
        -------
        bool
            The value of ``commit``.

        """
        if not commit:
            attempt.release()
            return False
        previous, self._current = self._current, attempt
        if previous is not attempt:
            previous.release()
        return True

    def clear(self) -> int:
        """Revoke the committed handles."""
        return self._current.release()
