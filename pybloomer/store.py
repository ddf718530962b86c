"""Persistence boundary: opaque byte blobs addressed by integer filter id.

The registry only needs ``load`` and ``store``; any object implementing
:class:`FilterStore` can be plugged in. Two engines ship with the package:

* :class:`MemoryFilterStore`: a dict, handy for tests and short-lived
  processes.
* :class:`DirectoryFilterStore`: one file per filter inside a directory.

Ids are write-once. Storing an id twice is a :class:`WriteFailure`.
"""
from __future__ import annotations

import contextlib
import logging
import os
import re
import tempfile
import threading
import zlib
from pathlib import Path
from typing import Protocol, runtime_checkable

import msgpack

from .errors import CorruptData, NotFound, WriteFailure

__all__ = ["FilterStore", "MemoryFilterStore", "DirectoryFilterStore"]

logger = logging.getLogger(__name__)


@runtime_checkable
class FilterStore(Protocol):
    """Key-value byte store keyed by filter id."""

    def load(self, filter_id: int) -> bytes:
        """Return the blob stored under *filter_id*; raise NotFound otherwise."""
        ...

    def store(self, filter_id: int, data: bytes) -> None:
        """Persist *data* under a new *filter_id*; raise WriteFailure on error."""
        ...

    def ids(self) -> list[int]:
        """All stored ids in ascending order."""
        ...

    def __contains__(self, filter_id: object) -> bool:
        ...


class MemoryFilterStore:
    """In-process store backed by a dict."""

    def __init__(self) -> None:
        self._blobs: dict[int, bytes] = {}
        self._lock = threading.Lock()

    def load(self, filter_id: int) -> bytes:
        with self._lock:
            try:
                return self._blobs[filter_id]
            except KeyError:
                raise NotFound(f"no bloom filter with id {filter_id}") from None

    def store(self, filter_id: int, data: bytes) -> None:
        if filter_id < 0:
            raise WriteFailure(f"invalid filter id {filter_id}")
        with self._lock:
            if filter_id in self._blobs:
                raise WriteFailure(f"filter id {filter_id} already stored")
            self._blobs[filter_id] = bytes(data)

    def ids(self) -> list[int]:
        with self._lock:
            return sorted(self._blobs)

    def __contains__(self, filter_id: object) -> bool:
        with self._lock:
            return filter_id in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)


class DirectoryFilterStore:
    """One file per filter inside *dirpath*.

    Each file holds a msgpack record ``(filter_id, crc32, payload)``; the id
    and checksum are verified on load. Files are written to a temporary name
    and renamed into place so readers never see a partial blob.
    """

    _FILE_TEMPLATE = "filter_{filter_id:06d}.blf"
    _FILE_RE = re.compile(r"filter_(\d+)\.blf")

    # ---------------------------------------------------------------
    # Helper utils
    # ---------------------------------------------------------------
    @classmethod
    def _parse_id(cls, path: Path) -> int | None:
        """Extract numeric id from a filter_XXXXXX.blf path, None for other names."""
        match = cls._FILE_RE.fullmatch(path.name)
        return int(match.group(1)) if match else None

    def __init__(self, dirpath: str | Path):
        self._dir = Path(dirpath)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._dir

    def _path(self, filter_id: int) -> Path:
        return self._dir / self._FILE_TEMPLATE.format(filter_id=filter_id)

    # ------------------------------------------------------------------
    # Store API 💾
    # ------------------------------------------------------------------
    def load(self, filter_id: int) -> bytes:
        if filter_id < 0:
            raise NotFound(f"no bloom filter with id {filter_id}")
        path = self._path(filter_id)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            raise NotFound(f"no bloom filter with id {filter_id}") from None
        try:
            stored_id, crc, payload = msgpack.unpackb(raw, raw=False)
        except (ValueError, TypeError, msgpack.UnpackException) as exc:
            raise CorruptData(f"{path.name}: unreadable record") from exc
        if not isinstance(payload, bytes):
            raise CorruptData(f"{path.name}: payload is not binary")
        if stored_id != filter_id:
            raise CorruptData(f"{path.name}: holds filter {stored_id}, expected {filter_id}")
        if zlib.crc32(payload) != crc:
            raise CorruptData(f"{path.name}: checksum mismatch")
        logger.debug("loaded filter %d (%d bytes) from %s", filter_id, len(payload), path)
        return payload

    def store(self, filter_id: int, data: bytes) -> None:
        if filter_id < 0:
            raise WriteFailure(f"invalid filter id {filter_id}")
        record = msgpack.packb((filter_id, zlib.crc32(data), bytes(data)), use_bin_type=True)
        path = self._path(filter_id)
        with self._lock:
            try:
                self._dir.mkdir(parents=True, exist_ok=True)
                if path.exists():
                    raise WriteFailure(f"filter id {filter_id} already stored")
                fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=".tmp_", suffix=".blf")
                try:
                    with os.fdopen(fd, "wb") as fp:
                        fp.write(record)
                        fp.flush()
                        os.fsync(fp.fileno())
                    os.replace(tmp, path)
                except BaseException:
                    with contextlib.suppress(FileNotFoundError):
                        os.unlink(tmp)
                    raise
            except WriteFailure:
                raise
            except OSError as exc:
                raise WriteFailure(f"cannot write filter {filter_id} to {path}: {exc}") from exc
        logger.debug("stored filter %d (%d bytes) at %s", filter_id, len(data), path)

    def ids(self) -> list[int]:
        if not self._dir.exists():
            return []
        parsed = (self._parse_id(p) for p in self._dir.glob("filter_*.blf"))
        return sorted(fid for fid in parsed if fid is not None)

    def __contains__(self, filter_id: object) -> bool:
        return isinstance(filter_id, int) and filter_id >= 0 and self._path(filter_id).exists()
