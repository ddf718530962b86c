"""Unit tests for the filter stores."""
import msgpack
import pytest

from pybloomer.errors import CorruptData, NotFound, WriteFailure
from pybloomer.store import DirectoryFilterStore, FilterStore, MemoryFilterStore


@pytest.fixture(params=["memory", "directory"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryFilterStore()
    return DirectoryFilterStore(tmp_path / "filters")


def test_protocol(store):
    assert isinstance(store, FilterStore)


def test_store_and_load(store):
    store.store(0, b"blob-0")
    store.store(7, b"")
    assert store.load(0) == b"blob-0"
    assert store.load(7) == b""
    assert store.ids() == [0, 7]
    assert 7 in store
    assert 3 not in store


def test_missing_id(store):
    with pytest.raises(NotFound):
        store.load(42)
    with pytest.raises(NotFound):
        store.load(-1)


def test_ids_are_write_once(store):
    store.store(1, b"first")
    with pytest.raises(WriteFailure):
        store.store(1, b"second")
    assert store.load(1) == b"first"


def test_negative_id_rejected(store):
    with pytest.raises(WriteFailure):
        store.store(-3, b"x")


def test_empty_directory_has_no_ids(tmp_path):
    assert DirectoryFilterStore(tmp_path / "missing").ids() == []


def test_directory_layout(tmp_path):
    store = DirectoryFilterStore(tmp_path)
    store.store(12, b"payload")
    path = tmp_path / "filter_000012.blf"
    assert path.exists()
    assert [p.name for p in tmp_path.iterdir()] == ["filter_000012.blf"]
    filter_id, _crc, payload = msgpack.unpackb(path.read_bytes(), raw=False)
    assert (filter_id, payload) == (12, b"payload")


def test_directory_detects_corruption(tmp_path):
    store = DirectoryFilterStore(tmp_path)
    store.store(0, b"payload")
    path = tmp_path / "filter_000000.blf"
    raw = bytearray(path.read_bytes())
    raw[-1] ^= 0xFF
    path.write_bytes(bytes(raw))
    with pytest.raises(CorruptData):
        store.load(0)


def test_directory_detects_misplaced_record(tmp_path):
    store = DirectoryFilterStore(tmp_path)
    store.store(0, b"payload")
    (tmp_path / "filter_000000.blf").rename(tmp_path / "filter_000005.blf")
    with pytest.raises(CorruptData):
        store.load(5)


def test_directory_unreadable_record(tmp_path):
    (tmp_path / "filter_000002.blf").write_bytes(b"\xc1garbage")
    with pytest.raises(CorruptData):
        DirectoryFilterStore(tmp_path).load(2)


def test_directory_write_failure_wraps_oserror(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_bytes(b"")
    store = DirectoryFilterStore(blocker / "filters")
    with pytest.raises(WriteFailure) as info:
        store.store(0, b"x")
    assert isinstance(info.value.__cause__, OSError)


def test_directory_ignores_foreign_files(tmp_path):
    """Files that do not follow the filter_<digits>.blf naming are skipped."""
    store = DirectoryFilterStore(tmp_path)
    store.store(3, b"payload")
    for name in ("filter_backup.blf", "filter_.blf", "filter_12.blf.bak", "filter_7x.blf", "notes.txt"):
        (tmp_path / name).write_bytes(b"")
    assert store.ids() == [3]
