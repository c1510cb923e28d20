from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock
from unittest.mock import patch

import pytest
from pytest import LogCaptureFixture

from fat_finder.findermodel import EntryKind
from fat_finder.findermodel import FileRecord
from fat_finder.findermodel import Task
from fat_finder.finderprocessor import FileProcessor
from fat_finder.finderprogress import ProgressCounter
from fat_finder.finderstore import hash_path
from fat_finder.finderstore import reverse_key


@pytest.fixture
def counter() -> ProgressCounter:
    return ProgressCounter()


@pytest.fixture
def processor(fake_store, counter: ProgressCounter) -> FileProcessor:
    return FileProcessor(fake_store, counter)


def test_process_records_file(
    processor: FileProcessor,
    fake_store,
    counter: ProgressCounter,
    tmp_path: Path,
    make_file,
) -> None:
    filepath = make_file(tmp_path / "big.bin", 4096, mtime=1_650_000_000)

    result = processor.process(filepath)

    key = hash_path(filepath)
    record = FileRecord.from_bytes(fake_store.get(key))
    assert result is True
    assert record.size == 4096
    assert record.mod_timestamp == 1_650_000_000
    assert fake_store.get(reverse_key(key)) == filepath.encode()
    assert counter.value == 1


def test_process_twice_overwrites(
    processor: FileProcessor,
    fake_store,
    counter: ProgressCounter,
    tmp_path: Path,
    make_file,
) -> None:
    filepath = make_file(tmp_path / "big.bin", 100)
    processor.process(filepath)
    make_file(filepath, 200)

    processor.process(filepath)

    assert len(fake_store.data) == 2
    assert FileRecord.from_bytes(fake_store.get(hash_path(filepath))).size == 200
    assert counter.value == 2


def test_process_missing_file_is_skipped(
    processor: FileProcessor,
    fake_store,
    counter: ProgressCounter,
    tmp_path: Path,
    caplog: LogCaptureFixture,
) -> None:
    result = processor.process(str(tmp_path / "gone.bin"))

    assert result is False
    assert fake_store.data == {}
    assert counter.value == 0
    assert "Error stating file" in caplog.text


def test_process_cache_failure_is_skipped(
    processor: FileProcessor,
    fake_store,
    counter: ProgressCounter,
    tmp_path: Path,
    make_file,
    caplog: LogCaptureFixture,
) -> None:
    filepath = make_file(tmp_path / "d.bin", 100)
    fake_store.failing_paths.add(filepath)

    result = processor.process(filepath)

    assert result is False
    assert fake_store.data == {}
    assert counter.value == 0
    assert "Error writing cache for file" in caplog.text


def test_process_encoding_failure_is_skipped(
    processor: FileProcessor,
    counter: ProgressCounter,
    tmp_path: Path,
    make_file,
    caplog: LogCaptureFixture,
) -> None:
    filepath = make_file(tmp_path / "d.bin", 100)

    with patch.object(FileRecord, "to_bytes", side_effect=ValueError("bad")):
        result = processor.process(filepath)

    assert result is False
    assert counter.value == 0
    assert "Error encoding" in caplog.text


def test_process_does_not_swallow_unexpected_errors(
    counter: ProgressCounter,
    tmp_path: Path,
    make_file,
) -> None:
    store = MagicMock()
    store.set_file.side_effect = KeyError("unexpected")
    processor = FileProcessor(store, counter)

    with pytest.raises(KeyError):
        processor.process(make_file(tmp_path / "d.bin", 1))

    assert counter.value == 0


def test_dispatch_routes_files_to_process(processor: FileProcessor) -> None:
    with patch.object(processor, "process") as mock_process:
        processor.dispatch(Task("/data/a.bin", EntryKind.FILE))

    mock_process.assert_called_once_with("/data/a.bin")


@pytest.mark.parametrize(
    "kind",
    [EntryKind.DIRECTORY, EntryKind.SYMLINK, EntryKind.OTHER],
)
def test_dispatch_never_caches_other_kinds(
    processor: FileProcessor,
    fake_store,
    counter: ProgressCounter,
    kind: EntryKind,
) -> None:
    with patch.object(processor, "process") as mock_process:
        processor.dispatch(Task("/data/thing", kind))

    assert mock_process.call_count == 0
    assert fake_store.data == {}
    assert counter.value == 0


def test_dispatch_logs_unknown_types(
    processor: FileProcessor,
    caplog: LogCaptureFixture,
) -> None:
    caplog.set_level("INFO")

    processor.dispatch(Task("/dev/fifo", EntryKind.OTHER))

    assert "Skipping unknown type: /dev/fifo" in caplog.text
