from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import MagicMock
from unittest.mock import patch

import pytest
from pytest import CaptureFixture
from pytest import LogCaptureFixture

from fat_finder.finder import Finder
from fat_finder.findermodel import FileRecord
from fat_finder.finderstore import hash_path
from fat_finder.finderstore import reverse_key

MB = 1024 * 1024


@pytest.fixture
def config() -> MagicMock:
    return MagicMock(
        min_size_bytes=200 * MB,
        worker_count=4,
        exclude_file="exclude_patterns.txt",
        size_report="fav.log",
        modtime_report="fav.log.sort",
        progress_interval=60,
    )


@pytest.fixture
def finder(config: MagicMock, fake_store) -> Finder:
    return Finder(config, store=fake_store)


@pytest.fixture
def root(tmp_path: Path, make_file) -> Path:
    make_file(tmp_path / "A.bin", 300 * MB, mtime=1_000)
    make_file(tmp_path / "B.bin", 50 * MB, mtime=3_000)
    make_file(tmp_path / "C.bin", 250 * MB, mtime=2_000)
    return tmp_path


def _report_lines(root: Path, name: str) -> list[str]:
    return (root / name).read_text().splitlines()


def test_only_files_over_threshold_are_reported(finder: Finder, root: Path) -> None:
    finder.run(str(root))

    assert _report_lines(root, "fav.log") == [
        f'{300 * MB},"./A.bin"',
        f'{250 * MB},"./C.bin"',
    ]
    assert _report_lines(root, "fav.log.sort") == [
        '2000,"./C.bin"',
        '1000,"./A.bin"',
    ]
    assert finder.processed_count == 2


def test_small_file_never_reaches_the_cache(
    finder: Finder,
    fake_store,
    root: Path,
) -> None:
    finder.run(str(root))

    assert hash_path(str(root / "B.bin")) not in fake_store.data
    assert len(fake_store.data) == 4


def test_cached_record_matches_stat(finder: Finder, fake_store, root: Path) -> None:
    finder.run(str(root))

    filepath = str(root / "A.bin")
    stat_result = os.stat(filepath)
    record = FileRecord.from_bytes(fake_store.data[hash_path(filepath)])

    assert record.size == stat_result.st_size
    assert record.mod_timestamp == int(stat_result.st_mtime)
    assert fake_store.data[reverse_key(hash_path(filepath))] == os.fsencode(filepath)


def test_excluded_file_is_never_processed(
    finder: Finder,
    fake_store,
    root: Path,
    make_file,
) -> None:
    make_file(root / "big.tmp", 500 * MB)
    (root / "exclude_patterns.txt").write_text("*.tmp\n")

    with patch.object(
        finder._processor,
        "process",
        wraps=finder._processor.process,
    ) as mock_process:
        finder.run(str(root))

    processed = {call.args[0] for call in mock_process.call_args_list}
    assert str(root / "big.tmp") not in processed
    assert hash_path(str(root / "big.tmp")) not in fake_store.data
    assert not any("big.tmp" in line for line in _report_lines(root, "fav.log"))
    assert not any("big.tmp" in line for line in _report_lines(root, "fav.log.sort"))


def test_cache_failure_is_logged_and_not_counted(
    finder: Finder,
    fake_store,
    root: Path,
    make_file,
    caplog: LogCaptureFixture,
) -> None:
    failing = make_file(root / "D.bin", 350 * MB)
    fake_store.failing_paths.add(failing)

    finder.run(str(root))

    assert finder.processed_count == 2
    assert "Error writing cache for file" in caplog.text
    assert failing in caplog.text
    assert not any("D.bin" in line for line in _report_lines(root, "fav.log"))


def test_counter_matches_successful_writes(
    finder: Finder,
    fake_store,
    tmp_path: Path,
    make_file,
    config: MagicMock,
) -> None:
    config.min_size_bytes = 10
    for idx in range(50):
        make_file(tmp_path / f"file{idx:02}.bin", 10 + idx)
    make_file(tmp_path / "tiny.bin", 1)

    finder.run(str(tmp_path))

    # The root directory qualifies by size too but is never cached
    assert finder.processed_count == 50
    assert len(fake_store.data) == 100


def test_rerun_is_idempotent(finder: Finder, fake_store, root: Path) -> None:
    finder.run(str(root))
    first_cache = dict(fake_store.data)
    first_report = _report_lines(root, "fav.log")

    finder.run(str(root))

    assert fake_store.data == first_cache
    assert _report_lines(root, "fav.log") == first_report


def test_run_prints_final_progress(
    finder: Finder,
    root: Path,
    capsys: CaptureFixture[str],
) -> None:
    finder.run(str(root))

    out = capsys.readouterr().out
    assert "Final progress: 2 files processed." in out
    assert f"Saved data to {root / 'fav.log'}" in out
    assert f"Saved sorted data to {root / 'fav.log.sort'}" in out


def test_run_returns_written_reports(finder: Finder, root: Path) -> None:
    written = finder.run(str(root))

    assert written == [root / "fav.log", root / "fav.log.sort"]


def test_report_failure_does_not_stop_second_report(
    finder: Finder,
    root: Path,
    caplog: LogCaptureFixture,
) -> None:
    with patch.object(
        finder._reporter,
        "generate",
        side_effect=[OSError("disk full"), root / "fav.log.sort"],
    ):
        written = finder.report(str(root))

    assert written == [root / "fav.log.sort"]
    assert "Error saving to fav.log: disk full" in caplog.text


def test_run_raises_when_root_missing(finder: Finder, tmp_path: Path) -> None:
    with pytest.raises(OSError):
        finder.run(str(tmp_path / "missing"))


def test_missing_exclude_file_is_not_fatal(
    finder: Finder,
    root: Path,
    caplog: LogCaptureFixture,
) -> None:
    rules = finder.load_rules(str(root))

    assert rules == []
    assert "Could not read exclude patterns" in caplog.text


def test_finder_builds_store_from_config(config: MagicMock) -> None:
    with patch("fat_finder.finder.FinderStore.from_config") as mock_from_config:
        Finder(config)

    mock_from_config.assert_called_once_with(config)
