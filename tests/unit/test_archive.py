import errno
import os
import re

from hotfolder.domains.intake.archive import ArchiveMover, is_transient


def _drop(folder, name, text):
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / name
    path.write_text(text)
    return path


def test_move_creates_archive_and_keeps_content(tmp_path):
    source = _drop(tmp_path / "watched", "report.txt", "hello")
    archive = tmp_path / "archive"

    destination = ArchiveMover(archive, backoff=0).move(source)

    assert destination == archive / "report.txt"
    assert destination.read_text() == "hello"
    assert not source.exists()


def test_no_archive_folder_leaves_file_in_place(tmp_path):
    source = _drop(tmp_path, "report.txt", "hello")

    assert ArchiveMover(None).move(source) is None
    assert source.read_text() == "hello"


def test_missing_source_is_a_noop(tmp_path):
    archive = tmp_path / "archive"

    assert ArchiveMover(archive, backoff=0).move(tmp_path / "ghost.txt") is None
    assert not archive.exists()


def test_collisions_get_distinct_names(tmp_path):
    watched = tmp_path / "watched"
    archive = tmp_path / "archive"
    mover = ArchiveMover(archive, backoff=0)

    destinations = []
    for index in range(5):
        source = _drop(watched, "dup.txt", f"copy {index}")
        destinations.append(mover.move(source))

    assert len(set(destinations)) == 5
    assert destinations[0] == archive / "dup.txt"
    assert sorted(p.read_text() for p in destinations) == [f"copy {i}" for i in range(5)]

    pattern = re.compile(r"dup_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}_\d+\.txt")
    assert all(pattern.fullmatch(p.name) for p in destinations[1:])


def test_busy_file_is_retried_then_left_readable(tmp_path, monkeypatch):
    source = _drop(tmp_path / "watched", "locked.txt", "still here")
    calls = []

    def busy_rename(src, dst):
        calls.append((src, dst))
        raise OSError(errno.EBUSY, "Device or resource busy")

    monkeypatch.setattr("hotfolder.domains.intake.archive.os.rename", busy_rename)

    result = ArchiveMover(tmp_path / "archive", retries=3, backoff=0).move(source)

    assert result is None
    assert len(calls) == 3
    assert source.read_text() == "still here"


def test_busy_file_succeeds_on_a_later_attempt(tmp_path, monkeypatch):
    source = _drop(tmp_path / "watched", "slow.txt", "data")
    real_rename = os.rename
    calls = []

    def flaky_rename(src, dst):
        calls.append(src)
        if len(calls) < 3:
            raise OSError(errno.EBUSY, "Device or resource busy")
        real_rename(src, dst)

    monkeypatch.setattr("hotfolder.domains.intake.archive.os.rename", flaky_rename)

    destination = ArchiveMover(tmp_path / "archive", retries=3, backoff=0).move(source)

    assert len(calls) == 3
    assert destination.read_text() == "data"


def test_file_moved_away_concurrently_is_not_an_error(tmp_path, monkeypatch):
    source = _drop(tmp_path / "watched", "raced.txt", "data")
    calls = []

    def vanishing_rename(src, dst):
        calls.append(src)
        os.remove(src)
        raise OSError(errno.ENOENT, "No such file or directory")

    monkeypatch.setattr("hotfolder.domains.intake.archive.os.rename", vanishing_rename)

    assert ArchiveMover(tmp_path / "archive", retries=3, backoff=0).move(source) is None
    assert len(calls) == 1


def test_permanent_error_is_not_retried(tmp_path, monkeypatch):
    source = _drop(tmp_path / "watched", "readonly.txt", "data")
    calls = []

    def readonly_rename(src, dst):
        calls.append(src)
        raise OSError(errno.EROFS, "Read-only file system")

    monkeypatch.setattr("hotfolder.domains.intake.archive.os.rename", readonly_rename)

    assert ArchiveMover(tmp_path / "archive", retries=3, backoff=0).move(source) is None
    assert len(calls) == 1
    assert source.exists()


def test_cross_device_move_falls_back_to_copy(tmp_path, monkeypatch):
    source = _drop(tmp_path / "watched", "remote.txt", "payload")

    def cross_device(src, dst):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr("hotfolder.domains.intake.archive.os.rename", cross_device)

    destination = ArchiveMover(tmp_path / "archive", backoff=0).move(source)

    assert destination.read_text() == "payload"
    assert not source.exists()


def test_is_transient():
    assert is_transient(OSError(errno.EBUSY, "busy"))
    assert is_transient(OSError(errno.EACCES, "denied"))
    assert not is_transient(OSError(errno.ENOSPC, "full"))
