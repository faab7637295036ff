import os
import pytest
from pathlib import Path

from backup_sync import config
from backup_sync.exceptions import ScanError
from backup_sync.models import IdentityMode, MediaFile, MediaKind, classify, identity_key_for
from backup_sync.scanning.filesystem import InventoryScanner
from backup_sync.scanning.hasher import FileHasher

from conftest import write_tree


@pytest.mark.parametrize(
    "name,expected",
    [
        ("photo.JPG", MediaKind.PHOTO),
        ("IMG_0001.heic", MediaKind.PHOTO),
        ("raw.CR2", MediaKind.PHOTO),
        ("clip.MOV", MediaKind.VIDEO),
        ("clip.m2ts", MediaKind.VIDEO),
        ("IMG_0001.xmp", MediaKind.OTHER),
        ("._IMG_0001.JPG", MediaKind.OTHER),
        ("notes", MediaKind.OTHER),
    ],
)
def test_classify(name, expected):
    assert classify(name) is expected


def test_classify_matches_config():
    assert config.EXT_TO_KIND.get('.jpg') == 'photo'
    assert config.EXT_TO_KIND.get('.mp4') == 'video'
    assert config.EXT_TO_KIND.get('.xyz', 'other') == 'other'


def test_identity_key_is_case_insensitive_and_extension_grouped():
    assert identity_key_for("IMG_001.JPG") == identity_key_for("img_001.jpg")
    assert identity_key_for("IMG_001.JPG") == identity_key_for("img_001.jpeg")
    assert identity_key_for("IMG_001.JPG") != identity_key_for("IMG_001.MOV")
    assert identity_key_for("IMG_001.JPG") != identity_key_for("IMG_002.JPG")


def test_identity_key_normalizes_unicode():
    decomposed = "Cafe\u0301.jpg"
    composed = "Caf\u00e9.jpg"
    assert identity_key_for(decomposed) == identity_key_for(composed)


def test_scan_produces_sorted_records(backup_root, scanner):
    write_tree(backup_root, {
        "b/z.mov": b"video",
        "a.jpg": b"photo",
        "b/notes.txt": b"text",
        "B2/c.png": b"png",
    })

    result = scanner.scan(backup_root)

    assert [f.relative_path for f in result.files] == ["B2/c.png", "a.jpg", "b/notes.txt", "b/z.mov"]
    assert result.errors == []
    rec = next(f for f in result.files if f.relative_path == "a.jpg")
    assert isinstance(rec, MediaFile)
    assert rec.kind is MediaKind.PHOTO
    assert rec.size_bytes == 5
    assert rec.path == backup_root / "a.jpg"
    assert rec.identity_key == "a:photo"


def test_scan_keeps_other_files_in_inventory(backup_root, scanner):
    write_tree(backup_root, {"a.jpg": b"1", "a.xmp": b"2"})

    result = scanner.scan(backup_root)

    assert {f.kind for f in result.files} == {MediaKind.PHOTO, MediaKind.OTHER}
    assert [f.relative_path for f in result.media()] == ["a.jpg"]


def test_scan_is_stable_across_runs(backup_root, scanner):
    write_tree(backup_root, {"x/IMG_1.JPG": b"1", "y/IMG_2.mov": b"2"})

    first = scanner.scan(backup_root).files
    second = scanner.scan(backup_root).files

    assert [(f.relative_path, f.identity_key) for f in first] == \
        [(f.relative_path, f.identity_key) for f in second]


def test_scan_missing_root_raises(tmp_path, scanner):
    with pytest.raises(ScanError):
        scanner.scan(tmp_path / "missing")


def test_scan_file_root_raises(tmp_path, scanner):
    f = tmp_path / "file.jpg"
    f.write_bytes(b"x")
    with pytest.raises(ScanError):
        scanner.scan(f)


def test_scan_records_stat_failure_and_continues(backup_root, scanner, monkeypatch):
    write_tree(backup_root, {"good.jpg": b"1", "bad.jpg": b"2"})

    real_stat = Path.stat

    def flaky_stat(self, *args, **kwargs):
        if self.name == "bad.jpg":
            raise PermissionError("denied")
        return real_stat(self, *args, **kwargs)

    monkeypatch.setattr(Path, "stat", flaky_stat)

    result = scanner.scan(backup_root)

    assert [f.relative_path for f in result.files] == ["good.jpg"]
    assert len(result.errors) == 1
    assert result.errors[0].path.name == "bad.jpg"


@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs non-root POSIX permissions")
def test_scan_unreadable_subdirectory_is_not_fatal(backup_root, scanner):
    write_tree(backup_root, {"ok/a.jpg": b"1", "locked/b.jpg": b"2"})
    locked = backup_root / "locked"
    locked.chmod(0)
    try:
        result = scanner.scan(backup_root)
    finally:
        locked.chmod(0o755)

    assert [f.relative_path for f in result.files] == ["ok/a.jpg"]
    assert [e.path for e in result.errors] == [locked]


def test_content_mode_uses_hashes(backup_root):
    write_tree(backup_root, {"one.jpg": b"same", "copy/renamed.jpg": b"same", "other.jpg": b"diff"})

    result = InventoryScanner(mode=IdentityMode.CONTENT, show_progress=False).scan(backup_root)
    keys = {f.relative_path: f.identity_key for f in result.files}

    assert keys["one.jpg"] == keys["copy/renamed.jpg"]
    assert keys["one.jpg"] != keys["other.jpg"]
    assert keys["one.jpg"] == "sha256:" + FileHasher().compute_hash(backup_root / "one.jpg")


def test_compute_file_hash(tmp_path):
    p = tmp_path / "sample.bin"
    p.write_bytes(b"hello world" * 10)

    small_chunks = FileHasher(chunk_size=7).compute_hash(p)
    default_chunks = FileHasher().compute_hash(p)

    assert small_chunks == default_chunks
    assert len(default_chunks) == 64
