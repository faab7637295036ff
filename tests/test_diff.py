from pathlib import Path

from backup_sync.diff import diff
from backup_sync.models import MediaFile, MediaKind, classify, identity_key_for

from conftest import remote_from_names, write_tree


def media(rel: str) -> MediaFile:
    name = Path(rel).name
    return MediaFile(
        relative_path=rel,
        path=Path("/backup") / rel,
        kind=classify(name),
        identity_key=identity_key_for(name),
        size_bytes=1,
        modified_time=0.0,
    )


def test_diff_example_scenario():
    backup = [media("a.jpg"), media("b.mov"), media("c.png")]
    remote = remote_from_names(["a.jpg", "c.png"])

    result = diff(backup, remote)

    assert [f.relative_path for f in result] == ["b.mov"]


def test_diff_is_exactly_the_unmatched_files_sorted():
    backup = [
        media("2021/z.jpg"), media("2020/IMG_1.JPG"), media("2020/IMG_2.mov"),
        media("a/clip.mp4"), media("2019/x.heic"),
    ]
    remote = remote_from_names(["img_1.jpeg", "clip.MP4", "unrelated.png"])
    remote_keys = {r.identity_key for r in remote}

    result = diff(backup, remote)

    expected = sorted(
        (f for f in backup if f.identity_key not in remote_keys),
        key=lambda f: f.relative_path,
    )
    assert list(result) == expected
    assert [f.relative_path for f in result] == ["2019/x.heic", "2020/IMG_2.mov", "2021/z.jpg"]


def test_diff_is_deterministic():
    backup = [media("c.jpg"), media("a.jpg"), media("b.jpg")]
    remote = remote_from_names(["b.jpg"])

    assert diff(backup, remote) == diff(list(reversed(backup)), remote)


def test_diff_keeps_duplicate_keys_independently():
    backup = [media("one/IMG_1.JPG"), media("two/img_1.jpg")]

    result = diff(backup, [])

    assert [f.relative_path for f in result] == ["one/IMG_1.JPG", "two/img_1.jpg"]
    assert result[0].identity_key == result[1].identity_key


def test_diff_excludes_other_unless_requested():
    backup = [media("a.jpg"), media("a.xmp")]

    assert [f.relative_path for f in diff(backup, [])] == ["a.jpg"]
    assert [f.relative_path for f in diff(backup, [], include_other=True)] == ["a.jpg", "a.xmp"]


def test_diff_empty_remote_returns_all_media():
    backup = [media("b.mov"), media("a.jpg")]
    result = diff(backup, [])
    assert [f.kind for f in result] == [MediaKind.PHOTO, MediaKind.VIDEO]


def test_diff_over_scanned_tree(backup_root, scanner):
    write_tree(backup_root, {"2020/A.JPG": b"a", "2020/B.MOV": b"b", "2021/c.png": b"c"})

    result = diff(scanner.scan(backup_root).files, remote_from_names(["a.jpg", "C.PNG"]))

    assert [f.relative_path for f in result] == ["2020/B.MOV"]
