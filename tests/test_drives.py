import errno
import os

import pytest

from fcguest.drives import (
    Drive,
    SystemDirError,
    build_drive,
    check_system_dir,
    eval_any_symlinks,
    is_or_under_dir,
    is_retryable_mount_error,
    list_block_device_names,
)


@pytest.mark.parametrize(
    "base_dir, path, expected",
    [
        ("/foo", "/foo/bar", True),
        ("/foo/bar", "/foo/bar/baz", True),
        ("/foo", "/foo", True),
        ("/foo/bar", "/foo/bar", True),
        ("/foo", "/foobar", False),
        ("/foo", "/bar", False),
        ("/foo/bar", "/bar", False),
        ("/foo/bar", "/foo", False),
        ("/foo/bar", "/bar/bar", False),
        ("/foo", "foo", False),
        ("/foo", "bar", False),
        ("/foo", "/foo/../foo", True),
        ("/foo/bar", "/foo/../foo/bar", True),
        ("/foo", "/foo/../bar", False),
        ("/foo", "/foo/..bar", True),
        ("/foo", "/foo/..bar/baz", True),
        ("/", "/", True),
        ("/foo", "/", False),
        ("/", "/foo", True),
    ],
)
def test_is_or_under_dir(base_dir, path, expected):
    assert is_or_under_dir(path, base_dir) is expected


@pytest.mark.parametrize(
    "err, expected",
    [
        (None, False),
        (OSError(errno.EINVAL, os.strerror(errno.EINVAL)), True),
        (OSError(errno.ENOENT, os.strerror(errno.ENOENT)), False),
        (ValueError("foo bar"), False),
    ],
)
def test_is_retryable_mount_error(err, expected):
    assert is_retryable_mount_error(err) is expected


def test_eval_any_symlinks_through_symlink_to_missing(tmp_path):
    real = tmp_path / "real"
    real.mkdir()
    link = tmp_path / "link"
    link.symlink_to(real)

    resolved = eval_any_symlinks(str(link / "missing" / "foo"))
    assert resolved == os.path.join(os.path.realpath(real), "missing", "foo")


def test_eval_any_symlinks_existing_path(tmp_path):
    target = tmp_path / "a" / "b"
    target.mkdir(parents=True)
    assert eval_any_symlinks(str(target)) == os.path.realpath(target)


def test_eval_any_symlinks_cleans_dot_dot(tmp_path):
    (tmp_path / "a").mkdir()
    path = str(tmp_path / "a" / ".." / "nope" / "x")
    assert eval_any_symlinks(path) == os.path.join(
        os.path.realpath(tmp_path), "nope", "x"
    )


def test_check_system_dir_rejects_dev():
    with pytest.raises(SystemDirError):
        check_system_dir("/dev/fcguest-nonexistent-dir")


def test_check_system_dir_rejects_proc_subpath():
    with pytest.raises(SystemDirError):
        check_system_dir("/proc/fcguest-nonexistent/mnt")


def test_check_system_dir_rejects_symlink_into_dev(tmp_path):
    link = tmp_path / "sneaky"
    link.symlink_to("/dev")
    with pytest.raises(SystemDirError):
        check_system_dir(str(link / "mnt"))


def test_check_system_dir_allows_ordinary_path(tmp_path):
    dest = tmp_path / "mnt" / "rootfs"
    assert check_system_dir(str(dest)) == os.path.join(
        os.path.realpath(tmp_path), "mnt", "rootfs"
    )


def _make_block_dir(root, devices):
    block = root / "block"
    block.mkdir()
    for name, major_minor in devices.items():
        (block / name).mkdir()
        (block / name / "dev").write_text(major_minor + "\n")
    return block


def test_list_block_device_names_sorted(tmp_path):
    block = _make_block_dir(tmp_path, {"vdc": "254:32", "vda": "254:0", "vdb": "254:16"})
    assert list_block_device_names(block) == ["vda", "vdb", "vdc"]


def test_list_block_device_names_missing_dir(tmp_path):
    with pytest.raises(FileNotFoundError):
        list_block_device_names(tmp_path / "absent")


def test_build_drive_reads_major_minor(tmp_path):
    block = _make_block_dir(tmp_path, {"vdb": "254:16"})
    drive = build_drive(block, "/dev", "vdb")
    assert drive == Drive(name="vdb", drive_path="/dev", major_minor="254:16")
    assert drive.path() == "/dev/vdb"
    assert drive.drive_id == ""


def test_build_drive_missing_device(tmp_path):
    block = _make_block_dir(tmp_path, {})
    with pytest.raises(FileNotFoundError):
        build_drive(block, "/dev", "vdz")


def test_drive_path_joins_components():
    drive = Drive(name="stub0", drive_path="./testdata/dev")
    assert drive.path() == "./testdata/dev/stub0"