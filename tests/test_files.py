"""Tests for path enumeration, key naming and content types."""

import pytest

from blob_cli.exceptions import PathNotFoundError
from blob_cli.files import (
    DEFAULT_CONTENT_TYPE,
    DiscoveredFile,
    LocalFileSystem,
    discover_files,
    guess_content_type,
    make_key,
    walk_tree,
)
from conftest import MemoryFileSystem


@pytest.fixture
def tree():
    return MemoryFileSystem(
        {
            "site/index.html": b"<html></html>",
            "site/css/main.css": b"body{}",
            "site/img/logo.png": b"\x89PNG",
            "site/img/icons/x.svg": b"<svg/>",
            "notes.txt": b"hello",
        }
    )


def test_walk_tree_is_recursive_and_sorted(tree):
    files = list(walk_tree(tree, "/work/site"))
    assert files == [
        "/work/site/css/main.css",
        "/work/site/img/icons/x.svg",
        "/work/site/img/logo.png",
        "/work/site/index.html",
    ]


def test_walk_tree_is_lazy(tree):
    walker = walk_tree(tree, "/work/site")
    assert next(walker) == "/work/site/css/main.css"


def test_discover_directory_keeps_root(tree):
    discovery = discover_files(["site"], fs=tree)
    assert discovery.missing == []
    assert {f.root for f in discovery.files} == {"/work/site"}
    assert len(discovery.files) == 4
    assert discovery.from_directory


def test_discover_file_has_no_root(tree):
    discovery = discover_files(["notes.txt"], fs=tree)
    assert discovery.files == [DiscoveredFile(path="/work/notes.txt")]
    assert not discovery.from_directory


def test_missing_path_is_reported_once_and_skipped(tree):
    discovery = discover_files(["notes.txt", "nope.bin", "site/index.html"], fs=tree)

    assert len(discovery.missing) == 1
    error = discovery.missing[0]
    assert isinstance(error, PathNotFoundError)
    assert error.path == "/work/nope.bin"
    assert [f.path for f in discovery.files] == [
        "/work/notes.txt",
        "/work/site/index.html",
    ]


def test_empty_directory_contributes_nothing(tree):
    tree.mkdir("empty")
    discovery = discover_files(["empty"], fs=tree)
    assert discovery.files == []
    assert discovery.missing == []


def test_make_key_single_file_uses_basename():
    f = DiscoveredFile(path="/work/data/report.csv")
    assert make_key(f, single_file=True) == "report.csv"


def test_make_key_override_for_single_file():
    f = DiscoveredFile(path="/work/data/report.csv")
    assert make_key(f, override="reports/q1.csv", single_file=True) == "reports/q1.csv"


def test_make_key_override_ignored_for_batches():
    f = DiscoveredFile(path="/work/data/report.csv")
    assert make_key(f, override="reports/q1.csv", single_file=False) == "report.csv"


def test_make_key_directory_is_relative_posix():
    f = DiscoveredFile(path="/work/site/img/icons/x.svg", root="/work/site")
    assert make_key(f) == "img/icons/x.svg"


def test_make_key_directory_ignores_override():
    f = DiscoveredFile(path="/work/site/index.html", root="/work/site")
    assert make_key(f, override="other.html", single_file=True) == "index.html"


@pytest.mark.parametrize(
    "name,expected",
    [
        ("page.html", "text/html"),
        ("photo.PNG", "image/png"),
        ("doc.pdf", "application/pdf"),
        ("data.json", "application/json"),
        ("blob.unknownext", DEFAULT_CONTENT_TYPE),
        ("Makefile", DEFAULT_CONTENT_TYPE),
    ],
)
def test_guess_content_type(name, expected):
    assert guess_content_type(f"/work/{name}") == expected


def test_local_filesystem_walk(tmp_path):
    (tmp_path / "a" / "b").mkdir(parents=True)
    (tmp_path / "a" / "b" / "deep.txt").write_text("x")
    (tmp_path / "a" / "top.txt").write_text("y")

    discovery = discover_files([str(tmp_path / "a")])
    keys = [make_key(f) for f in discovery.files]
    assert keys == ["b/deep.txt", "top.txt"]


def test_local_filesystem_resolves_relative_paths(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "f.bin").write_bytes(b"\0")
    fs = LocalFileSystem()
    assert fs.resolve("f.bin") == str((tmp_path / "f.bin").resolve())
