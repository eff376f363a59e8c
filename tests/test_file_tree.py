"""Tests for deepcode.file_tree."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from deepcode.file_tree import FileTreeScanner, detect_language, read_code_file
from deepcode.models import FileNode


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _walk(node: FileNode):
    yield node
    for child in node.children or ():
        yield from _walk(child)


def test_scan_builds_tree_and_skips_noise(tmp_path: Path) -> None:
    root = tmp_path / "project"
    _write(root / "src" / "app.ts", "export const x = 1;\n")
    _write(root / "README.md", "# Demo\n")
    _write(root / "node_modules" / "left-pad" / "index.js", "module.exports = 1;\n")
    _write(root / ".git" / "HEAD", "ref: refs/heads/main\n")
    _write(root / ".env", "SECRET=1\n")
    _write(root / "src" / ".cache" / "blob.js", "cached\n")

    tree = FileTreeScanner().scan(root)

    assert tree.is_directory
    assert tree.name == "project"
    assert [child.name for child in tree.children] == ["README.md", "src"]
    src = tree.children[1]
    assert [child.name for child in src.children] == ["app.ts"]

    names = {node.name for node in _walk(tree)}
    assert "node_modules" not in names
    assert ".git" not in names
    assert ".env" not in names
    assert ".cache" not in names


def test_scan_files_never_have_children(repo_builder) -> None:
    repo_builder.write({"a/b/c.py": "x = 1\n", "a/d.txt": "hi\n", "e.go": "package main\n"})

    tree = repo_builder.scan()

    for node in _walk(tree):
        if node.is_directory:
            assert node.children is not None
        else:
            assert node.children is None


def test_scan_rejects_missing_root(tmp_path: Path) -> None:
    missing = tmp_path / "missing"
    with pytest.raises(OSError) as excinfo:
        FileTreeScanner().scan(missing)
    assert str(missing) in str(excinfo.value)


def test_scan_omits_unreadable_children(tmp_path: Path) -> None:
    root = tmp_path / "project"
    _write(root / "main.py", "print('ok')\n")
    (root / "dangling.py").symlink_to(root / "does-not-exist.py")

    tree = FileTreeScanner().scan(root)

    assert [child.name for child in tree.children] == ["main.py"]


def test_scan_honours_custom_ignore_names(repo_builder) -> None:
    repo_builder.write({"dist/bundle.js": "x\n", "src/main.js": "y\n"})

    tree = FileTreeScanner(ignore_names=["dist"]).scan(repo_builder.path())

    assert [child.name for child in tree.children] == ["src"]


def test_file_node_to_dict_uses_camel_case(repo_builder) -> None:
    repo_builder.write({"pkg/mod.py": "pass\n"})

    payload = repo_builder.scan().to_dict()

    assert payload["isDirectory"] is True
    child = payload["children"][0]
    assert child["name"] == "pkg"
    assert child["children"][0] == {
        "name": "mod.py",
        "path": os.path.join(str(repo_builder.path().resolve()), "pkg", "mod.py"),
        "isDirectory": False,
    }


def test_read_code_file_detects_language(tmp_path: Path) -> None:
    target = tmp_path / "server.ts"
    target.write_text("const port = 3000;\n", encoding="utf-8")

    code_file = read_code_file(target)

    assert code_file.content == "const port = 3000;\n"
    assert code_file.language == "typescript"
    assert detect_language("notes.unknown") == "text"


def test_read_code_file_missing(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_code_file(tmp_path / "nope.py")
