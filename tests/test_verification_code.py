"""Package verification code and file counting."""

from __future__ import annotations

from pathlib import Path

from licensage.services.verification_code import (
    calculate_package_verification_code,
    count_files,
    iter_regular_files,
)


def _tree(root: Path) -> Path:
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.c").write_text("int main(void) { return 0; }\n")
    (root / "README").write_text("readme\n")
    return root


def test_code_is_stable_for_identical_trees(tmp_path: Path) -> None:
    first = _tree(tmp_path / "first")
    second = _tree(tmp_path / "second")

    code = calculate_package_verification_code(first)
    assert code == calculate_package_verification_code(second)
    assert len(calculate_package_verification_code(first)) == 40


def test_code_changes_with_content_or_name(tmp_path: Path) -> None:
    root = _tree(tmp_path / "tree")
    original = calculate_package_verification_code(root)

    (root / "README").write_text("changed\n")
    edited = calculate_package_verification_code(root)
    (root / "README").rename(root / "README.md")
    renamed = calculate_package_verification_code(root)

    assert len({original, edited, renamed}) == 3


def test_vcs_files_are_counted_but_not_fingerprinted(tmp_path: Path) -> None:
    root = _tree(tmp_path / "tree")
    before = calculate_package_verification_code(root)
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n")

    assert calculate_package_verification_code(root) == before
    assert count_files(root) == 3


def test_single_file_is_reported_under_its_own_name(tmp_path: Path) -> None:
    path = tmp_path / "LICENSE"
    path.write_text("text\n")

    assert [relative for relative, _ in iter_regular_files(path)] == ["LICENSE"]
    assert count_files(path) == 1


def test_files_are_listed_in_sorted_order(tmp_path: Path) -> None:
    root = _tree(tmp_path / "tree")
    (root / "a.txt").write_text("a\n")

    assert [relative for relative, _ in iter_regular_files(root)] == [
        "README",
        "a.txt",
        "src/main.c",
    ]
