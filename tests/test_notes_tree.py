from pathlib import Path

from fakes import RecordingStorage
from notes_storage import LocalStorage
from notes_tree import (
    apply_favorites,
    build_tree,
    favorite_nodes,
    find_node,
    find_note_by_name,
    iter_nodes,
    recent_nodes,
)


def make_notes(root: Path) -> None:
    (root / "Alpha" / "sub").mkdir(parents=True)
    (root / "zeta").mkdir()
    (root / ".hidden").mkdir()
    (root / ".hidden" / "secret.md").write_text("# Hidden", encoding="utf8")
    (root / ".dot.md").write_text("dot", encoding="utf8")
    (root / "b.md").write_text("b", encoding="utf8")
    (root / "A.md").write_text("a", encoding="utf8")
    (root / "image.png").write_bytes(b"png")
    (root / "notes.txt").write_text("txt", encoding="utf8")
    (root / "Alpha" / "c.md").write_text("c", encoding="utf8")
    (root / "Alpha" / "B.md").write_text("B", encoding="utf8")
    (root / "Alpha" / "sub" / "deep.md").write_text("deep", encoding="utf8")


def test_build_tree_orders_directories_first_then_case_insensitive(tmp_path):
    make_notes(tmp_path)
    root = tmp_path.as_posix()

    tree = build_tree(LocalStorage(), root)

    assert [node.name for node in tree] == ["Alpha", "zeta", "A.md", "b.md"]

    alpha = tree[0]
    assert alpha.isDirectory
    assert alpha.path == f"{root}/Alpha"
    assert [node.name for node in alpha.children] == ["sub", "B.md", "c.md"]
    assert alpha.children[0].children[0].path == f"{root}/Alpha/sub/deep.md"


def test_build_tree_children_present_only_for_directories(tmp_path):
    make_notes(tmp_path)

    tree = build_tree(LocalStorage(), tmp_path.as_posix())

    for node in iter_nodes(tree):
        if node.isDirectory:
            assert isinstance(node.children, list)
        else:
            assert node.children is None
            assert node.name.endswith(".md")

    zeta = next(node for node in tree if node.name == "zeta")
    assert zeta.children == []


def test_build_tree_skips_hidden_entries_and_non_notes(tmp_path):
    make_notes(tmp_path)

    names = {node.name for node in iter_nodes(build_tree(LocalStorage(), tmp_path.as_posix()))}

    assert ".hidden" not in names
    assert "secret.md" not in names
    assert ".dot.md" not in names
    assert "image.png" not in names
    assert "notes.txt" not in names


def test_build_tree_keeps_partial_results_when_a_folder_is_unreadable(tmp_path):
    make_notes(tmp_path)
    root = tmp_path.as_posix()
    storage = RecordingStorage()
    storage.fail_lists.add(f"{root}/Alpha")

    tree = build_tree(storage, root)

    assert [node.name for node in tree] == ["Alpha", "zeta", "A.md", "b.md"]
    assert tree[0].children == []


def test_build_tree_returns_empty_when_root_is_unreadable(tmp_path):
    assert build_tree(LocalStorage(), (tmp_path / "missing").as_posix()) == []


def test_apply_favorites_marks_nested_nodes_without_mutating_input(tmp_path):
    make_notes(tmp_path)
    root = tmp_path.as_posix()
    tree = build_tree(LocalStorage(), root)

    marked = apply_favorites(tree, [f"{root}/Alpha/sub/deep.md", f"{root}/b.md"])

    assert find_node(marked, f"{root}/Alpha/sub/deep.md").isFavorite
    assert find_node(marked, f"{root}/b.md").isFavorite
    assert not find_node(marked, f"{root}/A.md").isFavorite
    assert not any(node.isFavorite for node in iter_nodes(tree))
    assert [node.name for node in favorite_nodes(marked)] == ["deep.md", "b.md"]

    unmarked = apply_favorites(marked, [])
    assert not any(node.isFavorite for node in iter_nodes(unmarked))


def test_find_note_by_name_is_case_insensitive_and_ignores_extension(tmp_path):
    make_notes(tmp_path)
    root = tmp_path.as_posix()
    tree = build_tree(LocalStorage(), root)

    assert find_note_by_name(tree, "DEEP").path == f"{root}/Alpha/sub/deep.md"
    assert find_note_by_name(tree, "b").path == f"{root}/Alpha/B.md"
    assert find_note_by_name(tree, "Alpha") is None
    assert find_note_by_name(tree, "missing") is None


def test_recent_nodes_skips_missing_paths_and_applies_limit(tmp_path):
    make_notes(tmp_path)
    root = tmp_path.as_posix()
    tree = build_tree(LocalStorage(), root)

    recents = [f"{root}/gone.md", f"{root}/b.md", f"{root}/A.md", f"{root}/Alpha/c.md"]

    assert [node.name for node in recent_nodes(tree, recents)] == ["b.md", "A.md", "c.md"]
    assert [node.name for node in recent_nodes(tree, recents, limit=1)] == ["b.md"]
