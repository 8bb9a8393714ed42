import pytest

from fakes import RecordingStorage
from notes_index import (
    Backlink,
    SearchMatch,
    TagInfo,
    extract_headings,
    find_backlinks,
    heading_id,
    scan_all_tags,
    search_notes,
    word_stats,
)
from notes_storage import LocalStorage
from notes_tree import build_tree


def write_notes(tmp_path, notes):
    for rel, body in notes.items():
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf8")
    return build_tree(LocalStorage(), tmp_path.as_posix())


def test_scenario_tags_backlinks_and_search(tmp_path):
    root = tmp_path.as_posix()
    tree = write_notes(tmp_path, {"a.md": "hello #work", "b.md": "[[a]]"})
    storage = LocalStorage()

    assert scan_all_tags(storage, tree) == [TagInfo(tag="work", count=1)]

    assert find_backlinks(storage, tree, "a") == [Backlink(path=f"{root}/b.md", name="b", context="[[a]]")]

    results = search_notes(storage, tree, "hello")
    assert len(results) == 1
    assert results[0].path == f"{root}/a.md"
    assert results[0].name == "a.md"
    assert results[0].matches == [SearchMatch(line=1, text="hello #work")]


def test_search_blank_query_returns_nothing(tmp_path):
    tree = write_notes(tmp_path, {"a.md": "anything"})

    assert search_notes(LocalStorage(), tree, "") == []
    assert search_notes(LocalStorage(), tree, "   ") == []


def test_search_is_case_insensitive_and_caps_matches_per_note(tmp_path):
    body = "\n".join(f"  Match line {i}  " for i in range(1, 6))
    tree = write_notes(tmp_path, {"note.md": body})

    results = search_notes(LocalStorage(), tree, "match")

    assert len(results) == 1
    assert [m.line for m in results[0].matches] == [1, 2, 3]
    assert results[0].matches[0].text == "Match line 1"


def test_search_matches_file_name_without_body_match(tmp_path):
    tree = write_notes(tmp_path, {"Groceries.md": "milk\neggs"})

    results = search_notes(LocalStorage(), tree, "grocer")

    assert len(results) == 1
    assert results[0].matches == []


def test_search_keeps_tree_order_and_skips_unreadable_notes(tmp_path):
    root = tmp_path.as_posix()
    tree = write_notes(
        tmp_path,
        {"z.md": "needle", "folder/b.md": "needle", "a.md": "needle", "c.md": "needle"},
    )
    storage = RecordingStorage()
    storage.fail_reads.add(f"{root}/c.md")

    results = search_notes(storage, tree, "needle")

    assert [r.path for r in results] == [f"{root}/folder/b.md", f"{root}/a.md", f"{root}/z.md"]


def test_backlinks_one_entry_per_note_case_insensitive_and_truncated(tmp_path):
    long_line = "See [[Project Plan]] " + "x" * 200
    tree = write_notes(
        tmp_path,
        {
            "one.md": "first [[project plan]]\nsecond [[Project Plan]]",
            "two.md": long_line,
            "three.md": "[[Project]] only",
        },
    )

    backlinks = find_backlinks(LocalStorage(), tree, "Project Plan")

    assert [b.name for b in backlinks] == ["one", "two"]
    assert backlinks[0].context == "first [[project plan]]"
    assert len(backlinks[1].context) == 100
    assert backlinks[1].context.startswith("See [[Project Plan]]")


def test_backlinks_escape_regex_characters(tmp_path):
    tree = write_notes(tmp_path, {"ref.md": "uses [[C++ (draft)]]", "other.md": "[[C (draft)]]"})

    backlinks = find_backlinks(LocalStorage(), tree, "C++ (draft)")

    assert [b.name for b in backlinks] == ["ref"]


def test_tags_exclude_headings_and_embedded_hashes(tmp_path):
    tree = write_notes(
        tmp_path,
        {
            "a.md": "# Heading\n## Sub\n#Tag and #tag\ntext#notatag #1bad #ok-tag_2",
            "b.md": "#TAG again",
        },
    )

    tags = scan_all_tags(LocalStorage(), tree)

    assert tags == [TagInfo(tag="tag", count=3), TagInfo(tag="ok-tag_2", count=1)]


def test_tag_scan_is_idempotent(tmp_path):
    tree = write_notes(tmp_path, {"a.md": "#one #two #two", "b.md": "#three #one"})

    first = scan_all_tags(LocalStorage(), tree)
    second = scan_all_tags(LocalStorage(), tree)

    assert first == second
    assert [t.tag for t in first] == ["one", "two", "three"]


def test_extract_headings_levels_lines_and_ids():
    content = "# Title\ntext\n## Sub Section!\n####### seven\n###NoSpace\n### Café & Bar  "

    headings = extract_headings(content)

    assert [(h.text, h.level, h.line, h.id) for h in headings] == [
        ("Title", 1, 1, "title"),
        ("Sub Section!", 2, 3, "sub-section"),
        ("Café & Bar", 3, 6, "caf-bar"),
    ]


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Hello World", "hello-world"),
        ("Hello World - Part 2", "hello-world---part-2"),
        ("snake_case & more", "snake_case-more"),
        ("What's new?", "whats-new"),
        ("a\u00a0b", "a-b"),
        ("x\u3000y", "x-y"),
        ("Café au lait", "caf-au-lait"),
    ],
)
def test_heading_id_slugging(text, expected):
    assert heading_id(text) == expected


def test_extract_headings_is_pure():
    content = "# A\n## B"

    assert extract_headings(content) == extract_headings(content)
    assert extract_headings("") == []


def test_word_stats():
    empty = word_stats("   ")
    assert (empty.words, empty.characters, empty.readingTime) == (0, 0, "0 min")

    short = word_stats(" one two  three ")
    assert (short.words, short.characters, short.readingTime) == (3, 14, "1 min")

    assert word_stats(" ".join(["word"] * 401)).readingTime == "3 min"
