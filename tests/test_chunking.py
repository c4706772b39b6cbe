"""Test passage chunking"""
import re

import pytest

from docqa.chunking import FLEX_FACTOR, chunk_text, split_large_section
from docqa.exceptions import EmptyDocumentError

POLICY = """LEAVE POLICY:
Employees receive twenty days of paid leave each calendar year.

1. Requests must be submitted two weeks in advance.
2. Unused leave expires at the end of March.

* Sick leave is tracked separately.
* Parental leave follows local regulations.

- Contractors are not covered by this policy.
"""


def _non_ws(text):
    return re.sub(r"\s+", "", text)


def test_short_text_is_single_passage():
    passages = chunk_text("Just one short paragraph.", 500)
    assert passages == ["Just one short paragraph."]


def test_sections_are_packed_within_flex_limit():
    passages = chunk_text(POLICY, 120)
    assert len(passages) > 1
    for passage in passages:
        assert len(passage) <= 120 * FLEX_FACTOR


def test_structural_boundaries_start_passages():
    passages = chunk_text(POLICY, 60)
    assert any(p.startswith("2. Unused leave") for p in passages)
    assert any(p.startswith("- Contractors") for p in passages)


def test_no_characters_are_dropped():
    passages = chunk_text(POLICY, 80)
    joined = _non_ws("".join(passages))
    source = _non_ws(POLICY)
    # every non-whitespace character survives in order
    it = iter(joined)
    assert all(ch in it for ch in source)


def test_chunking_is_deterministic():
    assert chunk_text(POLICY, 90) == chunk_text(POLICY, 90)


def test_paragraph_split_without_boundaries():
    text = "\n\n".join([
        "The harbor town welcomes ships every morning at dawn.",
        "Zephyrium is a rare mineral used for cooling reactors.",
        "Local bakers sell warm bread near the old market square.",
    ])
    passages = chunk_text(text, 100)
    assert len(passages) == 3
    assert "Zephyrium" in passages[1]


def test_overlap_repeats_last_paragraph():
    paragraphs = ["alpha " * 6, "bravo " * 6, "charlie " * 6, "delta " * 6]
    section = "\n\n".join(p.strip() for p in paragraphs)
    passages = split_large_section(section, 90)
    assert len(passages) >= 2
    last_of_first = passages[0].split("\n\n")[-1]
    assert passages[1].startswith(last_of_first)


def test_overlap_with_single_paragraph_passages():
    paragraphs = [
        "The harbor town welcomes ships every morning at dawn.",
        "Zephyrium is a rare mineral used for cooling reactors.",
        "Local bakers sell warm bread near the old market square.",
    ]
    passages = chunk_text("\n\n".join(paragraphs), 100)

    assert passages[0] == paragraphs[0]
    for previous, following in zip(passages, passages[1:]):
        last = previous.split("\n\n")[-1]
        assert following.startswith(last)
        assert len(following) <= 100 * FLEX_FACTOR


def test_long_paragraph_is_cut_on_sentences():
    paragraph = " ".join(f"Sentence number {i} talks about nothing much." for i in range(30))
    passages = chunk_text(paragraph, 150)
    assert len(passages) > 1
    assert all(len(p) <= 150 * FLEX_FACTOR for p in passages)
    it = iter(_non_ws("".join(passages)))
    assert all(ch in it for ch in _non_ws(paragraph))


@pytest.mark.parametrize("text", ["", "   ", "\n\n\t"])
def test_empty_text_raises(text):
    with pytest.raises(EmptyDocumentError):
        chunk_text(text, 100)


def test_invalid_chunk_size():
    with pytest.raises(ValueError):
        chunk_text("some text", 0)
