from __future__ import annotations

import pytest

from masquerade.anon.content_filter import ContentFilter
from masquerade.errors import Filtered


def test_short_terms_match_whole_words_only():
    f = ContentFilter(["ass"])
    assert f.matches("what an ASS")
    assert f.matches("ass.")
    assert not f.matches("first class passes")


def test_long_terms_catch_spacing_and_punctuation():
    f = ContentFilter(["badword"])
    assert f.matches("this is a badword")
    assert f.matches("b.a.d w o r d")
    assert f.matches("BadWords everywhere")
    assert not f.matches("bad, but not that word")


def test_empty_filter_matches_nothing():
    f = ContentFilter(["", "  "])
    assert not f
    assert not f.matches("anything at all")


def test_check_raises_filtered():
    f = ContentFilter(["badword"])
    f.check("hello")
    with pytest.raises(Filtered):
        f.check("badword")
