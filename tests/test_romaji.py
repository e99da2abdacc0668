#!/usr/bin/env python3
# tests/test_romaji.py - Unit tests for romaji.py

import pytest
import json
import os
import sys

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from composing import InputElement
from romaji import (
    STYLE_DIRECT, STYLE_ROMAN2KANA, RomajiProcessor, Unit,
    create_transliterator, load_layout, to_fullwidth, to_halfwidth, to_katakana,
)

LAYOUT_PATH = os.path.join(os.path.dirname(__file__), '..', 'data', 'layouts', 'romaji.json')


@pytest.fixture(scope='module')
def layout():
    return load_layout(LAYOUT_PATH)


@pytest.fixture(scope='module')
def transliterator(layout):
    return create_transliterator(layout)


def roman(text):
    return [InputElement(c, STYLE_ROMAN2KANA) for c in text]


class TestRomajiProcessor:
    """Test suite for RomajiProcessor.feed()"""

    def test_empty_layout_data(self):
        processor = RomajiProcessor([])
        assert processor.romaji_map == []
        assert processor.feed('', 'a') == ('a', '')

    def test_none_layout_data(self):
        processor = RomajiProcessor(None)
        assert processor.romaji_map == []

    def test_map_is_bucketed_by_input_length(self):
        processor = RomajiProcessor([["a", "あ"], ["ka", "か"], ["kya", "きゃ"]])
        assert len(processor.romaji_map) == 3
        assert "a" in processor.romaji_map[0]
        assert "ka" in processor.romaji_map[1]
        assert "kya" in processor.romaji_map[2]
        assert processor.is_prefix("k")
        assert processor.is_prefix("ky")
        assert not processor.is_prefix("ka")

    def test_malformed_entries_are_skipped(self):
        processor = RomajiProcessor([["a"], ["", "x"], [3, "y"], ["i", "い"]])
        assert processor.lookup("i") == {'output': 'い', 'pending': ''}
        assert processor.lookup("a") is None

    def test_prefix_is_kept_pending(self, layout):
        processor = RomajiProcessor(layout)
        assert processor.feed('', 'k') == ('', 'k')
        assert processor.feed('k', 'y') == ('', 'ky')
        assert processor.feed('ky', 'a') == ('きゃ', '')

    def test_sokuon_keeps_consonant_pending(self, layout):
        processor = RomajiProcessor(layout)
        assert processor.feed('k', 'k') == ('っ', 'k')

    def test_n_before_consonant(self, layout):
        processor = RomajiProcessor(layout)
        assert processor.feed('', 'n') == ('', 'n')
        assert processor.feed('n', 'j') == ('ん', 'j')
        assert processor.feed('n', 'n') == ('ん', '')

    def test_dropped_prefix_is_flushed(self, layout):
        processor = RomajiProcessor(layout)
        # "wk" is not a sequence; "w" is emitted, "k" starts over
        assert processor.feed('w', 'k') == ('w', 'k')

    def test_unmatched_symbol_is_fullwidth(self, layout):
        assert RomajiProcessor(layout).feed('', '!') == ('！', '')
        assert RomajiProcessor(layout, fullwidth_symbols=False).feed('', '!') == ('!', '')


class TestCharacterWidth:

    def test_to_fullwidth_converts_punctuation_only(self):
        assert to_fullwidth('はい!') == 'はい！'
        assert to_fullwidth('a1?') == 'a1？'

    def test_to_halfwidth(self):
        assert to_halfwidth('ａｂｃ') == 'abc'
        assert to_halfwidth('かａ') == 'かa'

    def test_to_katakana(self):
        assert to_katakana('かんじ') == 'カンジ'
        assert to_katakana('ゔぁー') == 'ヴァー'
        assert to_katakana('漢字a') == '漢字a'


class TestLoadLayout:

    def test_shipped_layout(self, layout):
        assert ["ka", "か"] in layout
        assert ["kk", "っ", "k"] in layout

    def test_bare_list(self, tmp_path):
        path = tmp_path / 'bare.json'
        path.write_text(json.dumps([["a", "あ"]]), encoding='utf-8')
        assert load_layout(str(path)) == [["a", "あ"]]

    def test_invalid_layout(self, tmp_path):
        path = tmp_path / 'bad.json'
        path.write_text(json.dumps({"layout": 3}), encoding='utf-8')
        with pytest.raises(ValueError):
            load_layout(str(path))

    def test_broken_json(self, tmp_path):
        path = tmp_path / 'broken.json'
        path.write_text('{ nope', encoding='utf-8')
        with pytest.raises(ValueError):
            load_layout(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_layout(str(tmp_path / 'missing.json'))


class TestTransliterator:

    @pytest.mark.parametrize('raw, expected', [
        ('kanji', 'かんじ'),
        ('kyakka', 'きゃっか'),
        ('nihongo', 'にほんご'),
        ('kan', 'かn'),
        ('wka', 'wか'),
        ('tyo-', 'ちょー'),
        ('ka,ki.', 'か、き。'),
    ])
    def test_convert(self, transliterator, raw, expected):
        assert transliterator.convert(raw) == expected

    def test_convert_direct(self, transliterator):
        assert transliterator.convert('kanji', STYLE_DIRECT) == 'kanji'

    def test_units_close_when_pending_is_empty(self, transliterator):
        assert transliterator.units(roman('kanji')) == [
            Unit(2, 'か', False, ''),
            Unit(3, 'んじ', False, ''),
        ]

    def test_trailing_pending_unit(self, transliterator):
        assert transliterator.units(roman('kyak')) == [
            Unit(3, 'きゃ', False, ''),
            Unit(1, 'k', True, 'k'),
        ]

    def test_pending_keys_are_reported(self, transliterator):
        assert transliterator.units(roman('kanj')) == [
            Unit(2, 'か', False, ''),
            Unit(2, 'んj', True, 'j'),
        ]
        assert transliterator.units(roman('kk'))[0].pending_keys == 'k'

    def test_direct_element_breaks_romaji_run(self, transliterator):
        elements = roman('k') + [InputElement('A', STYLE_DIRECT)] + roman('a')
        assert transliterator.units(elements) == [
            Unit(1, 'k', True, 'k'),
            Unit(1, 'A', False, ''),
            Unit(1, 'あ', False, ''),
        ]
        assert transliterator.transliterate(elements) == 'kAあ'

    def test_units_cover_every_element(self, transliterator):
        elements = roman('shinkansen')
        units = transliterator.units(elements)
        assert sum(unit.raw_count for unit in units) == len(elements)
        assert ''.join(unit.output for unit in units) == 'しんかんせn'


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
