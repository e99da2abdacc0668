#!/usr/bin/env python3
"""
romaji.py - Input-style transliteration (romaji → hiragana)
入力方式の変換（ローマ字 → ひらがな）

================================================================================
OVERVIEW / 概要
================================================================================

Raw keystrokes are stored by the composing buffer exactly as typed. This
module turns that raw history into the phonetic string shown to the user
(the "convert target"), and reports how the raw keys line up with the
characters they produced.

生のキー入力は入力どおりにバッファへ保存される。このモジュールはその履歴を
ユーザーに表示する音声文字列（変換対象）へ変換し、どの生キーがどの文字に
対応するかを報告する。

    raw:      k  y  a  k  k  a  n
              └──┬──┘  └──┬──┘  └─ pending (shown verbatim)
    output:     きゃ      っか       n

================================================================================
LAYOUT DATA FORMAT / レイアウトデータ形式
================================================================================

A layout is a list of entries, each being a list:
レイアウトはエントリのリスト、各エントリもリスト:

    [input_str, output_str]                 # "ka" → "か"
    [input_str, output_str, pending_str]    # "kk" → "っ", keep "k" pending

Inputs that are a proper prefix of a longer input ("k", "ky", "ts") are
held back as pending without needing an entry of their own.
より長い入力の接頭辞となる入力（"k", "ky", "ts"）はエントリがなくても
保留として扱われる。

================================================================================
UNITS / 単位
================================================================================

The transliteration is reported as a list of Unit tuples. A unit is the
smallest run of raw keys whose output can be separated from its neighbours:
the romaji state machine is back at an empty pending buffer on both sides.
Editing at a unit boundary never changes the output of other units.

変換結果は Unit タプルのリストとして返される。単位とは、前後と切り離せる
最小の生キー列（両端で保留バッファが空になる列）。単位境界での編集は
他の単位の出力を変えない。

================================================================================
"""

import logging
from collections import namedtuple

import orjson

logger = logging.getLogger(__name__)

STYLE_DIRECT = 'direct'
STYLE_ROMAN2KANA = 'roman2kana'

INPUT_STYLES = (STYLE_DIRECT, STYLE_ROMAN2KANA)

# raw_count: number of raw input elements the unit consumed
# output: the characters the unit contributes to the convert target
# pending: True if the unit ends with unresolved raw keys
# pending_keys: those unresolved keys; they are the tail of output
Unit = namedtuple('Unit', ['raw_count', 'output', 'pending', 'pending_keys'])

# https://www.unicode.org/charts/nameslist/n_FF00.html
# ASCII letters and digits stay half-width.
HALF_TO_FULL = {
    '!': '！', '"': '＂', '#': '＃', '$': '＄', '%': '％', '&': '＆',
    "'": '＇', '(': '（', ')': '）', '*': '＊', '+': '＋', ',': '、',
    '-': 'ー', '.': '。', '/': '／', ':': '：', ';': '；', '<': '＜',
    '=': '＝', '>': '＞', '?': '？', '@': '＠', '[': '［', '\\': '＼',
    ']': '］', '^': '＾', '_': '＿', '`': '｀', '{': '｛', '|': '｜',
    '}': '｝', '~': '～',
}


def to_fullwidth(text):
    """Convert ASCII punctuation in text to its full-width form.

    Example: "はい!" → "はい！", "a,b" → "a、b"
    """
    return ''.join(HALF_TO_FULL.get(c, c) for c in text)


def to_halfwidth(text):
    """Convert full-width lowercase Latin letters (ａ-ｚ) back to ASCII."""
    return ''.join(
        chr(ord(c) - 0xFEE0) if 0xFF41 <= ord(c) <= 0xFF5A else c
        for c in text
    )


def to_katakana(text):
    """Convert hiragana characters in text to katakana; others are kept."""
    return ''.join(
        chr(ord(c) + 0x60) if 0x3041 <= ord(c) <= 0x3096 else c
        for c in text
    )


def load_layout(path):
    """Load a layout JSON file.

    The file is either a bare list of entries or an object with a "layout"
    key holding that list.

    Args:
        path: Path to the layout JSON file

    Returns:
        list: The layout entries

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not valid layout JSON
    """
    with open(path, 'rb') as f:
        data = orjson.loads(f.read())
    if isinstance(data, dict):
        data = data.get('layout')
    if not isinstance(data, list):
        raise ValueError(f'Invalid layout format (expected list of entries): {path}')
    logger.info(f'layout JSON file loaded: {path} ({len(data)} entries)')
    return data


class RomajiProcessor:
    """
    Sequential romaji lookup over a layout table.
    レイアウト表に基づく逐次ローマ字ルックアップ

    ─────────────────────────────────────────────────────────────────────────────
    USAGE / 使用方法
    ─────────────────────────────────────────────────────────────────────────────
    processor = RomajiProcessor(layout_data)

    # On each raw key:
    output, pending = processor.feed(pending, char)

    # output: Characters produced by this key (may include a dropped prefix)
    #         このキーで確定した文字（ドロップされた接頭辞を含む場合あり）
    # pending: Keys waiting for more input (e.g., "k" waiting for "a")
    #          次の入力を待つキー（例: "a"を待つ"k"）
    """

    def __init__(self, layout_data, fullwidth_symbols=True):
        """
        Args:
            layout_data: List of layout entries, [input, output] or
                         [input, output, pending]
            fullwidth_symbols: Convert unmatched ASCII punctuation to
                               full-width when it is flushed
        """
        self.layout_data = layout_data
        self.fullwidth_symbols = fullwidth_symbols
        # romaji_map[i] holds the entries whose input has length i + 1
        self.romaji_map = []
        self._prefix_set = set()
        self._build_romaji_map()

    def _build_romaji_map(self):
        if not self.layout_data:
            logger.warning('No layout data provided')
            return

        max_input_len = 0
        for entry in self.layout_data:
            if entry and isinstance(entry[0], str):
                max_input_len = max(max_input_len, len(entry[0]))
        self.romaji_map = [{} for _ in range(max_input_len)]

        for entry in self.layout_data:
            if len(entry) < 2 or not isinstance(entry[0], str):
                logger.warning(f'malformed layout entry; skipping.. : {entry}')
                continue
            input_str = entry[0]
            if len(input_str) == 0:
                logger.warning('input str len == 0 detected; skipping..')
                continue
            values = dict()
            values['output'] = str(entry[1])
            values['pending'] = str(entry[2]) if len(entry) >= 3 and entry[2] else ''
            self.romaji_map[len(input_str) - 1][input_str] = values
            for i in range(1, len(input_str)):
                self._prefix_set.add(input_str[:i])

    def is_prefix(self, text):
        """Return True if text can still grow into a longer layout input."""
        return text in self._prefix_set

    def lookup(self, text):
        """Return the layout entry for text, or None."""
        if not text or len(text) > len(self.romaji_map):
            return None
        return self.romaji_map[len(text) - 1].get(text)

    def _flush(self, text):
        if self.fullwidth_symbols:
            return to_fullwidth(text)
        return text

    def feed(self, past_pending, input_char):
        """
        Process one raw key and return output + new pending buffer.
        生キーを1つ処理し、出力と新しい保留バッファを返す

        The lookup tries the longest tail of past_pending + input_char first:
        past_pending + input_char の最長の末尾から順に試す:

            past_pending = "x", input_char = "k"

            Step 1: "xk" - neither an input nor a prefix
            Step 2: "k"  - prefix of "ka", "ki", ... → pending "k",
                           dropped prefix "x" is flushed as output

        A tail that is a prefix of a longer input wins over an exact match of
        the same length, so "n" waits for "na"/"nn" instead of resolving.

        Args:
            past_pending: Pending keys from the previous call ('' if none)
            input_char: The new raw key

        Returns:
            Tuple[str, str]: (output, pending)
        """
        key = past_pending + input_char
        max_tail_len = min(len(key), len(self.romaji_map))
        for tail_len in range(max_tail_len, 0, -1):
            tail = key[-tail_len:]
            dropped_prefix = key[:-tail_len]
            if self.is_prefix(tail):
                return self._flush(dropped_prefix), tail
            entry = self.lookup(tail)
            if entry:
                return self._flush(dropped_prefix) + entry['output'], entry['pending']
        # No match found at any length - everything is output as-is
        return self._flush(key), ''


class Transliterator:
    """
    Turns a raw input history into units of convert-target text.

    Elements are any objects with `piece` and `style` attributes (the
    composing buffer's InputElement). Consecutive roman2kana elements go
    through the romaji processor together; a direct element is its own unit
    and breaks the romaji run, so pending keys before it are shown as typed.
    """

    def __init__(self, processor):
        self.processor = processor

    def units(self, elements):
        """
        Args:
            elements: Sequence of raw input elements

        Returns:
            list: Unit tuples covering every element, in order
        """
        units = []
        pending = ''
        raw_count = 0
        output = []

        for element in elements:
            if element.style == STYLE_ROMAN2KANA:
                out, pending = self.processor.feed(pending, element.piece)
                raw_count += 1
                output.append(out)
                if not pending:
                    units.append(Unit(raw_count, ''.join(output), False, ''))
                    raw_count = 0
                    output = []
                continue

            if raw_count:
                # unresolved keys before a direct element stay visible as typed
                units.append(Unit(raw_count, ''.join(output) + pending, True, pending))
                pending = ''
                raw_count = 0
                output = []
            units.append(Unit(1, element.piece, False, ''))

        if raw_count:
            units.append(Unit(raw_count, ''.join(output) + pending, True, pending))
        return units

    def transliterate(self, elements):
        """Return the convert-target text for elements."""
        return ''.join(unit.output for unit in self.units(elements))

    def convert(self, raw_text, style=STYLE_ROMAN2KANA):
        """Transliterate a plain string typed in a single input style."""
        if style == STYLE_DIRECT:
            return raw_text
        pending = ''
        output = []
        for c in raw_text:
            out, pending = self.processor.feed(pending, c)
            output.append(out)
        return ''.join(output) + pending


def create_transliterator(layout_data, fullwidth_symbols=True):
    """Build a Transliterator over a romaji layout."""
    return Transliterator(RomajiProcessor(layout_data, fullwidth_symbols))
