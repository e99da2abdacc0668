#!/usr/bin/env python3
"""
composing.py - The composing buffer (入力中の文字列)
変換前の入力バッファ

================================================================================
OVERVIEW / 概要
================================================================================

The composing buffer keeps two views of what the user is typing:

    input          raw keys exactly as typed       [k, a, n, j, i]
    convert_target phonetic text derived from them "かんじ"
    cursor         offset into convert_target       3

変換対象の文字列はつねに生の入力履歴から再計算される。カーソルは変換対象の
文字単位で数える（生キー単位ではない）。

Edits arrive in convert-target space (the cursor) but act on the raw history.
When the cursor sits inside a multi-key unit (between き and ゃ of "kya"),
that unit is first rewritten as direct elements, one per displayed character,
so the cursor lands on an element boundary. Pending keys at the end of the
unit stay romaji keys, so a later key still completes them ("kanj" keeps
"j" waiting for "a"). The rewrite never changes convert_target.

編集は変換対象の座標（カーソル）で指定されるが、生の入力履歴に対して
適用される。カーソルが複数キーの単位の途中（"kya" の き と ゃ の間）にある
場合、その単位を表示文字ごとの直接入力要素に書き換えてから編集する。
未確定のキーはローマ字のまま残す。

================================================================================
"""

import logging
from collections import namedtuple

from romaji import STYLE_DIRECT, STYLE_ROMAN2KANA

logger = logging.getLogger(__name__)

# piece: one raw key (or one frozen output character for direct elements)
# style: STYLE_ROMAN2KANA or STYLE_DIRECT
InputElement = namedtuple('InputElement', ['piece', 'style'])


class ComposingBuffer:
    """
    Raw input history, convert target and cursor of one composition.
    1つの入力中文字列の生入力履歴・変換対象・カーソル

    Invariant: 0 <= cursor <= len(convert_target)
    """

    def __init__(self, transliterator, elements=None, cursor=None):
        """
        Args:
            transliterator: romaji.Transliterator used to derive convert_target
            elements: Initial raw history (list of InputElement), empty if None
            cursor: Initial cursor; None puts it at the end of convert_target
        """
        self._transliterator = transliterator
        self.input = list(elements) if elements else []
        self._refresh()
        if cursor is None:
            self.cursor = len(self.convert_target)
        else:
            self.cursor = max(0, min(cursor, len(self.convert_target)))

    def __eq__(self, other):
        if not isinstance(other, ComposingBuffer):
            return NotImplemented
        return (self.input == other.input
                and self.convert_target == other.convert_target
                and self.cursor == other.cursor)

    def __repr__(self):
        return f'ComposingBuffer(convert_target={self.convert_target!r}, cursor={self.cursor})'

    def __len__(self):
        return len(self.convert_target)

    @property
    def transliterator(self):
        return self._transliterator

    def is_empty(self):
        return not self.input

    def copy(self):
        """Return an independent buffer with the same history and cursor."""
        return ComposingBuffer(self._transliterator, self.input, self.cursor)

    def has_pending(self):
        """True if some raw keys are still waiting to become kana."""
        return any(unit.pending for unit in self._units)

    # ─── Internal helpers ─────────────────────────────────────────────────

    def _refresh(self):
        self._units = self._transliterator.units(self.input)
        self.convert_target = ''.join(unit.output for unit in self._units)

    def _target_length(self, raw_count):
        """Length of the convert target produced by the first raw_count elements."""
        return len(self._transliterator.transliterate(self.input[:raw_count]))

    def _freeze(self, raw_index, unit):
        """
        Replace the raw keys of unit by one element per output character.

        Resolved kana become direct elements. Pending keys stay romaji
        elements, so the next key can still complete them.
        """
        resolved = unit.output[:len(unit.output) - len(unit.pending_keys)]
        frozen = [InputElement(c, STYLE_DIRECT) for c in resolved]
        frozen += [InputElement(c, STYLE_ROMAN2KANA) for c in unit.pending_keys]
        self.input[raw_index:raw_index + unit.raw_count] = frozen
        return len(frozen)

    def _align(self, position, freeze_following):
        """
        Make a convert-target position fall on a raw element boundary.
        変換対象上の位置を生入力の要素境界に合わせる

        Args:
            position: Offset into convert_target (0..len)
            freeze_following: Also freeze the unit that starts at the
                              boundary, so keys inserted there cannot merge
                              with it (e.g. "k" inserted before "あ" must
                              not become "か")

        Returns:
            int: Index into self.input matching position
        """
        raw_index = 0
        target_index = 0
        for unit in self._units:
            if target_index == position:
                # a unit of pending keys only is left to combine with inserted keys
                if (freeze_following and unit.output != unit.pending_keys
                        and self._is_romaji_unit(raw_index, unit)):
                    self._freeze(raw_index, unit)
                    self._refresh()
                return raw_index
            end = target_index + len(unit.output)
            if position < end:
                # the position is inside this unit
                self._freeze(raw_index, unit)
                self._refresh()
                return raw_index + (position - target_index)
            raw_index += unit.raw_count
            target_index = end
        return len(self.input)

    def _is_romaji_unit(self, raw_index, unit):
        return any(element.style == STYLE_ROMAN2KANA
                   for element in self.input[raw_index:raw_index + unit.raw_count])

    # ─── Editing operations ───────────────────────────────────────────────

    def insert(self, raw_text, style=STYLE_ROMAN2KANA):
        """
        Insert raw keys at the cursor and move the cursor past their output.
        カーソル位置に生キーを挿入し、カーソルをその出力の後ろへ進める

        Keys that only form a partial sequence (a lone consonant) are kept
        in the history and shown as typed until a later key resolves them.

        Args:
            raw_text: Raw keys as typed; empty input is a no-op
            style: Input style applied to every key of raw_text
        """
        if not raw_text:
            return
        raw_index = self._align(self.cursor, freeze_following=True)
        new_elements = [InputElement(c, style) for c in raw_text]
        self.input[raw_index:raw_index] = new_elements
        self._refresh()
        self.cursor = self._target_length(raw_index + len(new_elements))
        logger.debug(f'insert({raw_text!r}, {style}) → {self.convert_target!r}, cursor={self.cursor}')

    def delete_backward(self, count=1):
        """
        Remove count raw input units ending at the cursor.
        カーソルの手前から生入力を count 個削除する

        A kana typed with several keys loses one key per unit deleted, so
        deleting one unit from "か" (typed "ka") leaves the pending "k".
        Requests larger than the available history are clamped.
        """
        if count <= 0 or self.cursor == 0:
            return
        raw_index = self._align(self.cursor, freeze_following=True)
        start = max(0, raw_index - count)
        del self.input[start:raw_index]
        self._refresh()
        self.cursor = self._target_length(start)
        logger.debug(f'delete_backward({count}) → {self.convert_target!r}, cursor={self.cursor}')

    def move_cursor(self, offset):
        """
        Move the cursor by offset characters, clamped to the convert target.

        Returns:
            int: The new cursor position
        """
        self.cursor = max(0, min(self.cursor + offset, len(self.convert_target)))
        return self.cursor

    def clear(self):
        self.input = []
        self._refresh()
        self.cursor = 0

    def prefix_complete(self, corresponding_count):
        """
        Return the buffer that remains after accepting the first
        corresponding_count convert-target characters.
        先頭 corresponding_count 文字を確定した後に残るバッファを返す

        This buffer is left untouched. A multi-key unit cut by the boundary
        is rewritten as direct characters, so the residual history never
        holds a key fragment whose kana has been accepted. Pending keys
        stay romaji keys and still combine with the next key.
        """
        residual = self.copy()
        residual.drop_prefix(corresponding_count)
        return residual

    def drop_prefix(self, count):
        """In-place version of prefix_complete()."""
        count = max(0, min(count, len(self.convert_target)))
        if count == 0:
            return
        if count == len(self.convert_target):
            self.clear()
            return
        previous_cursor = self.cursor
        raw_index = self._align(count, freeze_following=False)
        del self.input[:raw_index]
        self._refresh()
        self.cursor = max(0, min(previous_cursor - count, len(self.convert_target)))
