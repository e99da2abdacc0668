#!/usr/bin/env python3
"""
session.py - One composition session (buffer + supplier + options)
1つの入力セッション（バッファ・変換エンジン・変換オプション）

A session is the context value every boundary operation works on. It owns
exactly one ComposingBuffer and one options bundle; nothing here is global,
so several sessions can live side by side.

Calls on one session must not overlap: the caller serializes them (the
socket server runs every request on a single GLib main loop).

    idle ──append_text──► composing ──shrink_text (all)──► idle
                            │    ▲
                            └────┘ append/remove/move, get_candidates,
                                   shrink_text (part)
    any ──clear_text──► idle
"""

import logging
import os

from candidate import build_suggestions
from composing import ComposingBuffer
from romaji import INPUT_STYLES, STYLE_ROMAN2KANA, create_transliterator, load_layout
from supplier import DEFAULT_N_BEST, DictionarySupplier, NullSupplier

logger = logging.getLogger(__name__)

STATE_IDLE = 'idle'
STATE_COMPOSING = 'composing'

DEFAULT_LAYOUT = 'romaji.json'


class InitializationError(Exception):
    """Raised when the resources a session needs cannot be set up."""


class ComposingSession:

    def __init__(self, transliterator, supplier=None, options=None, input_style=STYLE_ROMAN2KANA):
        """
        Args:
            transliterator: romaji.Transliterator for the buffer
            supplier: CandidateSupplier; NullSupplier if None
            options: Conversion options forwarded to the supplier as-is
            input_style: Initial input style (STYLE_ROMAN2KANA or STYLE_DIRECT)
        """
        if input_style not in INPUT_STYLES:
            raise ValueError(f'Unknown input style: {input_style}')
        self.buffer = ComposingBuffer(transliterator)
        self.supplier = supplier if supplier is not None else NullSupplier()
        self.options = options if options is not None else {}
        self.input_style = input_style

    @property
    def state(self):
        return STATE_IDLE if self.buffer.is_empty() else STATE_COMPOSING

    def composing_text(self):
        """Return (convert_target, cursor)."""
        return self.buffer.convert_target, self.buffer.cursor

    # ─── Editing ──────────────────────────────────────────────────────────

    def append_text(self, text):
        """Insert raw keys at the cursor. Returns (convert_target, cursor)."""
        self.buffer.insert(text, self.input_style)
        return self.composing_text()

    def remove_text(self, count=1):
        """Delete raw keys before the cursor. Returns (convert_target, cursor)."""
        self.buffer.delete_backward(count)
        return self.composing_text()

    def move_cursor(self, offset):
        """Move the cursor (clamped). Returns (convert_target, cursor)."""
        self.buffer.move_cursor(offset)
        return self.composing_text()

    def clear_text(self):
        self.buffer.clear()

    def set_input_style(self, input_style):
        """Switch between kana and Latin input; the composition is discarded."""
        if input_style not in INPUT_STYLES:
            raise ValueError(f'Unknown input style: {input_style}')
        if input_style != self.input_style:
            logger.info(f'input style: {self.input_style} → {input_style}')
            self.input_style = input_style
            self.buffer.clear()

    # ─── Candidates ───────────────────────────────────────────────────────

    def get_candidates(self):
        """
        Ask the supplier for candidates and reconstruct them.

        A failing supplier is logged and yields an empty list, so the caller
        falls back to the raw convert target.

        Returns:
            list: candidate.Suggestion tuples in supplier order
        """
        if self.buffer.is_empty():
            return []
        try:
            candidates = self.supplier.supply(self.buffer, self.options)
        except Exception as e:
            logger.error(f'candidate supplier failed for {self.buffer.convert_target!r}: {e}')
            return []
        return build_suggestions(candidates or [], self.buffer)

    def shrink_text(self, corresponding_count):
        """
        Accept the first corresponding_count characters of the convert target.

        The buffer is replaced by its prefix-completed residual.

        Returns:
            tuple: (convert_target, cursor) of the residual
        """
        self.buffer.drop_prefix(corresponding_count)
        logger.debug(f'shrink_text({corresponding_count}) → {self.buffer!r}, state={self.state}')
        return self.composing_text()

    accept_candidate = shrink_text

    # ─── Rollback support ─────────────────────────────────────────────────

    def snapshot(self):
        return self.buffer.copy(), self.input_style

    def restore(self, snapshot):
        self.buffer, self.input_style = snapshot


def build_convert_options(config, resource_path):
    """
    Build the conversion options bundle from the config.

    The bundle is opaque to the session; only the supplier reads it.
    """
    options = dict(config.get('options', {})) if config else {}
    options.setdefault('keyboard_language', 'ja_JP')
    options.setdefault('learning_type', 'nothing')
    options.setdefault('require_japanese_prediction', True)
    options.setdefault('require_english_prediction', False)
    options.setdefault('n_best', DEFAULT_N_BEST)
    options['dictionary_resource_path'] = os.path.join(resource_path, 'dictionaries')
    return options


def _find_resource(name, subdir, search_dirs):
    for directory in search_dirs:
        path = os.path.join(directory, subdir, name)
        if os.path.exists(path):
            return path
    return None


def create_session(resource_path, config=None, search_dirs=None, supplier=None):
    """
    Set up a session from a resource directory.

    Layouts are looked up in <dir>/layouts/ and dictionaries in
    <dir>/dictionaries/ for each of search_dirs (user directories first),
    then resource_path.

    Args:
        resource_path: Directory holding the installed layouts and dictionaries
        config: Config dict (see data/config.json); defaults if None
        search_dirs: Extra directories searched before resource_path
        supplier: CandidateSupplier to use instead of a DictionarySupplier

    Returns:
        ComposingSession

    Raises:
        InitializationError: If resource_path is not a directory or the
                             layout cannot be loaded
    """
    config = config or {}
    if not resource_path or not os.path.isdir(resource_path):
        raise InitializationError(f'resource directory not found: {resource_path}')
    search_dirs = list(search_dirs or []) + [resource_path]

    layout_name = config.get('layout', DEFAULT_LAYOUT)
    layout_path = _find_resource(layout_name, 'layouts', search_dirs)
    if layout_path is None:
        raise InitializationError(f'layout {layout_name} not found in {search_dirs}')
    try:
        layout_data = load_layout(layout_path)
    except (OSError, ValueError) as e:
        raise InitializationError(f'Error in loading layout file {layout_path}: {e}') from e
    transliterator = create_transliterator(layout_data, config.get('fullwidth_symbols', True))

    if supplier is None:
        dictionary_files = []
        for name in config.get('dictionaries', []):
            path = _find_resource(name, 'dictionaries', search_dirs)
            if path is None:
                logger.warning(f'Dictionary {name} not found in {search_dirs}')
                continue
            dictionary_files.append(path)
        supplier = DictionarySupplier(dictionary_files)

    options = build_convert_options(config, resource_path)
    input_style = config.get('input_style', STYLE_ROMAN2KANA)
    if input_style not in INPUT_STYLES:
        logger.warning(f'Unknown input_style {input_style!r}; using {STYLE_ROMAN2KANA}')
        input_style = STYLE_ROMAN2KANA
    logger.info(f'session created: layout={layout_path}, input_style={input_style}')
    return ComposingSession(transliterator, supplier, options, input_style)
