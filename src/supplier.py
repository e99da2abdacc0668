#!/usr/bin/env python3
# supplier.py - Candidate suppliers (kana-to-kanji conversion back ends)

import logging
import os
import threading

import orjson

from candidate import Candidate, Segment
from romaji import to_katakana

logger = logging.getLogger(__name__)

DEFAULT_N_BEST = 10


class CandidateSupplier:
    """
    Interface of a conversion back end.

    supply() is called with the live composing buffer and the options bundle
    of the session, and returns candidates best first. The options are the
    supplier's business; the session forwards them untouched. Ranking is
    entirely up to the supplier.
    """

    def supply(self, buffer, options):
        """
        Args:
            buffer: The ComposingBuffer (must not be modified)
            options: The session's conversion options (dict)

        Returns:
            list: Candidate tuples, best first
        """
        raise NotImplementedError


class NullSupplier(CandidateSupplier):
    """Supplier that never has candidates; the caller shows raw text only."""

    def supply(self, buffer, options):
        return []


class DictionarySupplier(CandidateSupplier):
    """
    Supplier backed by JSON reading → surface dictionaries.

    Dictionary format (JSON):
        {
            "reading": {
                "candidate1": count1,
                "candidate2": count2,
                ...
            },
            ...
        }
    where a higher count means a more frequent candidate. The legacy form
    {"candidate": {"POS": "品詞", "cost": cost}} is accepted and converted
    to count = -cost.

    Candidates are produced in this order:
        1. whole-reading dictionary matches (by count)
        2. a longest-match segmentation covering the whole reading
        3. dictionary matches for shorter prefixes of the reading (longest first)
        4. the reading itself in hiragana and in katakana
    """

    def __init__(self, dictionary_files=None):
        """
        Dictionary loading happens in a background thread. Until it is
        complete, supply() returns no candidates.

        Args:
            dictionary_files: List of paths to dictionary JSON files.
                              Files are loaded in order; for duplicate
                              candidates the higher count is kept.
        """
        # Lock for thread-safe access to _dictionary during background loading
        self._lock = threading.Lock()
        self._ready = False

        # Merged dictionary: {reading: {candidate: count}}
        self._dictionary = {}
        self._dictionary_count = 0
        self._max_reading_len = 0

        if dictionary_files:
            self._dictionary_files = list(dictionary_files)
            self._thread = threading.Thread(target=self._background_load, daemon=True)
            self._thread.start()
        else:
            self._dictionary_files = []
            self._thread = None
            self._ready = True

    def _background_load(self):
        try:
            dictionary, count = self._load_dictionaries(self._dictionary_files)
            with self._lock:
                self._dictionary = dictionary
                self._dictionary_count = count
                self._max_reading_len = max((len(r) for r in dictionary), default=0)
                self._ready = True
            logger.info('DictionarySupplier background loading complete')
        except Exception as e:
            logger.error(f'DictionarySupplier background loading failed: {e}')
            # Mark as ready anyway so we don't block forever
            with self._lock:
                self._ready = True

    def wait_until_ready(self, timeout=None):
        """Block until background loading is done. Returns is_ready()."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self.is_ready()

    def is_ready(self):
        with self._lock:
            return self._ready

    @staticmethod
    def _load_dictionaries(dictionary_files):
        dictionary = {}
        loaded = 0
        for file_path in dictionary_files:
            if not os.path.exists(file_path):
                logger.warning(f'Dictionary file not found: {file_path}')
                continue

            try:
                with open(file_path, 'rb') as f:
                    data = orjson.loads(f.read())
            except orjson.JSONDecodeError as e:
                logger.error(f'Failed to parse dictionary JSON: {file_path} - {e}')
                continue
            except OSError as e:
                logger.error(f'Failed to load dictionary: {file_path} - {e}')
                continue

            if not isinstance(data, dict):
                logger.warning(f'Invalid dictionary format (expected dict): {file_path}')
                continue

            entries_added = 0
            for reading, candidates in data.items():
                if not isinstance(candidates, dict):
                    continue
                merged = dictionary.setdefault(reading, {})
                for surface, entry in candidates.items():
                    if isinstance(entry, dict):
                        # Legacy format - lower cost = higher count
                        count = -entry.get('cost', 0)
                    else:
                        count = entry if isinstance(entry, (int, float)) else 1
                    if surface not in merged or count > merged[surface]:
                        merged[surface] = count
                    entries_added += 1

            loaded += 1
            logger.info(f'Loaded dictionary: {file_path} ({entries_added} candidate entries)')

        if loaded == 0:
            logger.warning('No dictionaries loaded - only kana candidates will be supplied')
        else:
            logger.info(f'DictionarySupplier initialized with {loaded} dictionaries, '
                        f'{len(dictionary)} readings')
        return dictionary, loaded

    def lookup(self, reading):
        """
        Return the surfaces registered for reading, most frequent first.
        """
        with self._lock:
            candidates = dict(self._dictionary.get(reading, {}))
        return [surface for surface, _ in sorted(candidates.items(), key=lambda x: x[1], reverse=True)]

    def segment(self, reading):
        """
        Split reading by longest dictionary match from the left.

        Characters with no dictionary match are grouped into passthrough
        segments whose word is the reading itself.

        Returns:
            list: Segment tuples covering the whole reading
        """
        with self._lock:
            max_len = self._max_reading_len
        segments = []
        passthrough = ''
        i = 0
        while i < len(reading):
            match = None
            for length in range(min(max_len, len(reading) - i), 0, -1):
                surfaces = self.lookup(reading[i:i + length])
                if surfaces:
                    match = Segment(reading[i:i + length], surfaces[0])
                    break
            if match is None:
                passthrough += reading[i]
                i += 1
                continue
            if passthrough:
                segments.append(Segment(passthrough, passthrough))
                passthrough = ''
            segments.append(match)
            i += len(match.reading)
        if passthrough:
            segments.append(Segment(passthrough, passthrough))
        return segments

    def supply(self, buffer, options):
        reading = buffer.convert_target
        if not reading:
            return []
        if not self.is_ready():
            logger.debug(f'DictionarySupplier.supply("{reading}") → not ready')
            return []

        n_best = (options or {}).get('n_best', DEFAULT_N_BEST)
        candidates = []
        seen = set()

        def add(segments, corresponding_count):
            key = (''.join(segment.word for segment in segments), corresponding_count)
            if key in seen:
                return
            seen.add(key)
            candidates.append(Candidate(tuple(segments), corresponding_count))

        for surface in self.lookup(reading):
            add([Segment(reading, surface)], len(reading))

        segments = self.segment(reading)
        if len(segments) > 1:
            add(segments, len(reading))

        for length in range(len(reading) - 1, 0, -1):
            prefix = reading[:length]
            for surface in self.lookup(prefix):
                add([Segment(prefix, surface)], length)

        # kana renderings are always offered, past the n_best cut
        del candidates[n_best:]
        seen = {(''.join(s.word for s in c.segments), c.corresponding_count) for c in candidates}
        add([Segment(reading, reading)], len(reading))
        add([Segment(reading, to_katakana(reading))], len(reading))

        logger.debug(f'DictionarySupplier.supply("{reading}") → {len(candidates)} candidates')
        return candidates

    def get_dictionary_stats(self):
        with self._lock:
            return {
                'dictionary_count': self._dictionary_count,
                'reading_count': len(self._dictionary),
                'candidate_count': sum(len(c) for c in self._dictionary.values()),
                'ready': self._ready,
            }
