#!/usr/bin/env python3
"""
boundary.py - Request/response contract between a session and its consumer
セッションと利用側（キーボードUI）の間の要求/応答

Wire format: JSON Lines, one object per line, UTF-8.
通信形式: JSON Lines（1行に1オブジェクト、UTF-8）

    → {"id": 1, "method": "append_text", "params": {"text": "ka"}}
    ← {"id": 1, "result": {"composing_text": {"spell": "か", "cursor": 1,
                                              "suggestions": [...]}}}
    ← {"id": 1, "error": {"code": "invalid_params", "message": "..."}}

Every response is a new bytes object owned by the caller. Encoding happens
after the session has been mutated; if it fails, the session is rolled back
to its state before the request.
"""

import logging
from collections import namedtuple

import orjson

from candidate import Suggestion
from session import InitializationError

logger = logging.getLogger(__name__)

ERROR_PARSE = 'parse_error'
ERROR_INVALID_REQUEST = 'invalid_request'
ERROR_METHOD_NOT_FOUND = 'method_not_found'
ERROR_INVALID_PARAMS = 'invalid_params'
ERROR_NOT_INITIALIZED = 'not_initialized'
ERROR_INITIALIZATION_FAILED = 'initialization_failed'
ERROR_ENCODE = 'encode_error'

Request = namedtuple('Request', ['id', 'method', 'params'])


class ProtocolError(Exception):
    """A request that cannot be served; reported back as an error response."""

    def __init__(self, code, message, request_id=None):
        super().__init__(message)
        self.code = code
        self.request_id = request_id


# ─── Serialization ────────────────────────────────────────────────────────

def encode_request(method, params=None, request_id=None):
    return orjson.dumps({'id': request_id, 'method': method, 'params': params or {}})


def decode_request(line):
    """
    Parse one request line.

    Args:
        line: bytes or str holding a JSON object

    Returns:
        Request

    Raises:
        ProtocolError: On invalid JSON or a malformed request object
    """
    try:
        data = orjson.loads(line)
    except orjson.JSONDecodeError as e:
        raise ProtocolError(ERROR_PARSE, f'invalid JSON: {e}') from e
    if not isinstance(data, dict):
        raise ProtocolError(ERROR_INVALID_REQUEST, 'request must be a JSON object')
    request_id = data.get('id')
    method = data.get('method')
    params = data.get('params', {})
    if not isinstance(method, str):
        raise ProtocolError(ERROR_INVALID_REQUEST, 'method must be a string', request_id)
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise ProtocolError(ERROR_INVALID_REQUEST, 'params must be an object', request_id)
    return Request(request_id, method, params)


def encode_suggestion(suggestion):
    return {
        'text': suggestion.text,
        'subtext': suggestion.subtext,
        'corresponding_count': suggestion.corresponding_count,
    }


def decode_suggestion(data):
    return Suggestion(data['text'], data['subtext'], data['corresponding_count'])


def encode_composing_text(convert_target, cursor, suggestions):
    return {
        'spell': convert_target,
        'cursor': cursor,
        'suggestions': [encode_suggestion(s) for s in suggestions],
    }


def encode_response(request_id, result):
    """
    Raises:
        orjson.JSONEncodeError: If result cannot be serialized (e.g. a lone
                                surrogate in a string)
    """
    return orjson.dumps({'id': request_id, 'result': result})


def encode_error(request_id, code, message):
    return orjson.dumps({'id': request_id, 'error': {'code': code, 'message': message}})


def decode_response(line):
    """
    Parse one response line.

    Returns:
        tuple: (id, result, error) where exactly one of result/error is None
    """
    data = orjson.loads(line)
    return data.get('id'), data.get('result'), data.get('error')


# ─── Dispatcher ───────────────────────────────────────────────────────────

def _int_param(params, name, default=None):
    value = params.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProtocolError(ERROR_INVALID_PARAMS, f'"{name}" must be an integer')
    return value


def _str_param(params, name):
    value = params.get(name)
    if not isinstance(value, str):
        raise ProtocolError(ERROR_INVALID_PARAMS, f'"{name}" must be a string')
    return value


class RequestDispatcher:
    """
    Maps boundary requests onto one ComposingSession.

    The session is either given up front or created by the "initialize"
    request through session_factory(resource_path). Until a session exists,
    every other request is answered with a not_initialized error.
    """

    def __init__(self, session=None, session_factory=None):
        self.session = session
        self._session_factory = session_factory
        self._handlers = {
            'initialize': self._initialize,
            'append_text': self._append_text,
            'remove_text': self._remove_text,
            'move_cursor': self._move_cursor,
            'clear_text': self._clear_text,
            'get_candidates': self._get_candidates,
            'shrink_text': self._shrink_text,
            'set_input_style': self._set_input_style,
        }

    def handle_line(self, line):
        """
        Serve one request line.

        Returns:
            bytes: The encoded response (without trailing newline)
        """
        try:
            request = decode_request(line)
        except ProtocolError as e:
            logger.warning(f'rejected request: {e}')
            return encode_error(e.request_id, e.code, str(e))

        snapshot = self.session.snapshot() if self.session is not None else None
        try:
            result = self.dispatch(request)
            return encode_response(request.id, result)
        except ProtocolError as e:
            logger.warning(f'{request.method} failed: {e}')
            return encode_error(request.id, e.code, str(e))
        except orjson.JSONEncodeError as e:
            logger.error(f'{request.method}: could not encode response, rolling back: {e}')
            if snapshot is not None and self.session is not None:
                self.session.restore(snapshot)
            return encode_error(request.id, ERROR_ENCODE, str(e))

    def dispatch(self, request):
        """Run a decoded request and return its result object."""
        handler = self._handlers.get(request.method)
        if handler is None:
            raise ProtocolError(ERROR_METHOD_NOT_FOUND, f'unknown method: {request.method}')
        if request.method != 'initialize' and self.session is None:
            raise ProtocolError(ERROR_NOT_INITIALIZED, 'initialize must succeed first')
        logger.debug(f'dispatch {request.method} {request.params}')
        return handler(request.params)

    def _composing_result(self, composing_text):
        convert_target, cursor = composing_text
        suggestions = self.session.get_candidates()
        return {'composing_text': encode_composing_text(convert_target, cursor, suggestions)}

    def _initialize(self, params):
        resource_path = _str_param(params, 'resource_path')
        if self._session_factory is None:
            raise ProtocolError(ERROR_INITIALIZATION_FAILED, 'no session factory configured')
        try:
            self.session = self._session_factory(resource_path)
        except InitializationError as e:
            logger.error(f'initialize({resource_path}) failed: {e}')
            raise ProtocolError(ERROR_INITIALIZATION_FAILED, str(e)) from e
        return {}

    def _append_text(self, params):
        return self._composing_result(self.session.append_text(_str_param(params, 'text')))

    def _remove_text(self, params):
        return self._composing_result(self.session.remove_text(_int_param(params, 'count', 1)))

    def _move_cursor(self, params):
        return self._composing_result(self.session.move_cursor(_int_param(params, 'offset')))

    def _clear_text(self, params):
        self.session.clear_text()
        return {}

    def _get_candidates(self, params):
        return {'suggestions': [encode_suggestion(s) for s in self.session.get_candidates()]}

    def _shrink_text(self, params):
        return self._composing_result(self.session.shrink_text(_int_param(params, 'offset')))

    def _set_input_style(self, params):
        try:
            self.session.set_input_style(_str_param(params, 'style'))
        except ValueError as e:
            raise ProtocolError(ERROR_INVALID_PARAMS, str(e)) from e
        return {}
