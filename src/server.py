#!/usr/bin/env python3
"""
server.py - Unix socket front end of the composition session
入力セッションのUnixソケット窓口

================================================================================
WHAT THIS FILE DOES / このファイルの役割
================================================================================

A keyboard UI talks to the session through a Unix stream socket, one JSON
request per line (see boundary.py). Everything runs on a single GLib main
loop: each line is read asynchronously, but a request is handled to the end
(session mutation, candidate lookup, response write) inside one callback,
so requests never overlap, even with several clients connected.

キーボードUIはUnixストリームソケット経由で1行1リクエストのJSONを送る
（boundary.py参照）。全ては1つのGLibメインループ上で動くため、
複数のクライアントが接続していてもリクエストが重なることはない。

    ┌─────────────┐  line   ┌──────────────────┐  handle_line  ┌───────────┐
    │ keyboard UI │ ──────► │ CompositionServer │ ────────────► │ Dispatcher │
    └─────────────┘ ◄────── └──────────────────┘ ◄──────────── └───────────┘
                    response

================================================================================
"""

import logging
import os
import signal

import gi
gi.require_version('Gio', '2.0')
from gi.repository import Gio, GLib

logger = logging.getLogger(__name__)


class CompositionServer:
    """
    Serves a RequestDispatcher on a Unix domain socket.
    RequestDispatcherをUnixドメインソケットで提供する。

    _mainloop : GLib.MainLoop
        The main event loop; run() blocks on it.
    _service : Gio.SocketService
        Accepts connections and emits "incoming".
    _connections : dict
        Open Gio.SocketConnection → Gio.DataInputStream. Holding the
        connection here keeps it alive between reads.
    """

    def __init__(self, dispatcher, socket_path):
        self._dispatcher = dispatcher
        self._socket_path = socket_path
        self._mainloop = GLib.MainLoop()
        self._service = Gio.SocketService()
        self._service.connect('incoming', self._incoming_cb)
        self._connections = dict()

    @property
    def socket_path(self):
        return self._socket_path

    def start(self):
        """
        Bind the socket and start accepting connections.

        Raises:
            GLib.Error: If the socket cannot be bound
        """
        if os.path.exists(self._socket_path):
            logger.warning(f'removing stale socket {self._socket_path}')
            os.unlink(self._socket_path)
        os.makedirs(os.path.dirname(self._socket_path) or '.', exist_ok=True)
        address = Gio.UnixSocketAddress.new(self._socket_path)
        self._service.add_address(address, Gio.SocketType.STREAM, Gio.SocketProtocol.DEFAULT, None)
        os.chmod(self._socket_path, 0o600)
        self._service.start()
        logger.info(f'listening on {self._socket_path}')

    def run(self):
        """Start the server and block until quit() is called."""
        self.start()
        GLib.unix_signal_add(GLib.PRIORITY_DEFAULT, signal.SIGINT, self._signal_cb)
        GLib.unix_signal_add(GLib.PRIORITY_DEFAULT, signal.SIGTERM, self._signal_cb)
        try:
            self._mainloop.run()
        finally:
            self.stop()

    def quit(self):
        self._mainloop.quit()

    def stop(self):
        self._service.stop()
        self._service.close()
        for connection in list(self._connections):
            self._close(connection)
        if os.path.exists(self._socket_path):
            os.unlink(self._socket_path)
        logger.info('server stopped')

    def _signal_cb(self):
        logger.info('signal received; quitting')
        self.quit()
        return GLib.SOURCE_REMOVE

    def _incoming_cb(self, service, connection, source_object):
        logger.debug('client connected')
        data_input = Gio.DataInputStream.new(connection.get_input_stream())
        data_input.set_newline_type(Gio.DataStreamNewlineType.LF)
        self._connections[connection] = data_input
        self._read_next(connection)
        return True

    def _read_next(self, connection):
        data_input = self._connections.get(connection)
        if data_input is None:
            return
        data_input.read_line_async(GLib.PRIORITY_DEFAULT, None, self._line_read_cb, connection)

    def _line_read_cb(self, data_input, result, connection):
        try:
            line, length = data_input.read_line_finish(result)
        except GLib.Error as e:
            logger.error(f'read failed: {e.message}')
            self._close(connection)
            return
        if line is None:
            logger.debug('client disconnected')
            self._close(connection)
            return
        if isinstance(line, str):
            line = line.encode('utf-8')
        line = line.strip()
        if line:
            response = self._dispatcher.handle_line(line)
            try:
                connection.get_output_stream().write_all(response + b'\n', None)
            except GLib.Error as e:
                logger.error(f'write failed: {e.message}')
                self._close(connection)
                return
        self._read_next(connection)

    def _close(self, connection):
        if self._connections.pop(connection, None) is None:
            return
        try:
            connection.close(None)
        except GLib.Error as e:
            logger.warning(f'closing connection failed: {e.message}')
