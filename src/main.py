"""
main.py - Entry point for the kanacomp composition server
kanacomp入力サーバーのエントリーポイント

================================================================================
WHAT THIS FILE DOES / このファイルの役割
================================================================================

This is the STARTING POINT of kanacomp. A keyboard UI (on-screen keyboard,
text-service shim, ...) starts this program once and then sends it the
user's keystrokes over a Unix socket.

これはkanacompの起動点。キーボードUIはこのプログラムを一度起動し、
その後Unixソケット経由でユーザーのキー入力を送る。

    Keyboard UI starts kanacomp
    キーボードUIがkanacompを起動
            ↓
    This script loads config, layout and dictionaries
    このスクリプトが設定・配列・辞書を読み込む
            ↓
    server.py listens on the socket
    server.pyがソケットで待ち受ける
            ↓
    session.py handles every request
    session.pyが全てのリクエストを処理

================================================================================
FILE RELATIONSHIPS / ファイルの関係
================================================================================

    main.py (THIS FILE)          ← Entry point, config, logging
        │
        └──► server.py           ← GLib main loop, Unix socket
             boundary.py         ← Request/response contract
                  │
                  └──► session.py          ← One composition session
                         ├──► composing.py ← Raw input + convert target
                         ├──► romaji.py    ← Romaji → kana transliteration
                         ├──► candidate.py ← Candidate reconstruction
                         └──► supplier.py  ← Dictionary lookup
                       util.py             ← Paths and configuration

================================================================================
"""

import util
from boundary import RequestDispatcher
from server import CompositionServer
from session import InitializationError, create_session

import functools
import getopt
import os
import logging
import sys
from shutil import copyfile


def print_help(v: int = 0) -> None:
    """
    Print command-line usage help and exit.
    コマンドライン使用方法のヘルプを表示して終了。

    Args:
        v (int): Exit code. 0 for normal help request, 1 for error.
    """
    print("-h, --help             show this message.")
    print("-s, --socket=PATH      listen on PATH instead of the configured socket.")
    print("-r, --resource=DIR     directory holding layouts/ and dictionaries/.")
    print("-d, --daemonize        daemonize the server")
    sys.exit(v)


def main():
    """
    Main entry point - Initialize environment and start serving.
    メインエントリーポイント - 環境を初期化し、サーバーを起動。

        ┌─────────────────────────────────────────────────────────────────────┐
        │  1. SECURITY: Set umask to 077 (files readable only by owner)       │
        │                              ↓                                      │
        │  2. CONFIG: Create ~/.config/kanacomp/ and copy config.json         │
        │                              ↓                                      │
        │  3. LOGGING: Log to ~/.config/kanacomp/kanacomp.log                 │
        │                              ↓                                      │
        │  4. PARSE ARGS: --socket, --resource, --daemonize, --help           │
        │                              ↓                                      │
        │  5. SESSION: Load layout and dictionaries (fatal on failure)        │
        │                              ↓                                      │
        │  6. RUN: Serve requests until SIGINT/SIGTERM                        │
        └─────────────────────────────────────────────────────────────────────┘
    """
    os.umask(0o077)

    # Create user specific data directory
    user_configdir = util.get_user_config_dir()
    os.makedirs(user_configdir, 0o700, True)

    configfile_name = os.path.join(user_configdir, 'config.json')
    if not os.path.exists(configfile_name):
        copyfile(util.get_default_config_path(), configfile_name)
    config, warnings = util.get_config_data()

    logfile_name = os.path.join(user_configdir, util.get_package_name() + '.log')
    logging.basicConfig(filename=logfile_name, level=util.get_logging_level(config), format='%(asctime)s %(levelname)-8s %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
    logger = logging.getLogger()
    logger.info(f'{util.get_package_name()} {util.get_version()} starting')
    logger.info(f'main.py user_configdir: {user_configdir}')
    logger.info(f'main.py util.get_datadir(): {util.get_datadir()}')
    if warnings:
        logger.warning(warnings)

    socket_path = util.get_socket_path(config)
    resource_path = util.get_datadir()
    daemonize = False

    shortopt = "hs:r:d"
    longopt = ["help", "socket=", "resource=", "daemonize"]

    try:
        opts, args = getopt.getopt(sys.argv[1:], shortopt, longopt)
    except getopt.GetoptError as err:
        logger.error(err)
        sys.stderr.write(f"{err}\n")
        print_help(1)

    for o, a in opts:
        if o in ("-h", "--help"):
            print_help(0)
        elif o in ("-s", "--socket"):
            socket_path = a
        elif o in ("-r", "--resource"):
            resource_path = a
        elif o in ("-d", "--daemonize"):
            daemonize = True
        else:
            sys.stderr.write("Unknown argument: %s\n" % o)
            print_help(1)
    logger.info(f'daemonize? : {daemonize}')
    logger.info(f'socket: {socket_path}, resource: {resource_path}')

    # fork before the dictionary loader thread starts
    if daemonize:
        if os.fork():
            sys.exit()

    search_dirs = util.get_resource_search_dirs()
    try:
        session = create_session(resource_path, config, search_dirs)
    except InitializationError as e:
        logger.critical(f'Cannot start: {e}')
        sys.stderr.write(f"kanacomp: {e}\n")
        sys.exit(1)

    factory = functools.partial(create_session, config=config, search_dirs=search_dirs)
    dispatcher = RequestDispatcher(session, session_factory=factory)

    CompositionServer(dispatcher, socket_path).run()


if __name__ == "__main__":
    main()
