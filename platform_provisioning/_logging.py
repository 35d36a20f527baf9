# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import logging.handlers
from pathlib import Path


def init_logging(command: str, debug: bool):
    logging.getLogger().setLevel(logging.DEBUG)
    _init_file_logging(command + '.log')
    _init_stream_logging(debug)
    if not debug:
        # Paramiko is too verbose on INFO level.
        logging.getLogger('paramiko').setLevel(logging.WARNING)


def _init_file_logging(log_file_name: str):
    log_dir = Path('~/.cache/platform_provisioning_logs').expanduser()
    log_dir.mkdir(exist_ok=True, parents=True)
    file_handler = logging.handlers.RotatingFileHandler(
        log_dir / log_file_name, maxBytes=20 * 1024**2, backupCount=6)
    file_handler.setFormatter(logging.Formatter('%(asctime)s %(name)s %(levelname)s %(message)s'))
    file_handler.setLevel(logging.DEBUG)
    logging.getLogger().addHandler(file_handler)


def _init_stream_logging(debug: bool):
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)7s %(message)s'))
    stream_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    logging.getLogger().addHandler(stream_handler)
