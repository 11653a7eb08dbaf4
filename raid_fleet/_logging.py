# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import logging.handlers
from pathlib import Path


def init_logging(log_file: Path, quiet: bool = False):
    logging.getLogger().setLevel(logging.DEBUG)
    _init_file_logging(log_file)
    _init_stream_logging(logging.WARNING if quiet else logging.INFO)
    # Paramiko floods DEBUG with transport details and ERROR with tracebacks
    # on every failed connection, which are reported separately anyway.
    logging.getLogger('paramiko').setLevel(logging.CRITICAL)


def _init_file_logging(log_file: Path):
    log_file.parent.mkdir(exist_ok=True, parents=True)
    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=20 * 1024**2, backupCount=6)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(threadName)s %(name)s %(levelname)s %(message)s'))
    file_handler.setLevel(logging.DEBUG)
    logging.getLogger().addHandler(file_handler)


def _init_stream_logging(level: int):
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter('[%(levelname)s] %(message)s'))
    stream_handler.setLevel(level)
    logging.getLogger().addHandler(stream_handler)
