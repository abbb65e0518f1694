from __future__ import annotations
import logging
import sys

import click

class BlobUtilsError(Exception): pass
class ConfigError(BlobUtilsError): pass
class InputFileError(BlobUtilsError, OSError): pass
class TransportError(BlobUtilsError): pass
class FileWriteError(BlobUtilsError): pass

class ListingDecodeError(BlobUtilsError):
    """Listing body could not be decoded; keeps the raw payload for diagnosis."""
    def __init__(self, message: str, body: str = ""):
        super().__init__(message)
        self.body = body


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": {"dim": True},
        "INFO": {"fg": "green"},
        "WARNING": {"fg": "yellow"},
        "ERROR": {"fg": "red"},
        "CRITICAL": {"fg": "red", "bold": True},
    }

    def format(self, record: logging.LogRecord) -> str:
        msg = super().format(record)
        style = self.COLORS.get(record.levelname)
        return click.style(msg, **style) if style else msg


def setup_logging(level: int = logging.INFO, logfile: str | None = None, color: bool = True) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):  # avoid duplicate handlers
        root.removeHandler(h)
    text_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    plain = logging.Formatter(text_fmt)
    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(ColoredFormatter(text_fmt) if color else plain)
    root.addHandler(stream)
    if logfile:
        fh = logging.FileHandler(logfile, encoding="utf-8")
        fh.setFormatter(plain)
        root.addHandler(fh)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
