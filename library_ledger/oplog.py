"""Plain-text operation log kept next to the binary ledger for people to read."""
from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime
from typing import Optional, Union

from library_ledger.exceptions import IOFailureError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_line(action: str, isbn: Optional[str] = None, title: Optional[str] = None,
                when: Optional[datetime] = None) -> str:
    parts = [(when or datetime.now()).strftime(TIME_FORMAT), action]
    if isbn:
        parts.append(f"ISBN:{isbn}")
    if title:
        parts.append(f"title:{title}")
    return " | ".join(parts)


class OperationLog:
    def __init__(self, path: PathLike) -> None:
        self.path = path

    def record(self, action: str, isbn: Optional[str] = None, title: Optional[str] = None) -> bool:
        """Append one line; I/O failures are logged and swallowed."""
        if not action:
            return False
        line = format_line(action, isbn, title)
        try:
            with open(self.path, "a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as exc:
            logger.warning("Could not write operation log %s: %s", self.path, exc)
            return False
        return True

    def export(self, destination: PathLike) -> None:
        try:
            shutil.copyfile(self.path, destination)
        except OSError as exc:
            raise IOFailureError(f"Could not export operation log to {destination}: {exc}") from exc
