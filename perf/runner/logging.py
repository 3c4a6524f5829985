# Where: perf/runner/logging.py
# What: Line-prefixed forwarding of container output to stdout.
# Why: Concurrent load-test containers share one terminal; lines must not interleave.
from __future__ import annotations

import threading
from typing import Callable, Iterable

_OUTPUT_LOCK = threading.Lock()


def safe_print(prefix: str, message: str) -> None:
    with _OUTPUT_LOCK:
        print(f"{prefix} {message}", flush=True)


def make_prefix_printer(label: str) -> Callable[[str], None]:
    prefix = f"[{label}]"

    def _printer(line: str) -> None:
        safe_print(prefix, line)

    return _printer


class LineForwarder:
    """Reassemble raw output chunks into lines and hand each line to a printer."""

    def __init__(self, printer: Callable[[str], None]) -> None:
        self._printer = printer
        self._buffer = ""

    def feed(self, chunk: bytes | str) -> None:
        if isinstance(chunk, bytes):
            chunk = chunk.decode("utf-8", errors="replace")
        self._buffer += chunk.replace("\r\n", "\n")
        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            self._printer(line.rstrip("\r"))

    def flush(self) -> None:
        if self._buffer:
            self._printer(self._buffer.rstrip("\r"))
            self._buffer = ""


def forward_output(chunks: Iterable[bytes | str], printer: Callable[[str], None]) -> int:
    """Forward every complete line of ``chunks``; returns the number of lines."""
    count = 0

    def _counting(line: str) -> None:
        nonlocal count
        count += 1
        printer(line)

    forwarder = LineForwarder(_counting)
    for chunk in chunks:
        forwarder.feed(chunk)
    forwarder.flush()
    return count
