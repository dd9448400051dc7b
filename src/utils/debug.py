from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

_verbose = False


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def is_verbose() -> bool:
    return _verbose


@contextmanager
def verbose(enabled: bool = True) -> Iterator[None]:
    """Temporarily switch diagnostics on (or off), restoring the old flag."""

    previous = _verbose
    set_verbose(enabled)
    try:
        yield
    finally:
        set_verbose(previous)


def log(message: str) -> None:
    if _verbose:
        print(f"[bezpath] {message}")
