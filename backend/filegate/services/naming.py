import re
import time
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")
_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9._-]")


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def sanitize_file_name(filename: str | None) -> str:
    """Fold ``filename`` to characters that are safe in object keys and headers.

    Accented letters are NFD-decomposed so the base letter survives while the
    combining mark is stripped; whitespace runs become a single underscore.
    """
    decomposed = unicodedata.normalize("NFD", filename or "")
    underscored = _WHITESPACE_RE.sub("_", decomposed)
    return _UNSAFE_CHARS_RE.sub("", underscored)


def build_file_name(filename: str | None) -> str:
    # Same name within the same millisecond yields the same key.
    return f"{_epoch_millis()}.{sanitize_file_name(filename)}"
