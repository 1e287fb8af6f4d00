"""Storage-safe file names."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")
_UNSAFE = re.compile(r"[^a-zA-Z0-9_\-.]")
_REPEATED_UNDERSCORES = re.compile(r"_+")


def sanitize_filename(filename: str) -> str:
    """Make a file name safe for use as a storage key.

    Accents are stripped (``Concurso Público.PDF`` -> ``Concurso_Publico.pdf``),
    whitespace becomes ``_``, anything outside ``[A-Za-z0-9_.-]`` is dropped and
    the extension is lower-cased.
    """
    name = unicodedata.normalize("NFD", filename)
    name = "".join(ch for ch in name if unicodedata.category(ch) != "Mn")
    name = _WHITESPACE.sub("_", name)
    name = _UNSAFE.sub("", name)
    name = _REPEATED_UNDERSCORES.sub("_", name)
    name = name.strip("_")

    stem, dot, extension = name.rpartition(".")
    if dot and stem:
        name = f"{stem}.{extension.lower()}"

    return name or "document"
