"""Document identifiers and deterministic destination naming.

Every function here is pure: the same identifier and settings always give the
same destination, which is what lets concurrent workers write without
coordinating.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath

from iiif_ingest.core.errors import NamingPolicyError

_SEGMENT_WIDTH = 2


def document_id_from_filename(name: str) -> str:
    """Base name of ``name`` with its (last) extension removed."""
    base = PurePosixPath(name).name
    stem, dot, _ext = base.rpartition(".")
    if not dot or not stem:
        return base
    return stem


def partition_directory(identifier: str, partition: bool) -> str:
    if not partition:
        return identifier

    digits = identifier[1:] if identifier[:1].isalpha() else identifier
    segments = [digits[ix : ix + _SEGMENT_WIDTH] for ix in range(0, len(digits), _SEGMENT_WIDTH)]
    return "/".join(segments)


def converted_filename(page_name: str, convert_suffix: str) -> str:
    return f"{document_id_from_filename(page_name)}.{convert_suffix}"


def destination_relpath(document_id: str, page_name: str, *, convert_suffix: str, partition: bool) -> str:
    directory = partition_directory(document_id, partition)
    name = converted_filename(page_name, convert_suffix)
    # A one-letter alphabetic id partitions to nothing; the page then sits at the root.
    if not directory:
        return name
    return f"{directory}/{name}"


def join_key(root: str, relpath: str) -> str:
    root = root.strip("/")
    relpath = relpath.lstrip("/")
    if not root:
        return relpath
    return f"{root}/{relpath}"


@dataclass(frozen=True, slots=True)
class NamingPolicy:
    """Optional identifier validation applied before any work is done.

    Historically two conventions were in use: identifiers carrying a literal
    ``c`` prefix (``^c\\d{4,7}$``) and bare digits (``^\\d{4,7}$``). Neither is
    assumed; the pattern is injected from configuration.
    """

    pattern: re.Pattern[str] | None = None

    @classmethod
    def from_string(cls, raw: str | None) -> "NamingPolicy":
        if not raw:
            return cls()
        return cls(re.compile(raw))

    @property
    def enabled(self) -> bool:
        return self.pattern is not None

    def validate(self, identifier: str) -> None:
        if self.pattern is None:
            return
        if not self.pattern.fullmatch(identifier):
            raise NamingPolicyError(
                f"identifier '{identifier}' is invalid; must match {self.pattern.pattern}"
            )
