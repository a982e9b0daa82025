"""Referenced-file computation over the retained versions."""

from __future__ import annotations

from typing import Iterable

from .models import Version


def compute_reference_set(versions: Iterable[Version], asset_prefix: str) -> set[str]:
    """Return every asset path listed by any retained version.

    Paths outside ``asset_prefix`` are never tracked, so the sweep cannot see them.
    """

    referenced: set[str] = set()
    for version in versions:
        for record in version.files:
            if record.path.startswith(asset_prefix):
                referenced.add(record.path)
    return referenced


__all__ = ["compute_reference_set"]
