"""Literal, case-insensitive substring matching over extracted page text."""

from __future__ import annotations

from typing import Iterable


def join_pages(pages: Iterable[str]) -> str:
    """Concatenate page texts with a single space between pages."""
    return " ".join(pages)


def matches(pages: Iterable[str], query: str) -> bool:
    """True when ``query`` occurs in the joined page text, ignoring case.

    No tokenization or whitespace normalization happens: ``"hello  world"``
    does not match ``"hello world"``.
    """
    if not query:
        return False
    text = join_pages(pages)
    if not text:
        return False
    return query.lower() in text.lower()
