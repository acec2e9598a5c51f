"""Recognise social-media profile URLs and extract the account handle."""
from __future__ import annotations

import re
from typing import Callable, Iterable, List, Optional, Pattern, Tuple

from .models import ClassifiedLink, Platform

# Scheme and host match case-insensitively; the captured handle keeps its case.
_PREFIX = r"(?i:https?://)?(?i:www\.)?(?<![\w-])"
_HANDLE = r"([^/?\s]+)"


def _at(handle: str) -> str:
    return f"@{handle}"


def _plain(handle: str) -> str:
    return handle


_PATTERNS: List[Tuple[Platform, Pattern[str], Callable[[str], str]]] = [
    (Platform.TWITTER, re.compile(_PREFIX + r"(?i:twitter\.com|x\.com)/" + _HANDLE), _at),
    (Platform.INSTAGRAM, re.compile(_PREFIX + r"(?i:instagram\.com)/" + _HANDLE), _at),
    (Platform.TIKTOK, re.compile(_PREFIX + r"(?i:tiktok\.com)/@" + _HANDLE), _at),
    (Platform.TIKTOK, re.compile(_PREFIX + r"(?i:vm\.tiktok\.com)/" + _HANDLE), _at),
    (
        Platform.YOUTUBE,
        re.compile(_PREFIX + r"(?i:youtube\.com)/(?:channel/|c/|user/|@)" + _HANDLE),
        _plain,
    ),
    (Platform.GITHUB, re.compile(_PREFIX + r"(?i:github\.com)/" + _HANDLE), _plain),
]


def classify_link(url: str) -> Optional[ClassifiedLink]:
    """Tag a URL with the first platform pattern that matches it.

    Blank input returns ``None``. Anything unrecognised is tagged
    ``Platform.UNKNOWN`` with the raw text kept and no handle.
    """

    if not url or not url.strip():
        return None
    text = url.strip()
    for platform, pattern, formatter in _PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            return ClassifiedLink(platform=platform, handle=formatter(match.group(1)), url=text)
    return ClassifiedLink(platform=Platform.UNKNOWN, handle=None, url=text)


def clean_urls(raw: Iterable[Optional[str]]) -> List[str]:
    """Drop blank entries while keeping the submitted order."""

    return [value.strip() for value in raw if value and value.strip()]


def classify_links(urls: Iterable[str]) -> List[ClassifiedLink]:
    links = []
    for url in urls:
        link = classify_link(url)
        if link is not None:
            links.append(link)
    return links


__all__ = ["classify_link", "classify_links", "clean_urls"]
