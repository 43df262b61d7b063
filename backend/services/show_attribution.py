"""Show attribution: match post text to configured shows.

A show matches when its content carries one of the show's hashtags; only if
no hashtag matches are the show's keywords tried, as whole words. A post can
belong to several shows, and one matching signal per show is enough.
"""

import re
from collections.abc import Iterable, Sequence
from typing import TypeVar

from services.registry import ShowConfig

PostT = TypeVar("PostT")

HASHTAG_PATTERN = re.compile(r"#\w+")


def hashtag_matches(content: str, tag: str) -> bool:
    """True if ``#tag`` occurs followed by a boundary, punctuation or the end."""
    pattern = rf"#{re.escape(tag)}(?:\b|[\s,;.!?]|$)"
    return re.search(pattern, content, re.IGNORECASE) is not None


def keyword_matches(content: str, keyword: str) -> bool:
    # Whole words only, so short keywords don't fire inside longer phrases.
    pattern = rf"\b{re.escape(keyword.lower())}\b"
    return re.search(pattern, content, re.IGNORECASE) is not None


def attribute_post_to_shows(content: str, shows: Iterable[ShowConfig]) -> list[str]:
    """Ids of every show the content belongs to, in registry order."""
    if not content:
        return []

    matched = []
    for show in shows:
        if any(hashtag_matches(content, tag) for tag in show.hashtags):
            matched.append(show.id)
        elif any(keyword_matches(content, kw) for kw in show.keywords):
            matched.append(show.id)
    return matched


def get_attributed_posts(posts: Iterable[PostT], shows: Sequence[ShowConfig]) -> dict[str, list[PostT]]:
    """Posts grouped by show id. Every configured show gets a (maybe empty) list."""
    result: dict[str, list[PostT]] = {show.id: [] for show in shows}
    for post in posts:
        for show_id in attribute_post_to_shows(post.content, shows):
            result[show_id].append(post)
    return result


def count_attributed_posts(posts: Iterable, shows: Sequence[ShowConfig]) -> tuple[int, int]:
    """(attributed, unattributed) post counts."""
    attributed = unattributed = 0
    for post in posts:
        if attribute_post_to_shows(post.content, shows):
            attributed += 1
        else:
            unattributed += 1
    return attributed, unattributed


def extract_hashtags(content: str) -> list[str]:
    """All ``#tags`` in the content, lowercased."""
    if not content:
        return []
    return [tag.lower() for tag in HASHTAG_PATTERN.findall(content)]
