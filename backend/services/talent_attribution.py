"""Talent post attribution: brand hashtags, show tagging and de-duplication."""

import logging
import re
from collections import defaultdict
from collections.abc import Iterable, Sequence

from schemas.metrics import TalentPost
from services.registry import ShowConfig
from services.show_attribution import attribute_post_to_shows, hashtag_matches

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def is_brand_post(content: str, brand_hashtags: Iterable[str]) -> bool:
    """True if the content carries any of the brand's own hashtags."""
    if not content:
        return False
    return any(hashtag_matches(content, tag) for tag in brand_hashtags)


def group_posts_by_talent(posts: Iterable[TalentPost]) -> dict[str, list[TalentPost]]:
    grouped: dict[str, list[TalentPost]] = defaultdict(list)
    for post in posts:
        grouped[post.talent_id].append(post)
    return dict(grouped)


def enrich_talent_posts_with_shows(
    posts: Iterable[TalentPost],
    shows: Sequence[ShowConfig],
    brand_hashtags: Sequence[str] = (),
) -> list[TalentPost]:
    """Copies of ``posts`` with show_ids and has_brand_hashtag filled in."""
    return [
        post.model_copy(update={
            "show_ids": attribute_post_to_shows(post.content, shows),
            "has_brand_hashtag": is_brand_post(post.content, brand_hashtags),
        })
        for post in posts
    ]


def post_fingerprint(post: TalentPost) -> str:
    content = _WHITESPACE.sub(" ", post.content.lower()).strip()
    return f"{post.talent_id}|{post.platform}|{content}"


def deduplicate_talent_posts(posts: Iterable[TalentPost]) -> list[TalentPost]:
    """Drop re-ingested duplicates, keeping the copy with more engagement.

    Output keeps the order in which each fingerprint was first seen.
    """
    kept: dict[str, TalentPost] = {}
    duplicates = 0
    for post in posts:
        key = post_fingerprint(post)
        existing = kept.get(key)
        if existing is None:
            kept[key] = post
            continue
        duplicates += 1
        if post.engagements > existing.engagements:
            kept[key] = post

    if duplicates:
        logger.debug(f"Dropped {duplicates} duplicate talent posts")
    return list(kept.values())
