"""Tests for show and talent attribution."""

from services.show_attribution import (
    attribute_post_to_shows,
    count_attributed_posts,
    extract_hashtags,
    get_attributed_posts,
    hashtag_matches,
)
from services.talent_attribution import (
    deduplicate_talent_posts,
    enrich_talent_posts_with_shows,
    group_posts_by_talent,
    is_brand_post,
)

from conftest import make_post, make_talent_post


class TestHashtagMatching:
    def test_case_insensitive(self):
        assert hashtag_matches("Tonight on #TheBig3!", "thebig3")

    def test_prefix_of_longer_tag_does_not_match(self):
        assert not hashtag_matches("#thebig3extra", "thebig3")

    def test_tag_followed_by_punctuation(self):
        assert hashtag_matches("#thebig3, #smash", "thebig3")


class TestShowAttribution:
    def test_hashtag_match(self, config):
        assert attribute_post_to_shows("Watch #MatchdayLive now", config.shows) == ["matchday-live"]

    def test_keyword_match_is_whole_word(self, config):
        assert attribute_post_to_shows("Catch the big three tonight", config.shows) == ["the-big-3"]

    def test_multiple_shows_in_registry_order(self, config):
        content = "#matchdaylive then #big3show"
        assert attribute_post_to_shows(content, config.shows) == ["the-big-3", "matchday-live"]

    def test_no_match_and_empty_content(self, config):
        assert attribute_post_to_shows("Just a random post", config.shows) == []
        assert attribute_post_to_shows("", config.shows) == []

    def test_idempotent(self, config):
        content = "#thebig3 and matchday live"
        assert attribute_post_to_shows(content, config.shows) == attribute_post_to_shows(content, config.shows)

    def test_grouping_gives_every_show_a_list(self, config):
        posts = [make_post("a", content="#thebig3"), make_post("b", content="nothing here")]

        grouped = get_attributed_posts(posts, config.shows)

        assert [p.id for p in grouped["the-big-3"]] == ["a"]
        assert grouped["matchday-live"] == []
        assert count_attributed_posts(posts, config.shows) == (1, 1)


def test_extract_hashtags_lowercases():
    assert extract_hashtags("Go #TheBig3 #SMASH") == ["#thebig3", "#smash"]
    assert extract_hashtags("") == []


class TestTalentAttribution:
    def test_brand_post(self, config):
        assert is_brand_post("Proud to join #Smash today", config.brand_hashtags)
        assert not is_brand_post("#smashed it", config.brand_hashtags)
        assert not is_brand_post("", config.brand_hashtags)

    def test_enrich_fills_shows_and_brand_flag(self, config):
        post = make_talent_post("t1", "kgotso-molefe", content="#thebig3 with #smashsports")

        enriched = enrich_talent_posts_with_shows([post], config.shows, config.brand_hashtags)

        assert enriched[0].show_ids == ["the-big-3"]
        assert enriched[0].has_brand_hashtag
        assert post.show_ids == []

    def test_group_by_talent(self):
        posts = [
            make_talent_post("1", "kgotso-molefe"),
            make_talent_post("2", "sky-tshabalala"),
            make_talent_post("3", "kgotso-molefe"),
        ]
        grouped = group_posts_by_talent(posts)
        assert [p.id for p in grouped["kgotso-molefe"]] == ["1", "3"]

    def test_deduplicate_keeps_higher_engagement(self):
        posts = [
            make_talent_post("1", "kgotso-molefe", content="Big  Game tonight", engagements=10),
            make_talent_post("2", "kgotso-molefe", content="big game tonight", engagements=50),
            make_talent_post("3", "kgotso-molefe", platform="x", content="big game tonight", engagements=5),
        ]

        kept = deduplicate_talent_posts(posts)

        assert [p.id for p in kept] == ["2", "3"]
