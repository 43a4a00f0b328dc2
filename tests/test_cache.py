import pytest

from sheet_transposer.app_state import (
    clear_scores,
    get_score_by_id,
    register_score,
    release_session_scores,
)
from sheet_transposer.cache import (
    cached_part_list,
    cached_transposition,
    clear_all_caches,
)


@pytest.fixture(autouse=True)
def clean_registry():
    clear_scores()
    clear_all_caches()
    yield
    clear_scores()
    clear_all_caches()


def test_register_score_ids_are_content_based(simple_score, duet_score):
    first = register_score(simple_score)
    assert first == register_score(simple_score)
    assert first != register_score(duet_score)
    assert first.startswith("score_")
    assert get_score_by_id(first) == simple_score


def test_register_score_with_explicit_id(simple_score):
    assert register_score(simple_score, "mine") == "mine"
    assert get_score_by_id("mine") == simple_score
    assert get_score_by_id("other") is None


def test_cached_transposition_reuses_result(duet_score):
    score_id = register_score(duet_score)
    first = cached_transposition(score_id, 2, None)
    assert cached_transposition(score_id, 2, None) is first
    assert cached_transposition.cache_info().hits == 1


def test_cached_transposition_unknown_score():
    assert cached_transposition("score_missing", 2, None) is None


def test_cached_part_list(duet_score):
    score_id = register_score(duet_score)
    infos = cached_part_list(score_id)
    assert [info.name for info in infos] == ["Flute", "Bass"]
    assert cached_part_list("score_missing") == ()


def test_cached_transposition_rejects_negative_part(duet_score):
    score_id = register_score(duet_score)
    with pytest.raises(ValueError):
        cached_transposition(score_id, 2, -1)


def test_release_session_scores_keeps_unowned_scores(simple_score, duet_score):
    owned = register_score(simple_score, session_id="s1")
    unowned = register_score(duet_score)
    assert release_session_scores("s1") == [owned]
    assert get_score_by_id(owned) is None
    assert get_score_by_id(unowned) == duet_score
    assert release_session_scores("s1") == []
