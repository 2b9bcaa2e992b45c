import pytest

from carisekolah.data import SchoolDataset, build_frame
from carisekolah.models import SchoolRecord
from carisekolah.search import (
    clamp_limit,
    filter_schools,
    get_search_suggestions,
    normalize_query,
    search_schools,
    suggestion_expr,
)


def codes(schools):
    return [s.kod_sekolah for s in schools]


def test_normalize_query():
    assert normalize_query("  SK   Batu\tPahat ") == "sk batu pahat"
    assert normalize_query(None) == ""


# =============================================================================
# filter_schools
# =============================================================================


def test_filter_by_negeri(dataset):
    filtered = filter_schools(dataset, negeri="JOHOR")

    assert codes(filtered) == ["JBA0001", "JBA0002", "JBA0003"]
    assert all(s.negeri == "JOHOR" for s in filtered)


def test_filter_by_unknown_negeri_is_empty(dataset):
    assert filter_schools(dataset, negeri="NONEXISTENT_STATE") == []


def test_filter_value_is_trimmed(dataset):
    assert codes(filter_schools(dataset, negeri="MELAKA ")) == ["MBA0001"]


def test_empty_query_matches_everything(dataset):
    assert filter_schools(dataset) == dataset.get_all_schools()
    assert filter_schools(dataset, query="   ") == dataset.get_all_schools()


def test_query_matches_name_town_address_and_district_in_dataset_order(dataset):
    assert codes(filter_schools(dataset, query="batu")) == ["JBA0001", "JBA0002", "WBA0001"]


def test_query_matches_state_and_code(dataset):
    assert codes(filter_schools(dataset, query="pulau pinang")) == ["PBA0001"]
    assert codes(filter_schools(dataset, query="kdx")) == ["KDX001"]


def test_query_whitespace_is_collapsed(dataset):
    assert codes(filter_schools(dataset, query="  SK   batu ")) == ["JBA0001"]


def test_filters_and_together(dataset):
    assert codes(filter_schools(dataset, query="batu", negeri="JOHOR")) == ["JBA0001", "JBA0002"]
    assert codes(filter_schools(dataset, negeri="JOHOR", jenis="SK", lokasi="BANDAR")) == [
        "JBA0001",
        "JBA0003",
    ]
    assert codes(filter_schools(dataset, poskod="83300")) == ["JBA0002"]
    assert codes(filter_schools(dataset, ppd="PPD KOTA SETAR", jenis="SJKC")) == ["KDX001"]


# =============================================================================
# search_schools (relevance)
# =============================================================================


def test_search_ranks_by_relevance(dataset):
    # name + boundary + town + district, name + boundary + address, town + district
    assert codes(search_schools(dataset, query="batu")) == ["JBA0001", "WBA0001", "JBA0002"]


def test_search_ties_keep_dataset_order(dataset):
    assert codes(search_schools(dataset, query="kedah")) == ["KBA1001", "KDX001"]


def test_search_without_query_keeps_order(dataset):
    assert codes(search_schools(dataset, negeri="KEDAH")) == ["KBA1001", "KDX001"]


def test_name_hit_outranks_town_hit(dataset):
    # "alor" is in KBA1001's name and town; KDX001 only matches on town
    assert codes(search_schools(dataset, query="alor")) == ["KBA1001", "KDX001"]


# =============================================================================
# get_search_suggestions
# =============================================================================


@pytest.mark.parametrize("query", ["", "a", " b ", None])
def test_suggestions_need_two_characters(dataset, query):
    assert get_search_suggestions(dataset, query) == []


def test_suggestions_order_and_fields(dataset):
    suggestions = get_search_suggestions(dataset, "batu")

    assert [s.kod_sekolah for s in suggestions] == ["JBA0001", "WBA0001", "JBA0002"]
    assert suggestions[0].nama_sekolah == "SK BATU PAHAT"
    assert suggestions[0].negeri == "JOHOR"


@pytest.mark.parametrize("limit", [1, 2, 3, 20])
def test_suggestions_respect_limit(dataset, limit):
    assert len(get_search_suggestions(dataset, "sk", limit)) <= limit


def test_suggestions_ignore_state_and_district_only_hits(dataset):
    assert filter_schools(dataset, query="kedah") != []
    assert get_search_suggestions(dataset, "kedah") == []
    assert get_search_suggestions(dataset, "keramat") == []


def test_suggestions_word_start_bonus(dataset):
    # "setar" starts a word of KBA1001's name; KDX001 only has it in town
    suggestions = get_search_suggestions(dataset, "setar")
    assert [s.kod_sekolah for s in suggestions] == ["KBA1001", "KDX001"]


@pytest.mark.parametrize("limit", [0, -5])
def test_suggestions_empty_for_non_positive_limit(dataset, limit):
    assert get_search_suggestions(dataset, "sk", limit) == []


def test_suggestions_capped_at_twenty():
    schools = [SchoolRecord(kod_sekolah=f"SKX{i:04d}", nama_sekolah=f"SK TAMAN {i}") for i in range(30)]
    dataset = SchoolDataset(schools)

    assert len(get_search_suggestions(dataset, "taman", 500)) == 20
    assert len(get_search_suggestions(dataset, "taman", None)) == 12


def suggestion_score(nama_sekolah, q):
    frame = build_frame([SchoolRecord(kod_sekolah="X1", nama_sekolah=nama_sekolah)])
    return frame.select(suggestion_expr(q)).item()


def test_word_start_bonus_only_for_single_word_queries():
    # name +100, boundary +50
    assert suggestion_score("SEKOLAH SK TAMAN", "sk taman") == 150
    # name +100, boundary +50, word start +30
    assert suggestion_score("SEKOLAH SK TAMAN", "taman") == 180


def test_word_start_bonus_needs_start_of_a_word():
    # "aman" is inside "TAMAN" but starts no word
    assert suggestion_score("SEKOLAH SK TAMAN", "aman") == 100


@pytest.mark.parametrize(
    "limit,expected",
    [(None, 12), (0, 1), (5, 5), (20, 20), (100, 20)],
)
def test_clamp_limit_for_endpoint(limit, expected):
    assert clamp_limit(limit) == expected
