from matrimony.config import MatchingConfig
from matrimony.services.preferences import NormalizationDiagnostics, normalization_stats, normalize_preferences
from matrimony.services.profiles import WILDCARD, AgeRange


def _norm(raw, diag=None):
    return normalize_preferences(raw, config=MatchingConfig(), diagnostics=diag)


def test_missing_document_is_all_wildcard():
    prefs = _norm(None)
    assert prefs.is_wildcard
    assert prefs.age == AgeRange(18, 40, wildcard=True)
    assert normalization_stats().get("missing_document") == 1


def test_missing_fields_become_wildcard():
    prefs = _norm({"community": "Iyer"})
    assert prefs.communities.include == frozenset({"iyer"})
    assert prefs.countries.is_wildcard
    assert prefs.diets.is_wildcard
    assert prefs.age.wildcard
    assert prefs.alcohol == WILDCARD


def test_strings_are_trimmed_collapsed_and_lowercased():
    prefs = _norm({"education": ["  Masters   Degree ", "PhD"], "country": "India"})
    assert prefs.educations.include == frozenset({"masters degree", "phd"})
    assert prefs.countries.include == frozenset({"india"})


def test_wildcard_literals_collapse_the_set():
    for literal in ("Any", "no preference", "Doesn't Matter", "open to all", "*"):
        prefs = _norm({"diet": [literal, "vegetarian"]})
        assert prefs.diets.is_wildcard, literal


def test_exclusion_entries_are_kept_apart():
    prefs = _norm({"community": ["not Iyengar", "Iyer"]})
    assert prefs.communities.include == frozenset({"iyer"})
    assert prefs.communities.exclude == frozenset({"iyengar"})

    only_excluded = _norm({"community": ["not iyengar"]})
    assert WILDCARD in only_excluded.communities.include
    assert not only_excluded.communities.is_wildcard


def test_malformed_values_are_counted_and_ignored():
    diag = NormalizationDiagnostics()
    prefs = _norm({"country": 42.5, "state": {"bad": True}, "diet": "   ", "age": "thirty"}, diag)
    assert prefs.states.is_wildcard
    assert prefs.diets.is_wildcard
    assert prefs.age.wildcard
    assert diag.malformed["state"] == 1
    assert diag.malformed["diet"] == 1
    assert diag.malformed["age"] == 1
    assert normalization_stats()["malformed.state"] == 1


def test_non_dict_document_is_malformed_not_an_error():
    diag = NormalizationDiagnostics()
    prefs = _norm(["not", "a", "dict"], diag)
    assert prefs.is_wildcard
    assert diag.malformed["document"] == 1


class TestAgeRange:
    def test_reversed_bounds_are_swapped(self):
        assert _norm({"age": {"from": 35, "to": 25}}).age == AgeRange(25, 35)

    def test_bounds_are_clamped(self):
        assert _norm({"age": {"from": 10, "to": 60}}).age == AgeRange(18, 40)

    def test_single_bound_defaults_other_to_absolute_bound(self):
        assert _norm({"age": {"from": 27}}).age == AgeRange(27, 40)
        assert _norm({"age": {"to": "29"}}).age == AgeRange(18, 29)

    def test_non_numeric_bound_is_malformed(self):
        diag = NormalizationDiagnostics()
        assert _norm({"age": {"from": "x", "to": 30}}, diag).age == AgeRange(18, 30)
        assert diag.malformed["age"] == 1

    def test_custom_absolute_bounds(self):
        prefs = normalize_preferences({"age": {"from": 16, "to": 70}}, config=MatchingConfig(age_bound_min=21, age_bound_max=60))
        assert prefs.age == AgeRange(21, 60)


def test_habit_tolerances_accept_booleans_and_aliases():
    prefs = _norm({"alcohol": False, "tobacco": "Occasionally"})
    assert prefs.alcohol == "no"
    assert prefs.tobacco == "occasional"

    diag = NormalizationDiagnostics()
    prefs = _norm({"alcohol": "sometimes maybe", "tobacco": 3}, diag)
    assert prefs.alcohol == WILDCARD
    assert prefs.tobacco == WILDCARD
    assert diag.malformed_total == 2
