"""
Unit tests for tripforge/pipeline/enricher.py

Tests cover:
- SatelliteSelector prompt/parse behaviour
- ItineraryEnricher satellite attachment, ordering and degradation
"""
import json
import pytest

from tripforge.integrations.errors import ConfigurationError
from tripforge.models.entities import ItineraryDay
from tripforge.pipeline.enricher import ItineraryEnricher, SatelliteSelector
from tests.conftest import FakeLLM, FakePlaces, make_event, make_place


def _candidates(n=5):
    return [make_place(f"Cafe {i}", distance=100 * i, category="cafe") for i in range(1, n + 1)]


def _enricher(places, llm, sleeper):
    return ItineraryEnricher(places, SatelliteSelector(llm), request_delay=0.2, sleep=sleeper)


# ---------------------------------------------------------------------------
# SatelliteSelector
# ---------------------------------------------------------------------------

class TestSatelliteSelector:
    def test_parses_array_inside_prose(self):
        llm = FakeLLM(['Sure! Here are my picks: ["Cafe 1", "Cafe 2"] enjoy'])
        names = SatelliteSelector(llm).select(make_event("Forbidden City"), _candidates())
        assert names == ["Cafe 1", "Cafe 2"]

    def test_unparseable_reply_gives_nothing(self):
        llm = FakeLLM(["I would suggest the first cafe."])
        assert SatelliteSelector(llm).select(make_event("Forbidden City"), _candidates()) == []

    def test_non_string_entries_ignored(self):
        llm = FakeLLM(['["Cafe 1", 3, null, {"name": "Cafe 2"}]'])
        assert SatelliteSelector(llm).select(make_event("Forbidden City"), _candidates()) == ["Cafe 1"]

    def test_no_candidates_skips_llm(self):
        llm = FakeLLM([])
        assert SatelliteSelector(llm).select(make_event("Forbidden City"), []) == []
        assert llm.calls == []

    def test_prompt_lists_candidates_and_time_budget(self):
        prompt = SatelliteSelector(FakeLLM()).build_prompt(make_event("Forbidden City", duration=None), _candidates(2))
        assert "Forbidden City" in prompt
        assert "Cafe 1" in prompt and "100 m" in prompt
        assert "60 minutes" in prompt
        assert "500 m" in prompt


# ---------------------------------------------------------------------------
# ItineraryEnricher
# ---------------------------------------------------------------------------

class TestItineraryEnricher:
    def test_attaches_only_known_candidates(self, sleeper):
        places = FakePlaces(nearby={"attraction": _candidates()})
        llm = FakeLLM([json.dumps(["Cafe 3", "Imaginary Bistro", "Cafe 1"])])
        day = ItineraryDay(day_number=1, events=[make_event("Forbidden City", 0), make_event("Beihai", 1, coordinates=False)])

        [out] = _enricher(places, llm, sleeper).enrich([day])

        primary = out.events[0]
        assert [s.name for s in primary.sub_events] == ["Cafe 3", "Cafe 1"]
        assert [(e.name, e.order) for e in out.events] == [
            ("Forbidden City", 0), ("Cafe 3", 1), ("Cafe 1", 2), ("Beihai", 3),
        ]

    def test_satellite_shape(self, sleeper):
        places = FakePlaces(nearby={"*": _candidates()})
        llm = FakeLLM(['["Cafe 2"]'])
        day = ItineraryDay(day_number=1, events=[make_event("Forbidden City")])

        [out] = _enricher(places, llm, sleeper).enrich([day])
        satellite = out.events[1]

        assert satellite.is_primary is False
        assert satellite.category == "restaurant"
        assert satellite.description == "~200 m from Forbidden City"
        assert satellite.place_id == "id-Cafe 2"
        assert satellite.coordinates is not None
        assert satellite.sub_events == []

    def test_at_most_three_satellites(self, sleeper):
        places = FakePlaces(nearby={"*": _candidates()})
        llm = FakeLLM([json.dumps([f"Cafe {i}" for i in range(1, 6)])])
        day = ItineraryDay(day_number=1, events=[make_event("Forbidden City")])

        [out] = _enricher(places, llm, sleeper).enrich([day])
        assert len(out.events[0].sub_events) == 3

    def test_events_without_coordinates_unchanged(self, sleeper):
        places = FakePlaces(nearby={"*": _candidates()})
        llm = FakeLLM([])
        day = ItineraryDay(day_number=1, events=[make_event("Somewhere", 0, coordinates=False)])
        before = day.model_dump()

        [out] = _enricher(places, llm, sleeper).enrich([day])

        assert out.model_dump() == before
        assert places.nearby_calls == []

    def test_gateway_failure_degrades_single_event(self, sleeper, gateway_error):
        places = FakePlaces(nearby={"*": _candidates()})
        llm = FakeLLM([gateway_error, '["Cafe 4"]'])
        day = ItineraryDay(day_number=1, events=[make_event("Forbidden City", 0), make_event("Jingshan", 1)])

        [out] = _enricher(places, llm, sleeper).enrich([day])

        assert out.events[0].sub_events == []
        assert [(e.name, e.order) for e in out.events] == [("Forbidden City", 0), ("Jingshan", 1), ("Cafe 4", 2)]

    def test_configuration_error_propagates(self, sleeper):
        places = FakePlaces(nearby={"*": ConfigurationError("no key")})
        day = ItineraryDay(day_number=1, events=[make_event("Forbidden City")])

        with pytest.raises(ConfigurationError):
            _enricher(places, FakeLLM([]), sleeper).enrich([day])

    def test_no_nearby_places_skips_selection(self, sleeper):
        llm = FakeLLM([])
        day = ItineraryDay(day_number=1, events=[make_event("Forbidden City")])
        [out] = _enricher(FakePlaces(), llm, sleeper).enrich([day])

        assert out.events[0].sub_events == []
        assert llm.calls == []

    def test_delay_between_nearby_lookups(self, sleeper, sample_day):
        places = FakePlaces(nearby={"*": []})
        _enricher(places, FakeLLM([]), sleeper).enrich([sample_day])

        assert len(places.nearby_calls) == 2
        assert sleeper.delays == [0.2]

    def test_re_enrichment_is_stable(self, sleeper):
        places = FakePlaces(nearby={"*": _candidates()})
        llm = FakeLLM(['["Cafe 1", "Cafe 2"]'])
        enricher = _enricher(places, llm, sleeper)
        day = ItineraryDay(day_number=1, events=[make_event("Forbidden City")])

        first = [(e.name, e.order) for e in enricher.enrich([day])[0].events]
        second = [(e.name, e.order) for e in enricher.enrich([day])[0].events]

        assert first == second
        assert len(places.nearby_calls) == 1

    def test_standalone_non_primary_events_kept_in_place(self, sleeper):
        places = FakePlaces(nearby={"*": _candidates()})
        llm = FakeLLM(['["Cafe 1"]'])
        market = make_event("Night Market", coordinates=False).model_copy(update={"is_primary": False})
        day = ItineraryDay(day_number=1, events=[
            make_event("Forbidden City", 0, coordinates=False), market, make_event("Jingshan", 2),
        ])

        [out] = _enricher(places, llm, sleeper).enrich([day])

        assert [(e.name, e.order, e.is_primary) for e in out.events] == [
            ("Forbidden City", 0, True), ("Night Market", 1, False), ("Jingshan", 2, True), ("Cafe 1", 3, False),
        ]

    def test_re_enrichment_keeps_standalone_events(self, sleeper):
        places = FakePlaces(nearby={"*": _candidates()})
        llm = FakeLLM(['["Cafe 2"]'])
        enricher = _enricher(places, llm, sleeper)
        market = make_event("Night Market", coordinates=False).model_copy(update={"is_primary": False})
        day = ItineraryDay(day_number=1, events=[make_event("Forbidden City"), market])

        enricher.enrich([day])
        [out] = enricher.enrich([day])

        assert [e.name for e in out.events] == ["Forbidden City", "Cafe 2", "Night Market"]
        assert [e.order for e in out.events] == [0, 1, 2]
