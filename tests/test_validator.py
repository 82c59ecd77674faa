"""
Unit tests for tripforge/pipeline/validator.py
"""
import pytest

from tripforge.integrations.errors import ConfigurationError
from tripforge.models.entities import RawItinerary
from tripforge.pipeline.resolver import LocationResolver
from tripforge.pipeline.validator import ItineraryValidator
from tests.conftest import FakePlaces, make_place


def _raw(*days):
    return RawItinerary.model_validate({
        "days": [
            {"date": f"Day {i}", "events": [
                {"time": "09:00", "type": "attraction", "name": n, "description": f"visit {n}",
                 "estimatedDuration": 90, "estimatedCost": 40}
                for n in names
            ]}
            for i, names in enumerate(days, 1)
        ]
    })


def _validator(places, sleeper):
    return ItineraryValidator(LocationResolver(places, retry_delay=0, sleep=sleeper), request_delay=0.3, sleep=sleeper)


class TestItineraryValidator:
    def test_all_events_verified(self, sleeper):
        names = ["Forbidden City", "Jingshan", "Beihai", "Tiananmen", "Qianmen", "Temple of Heaven"]
        places = FakePlaces({n: [make_place(f"{n} (official)")] for n in names})
        days = _validator(places, sleeper).validate(_raw(names[:3], names[3:]), "Beijing")

        assert [d.day_number for d in days] == [1, 2]
        assert [len(d.events) for d in days] == [3, 3]
        for day in days:
            assert [e.order for e in day.events] == [0, 1, 2]
            assert all(e.is_primary and e.sub_events == [] for e in day.events)

        first = days[0].events[0]
        assert first.name == "Forbidden City (official)"
        assert first.location_name == "Forbidden City (official)"
        assert first.place_id == "id-Forbidden City (official)"
        assert first.description == "visit Forbidden City"
        assert first.start_time == "09:00"
        assert first.estimated_duration == 90
        assert first.estimated_cost == 40
        assert first.coordinates.longitude == pytest.approx(116.397)

    def test_unverifiable_day_is_dropped(self, sleeper):
        days = _validator(FakePlaces(), sleeper).validate(_raw(["Atlantis", "El Dorado"]), "Beijing")
        assert days == []

    def test_surviving_days_renumbered(self, sleeper):
        places = FakePlaces({"Lama Temple": [make_place("Yonghe Temple")], "Houhai": [make_place("Houhai")]})
        days = _validator(places, sleeper).validate(
            _raw(["Lama Temple"], ["Atlantis"], ["Houhai", "Shangri-La Gardens"]), "Beijing"
        )

        assert [(d.day_number, d.date) for d in days] == [(1, "Day 1"), (2, "Day 3")]
        assert [e.name for e in days[1].events] == ["Houhai"]
        assert days[1].events[0].order == 0

    def test_never_adds_days(self, sleeper):
        places = FakePlaces({"A place": [make_place("A place")]})
        raw = _raw(["A place"], ["Missing one"], ["A place"])
        days = _validator(places, sleeper).validate(raw, "Beijing")

        assert len(days) <= len(raw.days)
        assert all(len(d.events) >= 1 for d in days)

    def test_delay_between_lookups(self, sleeper):
        places = FakePlaces({n: [make_place(n)] for n in ["Aaa", "Bbb", "Ccc"]})
        _validator(places, sleeper).validate(_raw(["Aaa", "Bbb"], ["Ccc"]), "Beijing")

        assert sleeper.delays == [0.3, 0.3]

    def test_configuration_error_propagates(self, sleeper):
        class NoKeyPlaces(FakePlaces):
            def search_text(self, keywords, region, credentials=None):
                raise ConfigurationError("Places API key not configured")

        with pytest.raises(ConfigurationError):
            _validator(NoKeyPlaces(), sleeper).validate(_raw(["Aaa"]), "Beijing")
