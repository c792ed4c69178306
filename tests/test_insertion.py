"""Unit tests for the passenger insertion evaluator."""

import pytest

from src.domain import insertion
from src.domain.entities import (
    Coordinate,
    InsertionOptions,
    InvalidRouteError,
    PassengerStops,
    RouteMetrics,
)
from src.domain.insertion import (
    evaluate_passenger_insertion,
    summarize_assignment_candidate,
)

EQUATOR_ROUTE = [Coordinate(0, 0), Coordinate(0, 1)]


def _stops(pickup, dropoff) -> PassengerStops:
    return PassengerStops(pickup=Coordinate(*pickup), dropoff=Coordinate(*dropoff))


class TestEvaluatePassengerInsertion:
    def test_on_route_passenger_costs_nothing(self):
        candidate = evaluate_passenger_insertion(
            EQUATOR_ROUTE,
            _stops((0, 0.01), (0, 0.02)),
            InsertionOptions(max_additional_minutes=1000, average_speed_kmh=60),
        )
        assert candidate is not None
        assert candidate.additional_minutes == pytest.approx(0, abs=1e-3)
        assert candidate.pickup_insert_index == 1
        assert candidate.dropoff_insert_index == 2
        assert candidate.updated_route == (
            Coordinate(0, 0),
            Coordinate(0, 0.01),
            Coordinate(0, 0.02),
            Coordinate(0, 1),
        )

    def test_far_passenger_is_infeasible(self):
        candidate = evaluate_passenger_insertion(
            EQUATOR_ROUTE,
            _stops((5, 5), (5, 6)),
            InsertionOptions(max_additional_minutes=0.001, average_speed_kmh=60),
        )
        assert candidate is None

    def test_pickup_always_precedes_dropoff(self):
        """A passenger travelling against the route still gets pickup first."""
        route = [Coordinate(0, 0), Coordinate(0, 1), Coordinate(0, 2)]
        stops = _stops((0, 1.5), (0, 0.5))
        candidate = evaluate_passenger_insertion(
            route, stops, InsertionOptions(max_additional_minutes=1000)
        )
        assert candidate is not None
        assert candidate.pickup_insert_index < candidate.dropoff_insert_index
        updated = candidate.updated_route
        assert updated[candidate.pickup_insert_index] == stops.pickup
        assert updated[candidate.dropoff_insert_index] == stops.dropoff
        assert updated.index(stops.pickup) < updated.index(stops.dropoff)

    def test_updated_route_keeps_original_points_in_order(self):
        route = [Coordinate(0, 0), Coordinate(0.2, 0.5), Coordinate(0, 1)]
        stops = _stops((0.1, 0.2), (0.1, 0.8))
        candidate = evaluate_passenger_insertion(
            route, stops, InsertionOptions(max_additional_minutes=1000)
        )
        assert len(candidate.updated_route) == len(route) + 2
        remaining = [
            p for p in candidate.updated_route if p not in (stops.pickup, stops.dropoff)
        ]
        assert remaining == route
        assert candidate.updated_route[0] == route[0]
        assert candidate.updated_route[-1] == route[-1]

    def test_best_slot_is_chosen(self):
        # Stops sit beside the second leg; inserting there is cheapest.
        route = [Coordinate(0, 0), Coordinate(0, 1), Coordinate(0, 2)]
        stops = _stops((0.01, 1.2), (0.01, 1.8))
        candidate = evaluate_passenger_insertion(
            route, stops, InsertionOptions(max_additional_minutes=1000)
        )
        assert candidate.pickup_insert_index == 2
        assert candidate.dropoff_insert_index == 3

    def test_raising_the_limit_never_loses_a_match(self):
        stops = _stops((0.05, 0.3), (0.05, 0.7))
        tight = evaluate_passenger_insertion(
            EQUATOR_ROUTE, stops, InsertionOptions(max_additional_minutes=5)
        )
        loose = evaluate_passenger_insertion(
            EQUATOR_ROUTE, stops, InsertionOptions(max_additional_minutes=50)
        )
        assert tight is not None and loose is not None
        assert loose.additional_minutes <= tight.additional_minutes

    def test_limit_below_cost_rejects(self):
        stops = _stops((0.05, 0.3), (0.05, 0.7))
        found = evaluate_passenger_insertion(
            EQUATOR_ROUTE, stops, InsertionOptions(max_additional_minutes=1000)
        )
        below = evaluate_passenger_insertion(
            EQUATOR_ROUTE,
            stops,
            InsertionOptions(max_additional_minutes=found.additional_minutes / 2),
        )
        assert found.additional_minutes > 0
        assert below is None

    def test_deviation_prefilter(self):
        stops = _stops((0.01, 0.3), (0, 0.7))  # pickup ~1.1 km off the route
        rejected = evaluate_passenger_insertion(
            EQUATOR_ROUTE,
            stops,
            InsertionOptions(max_additional_minutes=1000, max_deviation_meters=500),
        )
        accepted = evaluate_passenger_insertion(
            EQUATOR_ROUTE,
            stops,
            InsertionOptions(max_additional_minutes=1000, max_deviation_meters=2000),
        )
        assert rejected is None
        assert accepted is not None

    def test_added_values_never_negative(self):
        candidate = evaluate_passenger_insertion(
            EQUATOR_ROUTE,
            _stops((0, 0.25), (0, 0.75)),
            InsertionOptions(max_additional_minutes=1000),
        )
        assert candidate.additional_minutes >= 0
        assert candidate.additional_distance_km >= 0

    @pytest.mark.parametrize("route", [[], [Coordinate(0, 0)]])
    def test_short_route_raises(self, route):
        with pytest.raises(InvalidRouteError):
            evaluate_passenger_insertion(
                route,
                _stops((0, 0), (0, 1)),
                InsertionOptions(max_additional_minutes=10),
            )


class TestSlotSelection:
    """Tie-breaking and early exit, with route costs fixed per slot."""

    ROUTE = [Coordinate(0, 0), Coordinate(0, 1), Coordinate(0, 2)]
    STOPS = PassengerStops(pickup=Coordinate(1, 1), dropoff=Coordinate(2, 2))

    def _fix_costs(self, monkeypatch, costs):
        """*costs* maps (pickup_index, dropoff_index) to added (minutes, km)."""
        calls = []

        def fake_metrics(route, speed):
            calls.append(route)
            if len(route) == len(self.ROUTE):
                return RouteMetrics(100.0, 100.0)
            slot = (route.index(self.STOPS.pickup), route.index(self.STOPS.dropoff))
            minutes, km = costs[slot]
            return RouteMetrics(100.0 + km, 100.0 + minutes)

        monkeypatch.setattr(insertion, "estimate_route_metrics", fake_metrics)
        return calls

    def _evaluate(self):
        return evaluate_passenger_insertion(
            self.ROUTE, self.STOPS, InsertionOptions(max_additional_minutes=1000)
        )

    def test_near_equal_minutes_prefer_shorter_distance(self, monkeypatch):
        self._fix_costs(
            monkeypatch,
            {(1, 2): (2.0, 5.0), (1, 3): (2.0005, 3.0), (2, 3): (2.0008, 4.0)},
        )
        candidate = self._evaluate()
        assert (candidate.pickup_insert_index, candidate.dropoff_insert_index) == (1, 3)
        assert candidate.additional_distance_km == pytest.approx(3.0)

    def test_marginally_cheaper_slot_does_not_displace_best(self, monkeypatch):
        self._fix_costs(
            monkeypatch,
            {(1, 2): (2.0, 3.0), (1, 3): (1.9995, 5.0), (2, 3): (5.0, 5.0)},
        )
        candidate = self._evaluate()
        assert (candidate.pickup_insert_index, candidate.dropoff_insert_index) == (1, 2)

    def test_clearly_cheaper_slot_wins(self, monkeypatch):
        self._fix_costs(
            monkeypatch,
            {(1, 2): (2.0, 1.0), (1, 3): (1.5, 9.0), (2, 3): (5.0, 5.0)},
        )
        candidate = self._evaluate()
        assert (candidate.pickup_insert_index, candidate.dropoff_insert_index) == (1, 3)

    def test_free_slot_stops_the_search(self, monkeypatch):
        calls = self._fix_costs(
            monkeypatch,
            {(1, 2): (3.0, 3.0), (1, 3): (0.0005, 0.5), (2, 3): (0.0, 0.0)},
        )
        candidate = self._evaluate()
        assert (candidate.pickup_insert_index, candidate.dropoff_insert_index) == (1, 3)
        # Base route plus the two slots tried before stopping.
        assert len(calls) == 3

    def test_search_runs_to_the_end_without_a_free_slot(self, monkeypatch):
        calls = self._fix_costs(
            monkeypatch,
            {(1, 2): (3.0, 3.0), (1, 3): (2.0, 2.0), (2, 3): (1.0, 1.0)},
        )
        candidate = self._evaluate()
        assert (candidate.pickup_insert_index, candidate.dropoff_insert_index) == (2, 3)
        assert len(calls) == 4


class TestSummarizeAssignmentCandidate:
    def test_percentages(self):
        candidate = evaluate_passenger_insertion(
            EQUATOR_ROUTE,
            _stops((0.05, 0.3), (0.05, 0.7)),
            InsertionOptions(max_additional_minutes=1000, average_speed_kmh=60),
        )
        summary = summarize_assignment_candidate(candidate)
        base = candidate.base_metrics
        assert summary.pickup_insert_index == candidate.pickup_insert_index
        assert summary.dropoff_insert_index == candidate.dropoff_insert_index
        assert summary.new_total_minutes == pytest.approx(
            base.total_duration_minutes + candidate.additional_minutes
        )
        assert summary.time_increase_percent == pytest.approx(
            candidate.additional_minutes / base.total_duration_minutes * 100
        )
        assert summary.distance_increase_percent == pytest.approx(
            candidate.additional_distance_km / base.total_distance_km * 100
        )

    def test_zero_base_reports_zero_percent(self):
        same = [Coordinate(0, 0), Coordinate(0, 0)]
        candidate = evaluate_passenger_insertion(
            same,
            _stops((0, 0.01), (0, 0.02)),
            InsertionOptions(max_additional_minutes=1000),
        )
        summary = summarize_assignment_candidate(candidate)
        assert candidate.base_metrics.total_distance_km == 0
        assert summary.additional_distance_km > 0
        assert summary.time_increase_percent == 0
        assert summary.distance_increase_percent == 0
