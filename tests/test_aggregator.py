"""Tests for per-region aggregation and normalization."""

import math

from tissue_efp.expression.aggregator import (
    _text_form,
    aggregate,
    collect_raw_values,
    normalize,
    sorted_numeric,
)
from tissue_efp.models import AggregationSummary, FetchResult

LOCUS = "AT1G00000"


def make_result(regions):
    """Build a FetchResult from {region: {sample: value}} for LOCUS."""
    return FetchResult(
        diagram="test",
        database_source="abiotic",
        region_values={
            region: {sample: {LOCUS: value} for sample, value in samples.items()}
            for region, samples in regions.items()
        },
    )


class TestSorting:
    def test_sorts_on_text_before_filtering(self):
        ordered, numbers = sorted_numeric(["10", "9", "x", "100"])
        assert ordered == ["10", "100", "9", "x"]
        assert numbers == [10.0, 100.0, 9.0]

    def test_missing_values_sort_last(self):
        ordered, numbers = sorted_numeric([None, "2", "1"])
        assert ordered == ["1", "2", None]
        assert numbers == [1.0, 2.0]

    def test_large_numbers_compare_in_positional_form(self):
        # 1e16 sorts as "10000000000000000", ahead of "1d".
        ordered, numbers = sorted_numeric(["1d", 1e16])
        assert ordered == [1e16, "1d"]
        assert numbers == [1e16]


class TestTextForm:
    def test_integral_floats_drop_the_fraction(self):
        assert _text_form(10.0) == "10"
        assert _text_form(-3.0) == "-3"
        assert _text_form(0.0) == "0"

    def test_plain_decimals(self):
        assert _text_form(0.5) == "0.5"
        assert _text_form(123.456) == "123.456"
        assert _text_form(0.000001) == "0.000001"

    def test_exponent_thresholds(self):
        assert _text_form(1e-07) == "1e-7"
        assert _text_form(1.5e-07) == "1.5e-7"
        assert _text_form(1e16) == "10000000000000000"
        assert _text_form(1e21) == "1e+21"
        assert _text_form(2.5e22) == "2.5e+22"

    def test_non_floats_are_unchanged(self):
        assert _text_form("1e-07") == "1e-07"
        assert _text_form(7) == "7"
        assert _text_form(float("nan")) == "NaN"


class TestRegionStatistics:
    def test_scenario_single_region(self):
        result = make_result({"Leaf": {"S1": "10", "S2": "20"}})
        regions, summary = aggregate(result, ["Leaf"], LOCUS)

        leaf = regions["Leaf"]
        assert leaf.average == 15
        assert leaf.expression_level == "15.000"
        assert leaf.sample_size == 2
        assert leaf.percentage == 0.0
        assert leaf.color_hex == "#ffff00"
        assert summary.global_max_average_region == "Leaf"
        assert summary.global_min_average_region == "Leaf"

    def test_region_minimum_is_second_sorted_number(self):
        result = make_result({"A": {"s1": 5, "s2": 1, "s3": 3, "s4": "x", "s5": 2}})
        regions, summary = aggregate(result, ["A"], LOCUS)

        assert summary.global_min == 2.0
        assert summary.global_max == 5.0
        assert regions["A"].average == 11 / 4
        assert regions["A"].sample_size == 5

    def test_global_extrema_follow_text_order(self):
        result = make_result(
            {
                "A": {"a1": "1", "a2": "4", "a3": "9"},
                "B": {"b1": "2", "b2": "3", "b3": "12"},
            }
        )
        _regions, summary = aggregate(result, ["A", "B"], LOCUS)
        # B sorts as "12", "2", "3": its maximum is 3 and its minimum 2.
        assert summary.global_max == 9.0
        assert summary.global_min == 2.0

    def test_percentage_and_colour_span_the_gradient(self):
        result = make_result(
            {
                "Low": {"l1": "1", "l2": "3"},
                "Mid": {"m1": "5", "m2": "7"},
                "High": {"h1": "9", "h2": "11"},
            }
        )
        regions, summary = aggregate(result, ["Low", "Mid", "High"], LOCUS)

        assert summary.global_min_average == 2.0
        assert summary.global_max_average == 10.0
        assert regions["Low"].percentage == 0.0
        assert regions["Low"].color_hex == "#ffff00"
        assert regions["Mid"].percentage == 50.0
        assert regions["High"].percentage == 100.0
        assert regions["High"].color_hex == "#ff0000"
        assert regions["Mid"].expression_level == "6.000"

    def test_ties_keep_first_region(self):
        result = make_result({"A": {"a": "4"}, "B": {"b": "4"}, "C": {"c": "1"}})
        _regions, summary = aggregate(result, ["A", "B", "C"], LOCUS)
        assert summary.global_max_average_region == "A"
        assert summary.global_min_average_region == "C"

    def test_identical_averages_do_not_raise(self):
        result = make_result({"A": {"a": "5"}, "B": {"b": "5"}})
        regions, _summary = aggregate(result, ["A", "B"], LOCUS)
        for stats in regions.values():
            assert stats.percentage == 0.0
            assert stats.color_hex == "#ffff00"
            assert stats.expression_level == "5.000"

    def test_region_without_numbers_gets_first_colour(self):
        result = make_result({"A": {"a": "2"}, "B": {"b": "x"}, "C": {"c": "8"}})
        regions, _summary = aggregate(result, ["A", "B", "C"], LOCUS)
        assert math.isnan(regions["B"].average)
        assert regions["B"].color_hex == "#ffff00"
        assert regions["B"].sample_size == 1
        assert regions["C"].color_hex == "#ff0000"

    def test_leading_region_without_numbers_poisons_the_range(self):
        result = make_result({"A": {"a": "x"}, "B": {"b": "2"}, "C": {"c": "8"}})
        regions, summary = aggregate(result, ["A", "B", "C"], LOCUS)
        assert math.isnan(summary.global_max_average)
        assert math.isnan(summary.global_min_average)
        for stats in regions.values():
            assert stats.color_hex == "#ffff00"
            assert stats.expression_level == "nan"

    def test_samples_missing_the_locus_count_towards_sample_size(self):
        result = make_result({"Leaf": {"S1": "10"}})
        result.region_values["Leaf"]["S2"] = {"OTHER": "3"}
        assert collect_raw_values(result, "Leaf", LOCUS) == ["10", None]

        regions, _summary = aggregate(result, ["Leaf"], LOCUS)
        assert regions["Leaf"].sample_size == 2
        assert regions["Leaf"].average == 10.0


class TestNormalize:
    def test_below_minimum_clamps_to_zero(self):
        summary = AggregationSummary(global_min_average=5.0, global_max_average=10.0)
        numerator, percentage = normalize(2.0, summary)
        assert numerator == 0.0
        assert percentage == 0.0

    def test_above_maximum_clamps_to_hundred(self):
        summary = AggregationSummary(global_min_average=5.0, global_max_average=10.0)
        _numerator, percentage = normalize(20.0, summary)
        assert percentage == 100.0

    def test_average_equal_to_minimum_is_zero(self):
        summary = AggregationSummary(global_min_average=5.0, global_max_average=10.0)
        assert normalize(5.0, summary) == (0.0, 0.0)
