"""Tests for TeamCity locator construction and normalization."""

import pytest

from teamcity_mcp.core.errors import LocatorValidationError
from teamcity_mcp.core.locator import (
    FilterCriteria,
    build_branch_segment,
    build_locator,
    has_segment,
    merge_segments,
    normalize_locator,
    normalize_segment,
    parse_page_markers,
    segment_key,
    split_top_level,
    to_teamcity_date,
    with_page_markers,
    wrap_value,
)


class TestSplitTopLevel:
    """Tests for split_top_level."""

    def test_splits_only_outside_groups(self):
        assert split_top_level("branch:(a,b),status:X") == ["branch:(a,b)", "status:X"]

    def test_nested_groups(self):
        locator = "buildType:(project:(id:A,archived:false)),count:5"
        assert split_top_level(locator) == [
            "buildType:(project:(id:A,archived:false))",
            "count:5",
        ]

    def test_empty_and_none(self):
        assert split_top_level("") == []
        assert split_top_level(None) == []

    def test_drops_empty_pieces_and_strips(self):
        assert split_top_level(" a:1 ,, b:2 ,") == ["a:1", "b:2"]

    def test_stray_close_paren_does_not_go_negative(self):
        """A stray ')' must not hide the following separator."""
        assert split_top_level("a:1),b:2") == ["a:1)", "b:2"]

    def test_unclosed_group_returned_verbatim(self):
        assert split_top_level("a:1,branch:(x,y") == ["a:1", "branch:(x,y"]


class TestSegmentKey:
    def test_simple_key_lowercased(self):
        assert segment_key("buildType:(id:X)") == "buildtype"

    def test_no_key(self):
        assert segment_key("(a,b)") is None
        assert segment_key("123") is None
        assert segment_key(":value") is None


class TestWrapValue:
    """Tests for the value-wrapping rules."""

    @pytest.mark.parametrize(
        "value",
        ["default:any", "DEFAULT:TRUE", "unspecified:false", "branched:any", "policy:ALL_BRANCHES"],
    )
    def test_presets_left_unwrapped(self, value):
        assert wrap_value(value) == value

    def test_already_grouped(self):
        assert wrap_value("(refs/heads/main)") == "(refs/heads/main)"

    def test_slash_wraps(self):
        assert wrap_value("refs/heads/main") == "(refs/heads/main)"

    def test_colon_wraps(self):
        assert wrap_value("name:foo") == "(name:foo)"

    def test_whitespace_wraps(self):
        assert wrap_value("my branch") == "(my branch)"

    def test_separator_wraps(self):
        assert wrap_value("a,b") == "(a,b)"

    def test_wildcard_without_colon_unwrapped(self):
        assert wrap_value("feature/*") == "feature/*"

    def test_plain_value_unwrapped(self):
        assert wrap_value("main") == "main"

    def test_trims(self):
        assert wrap_value("  main  ") == "main"


class TestNormalizeSegment:
    def test_wraps_value(self):
        assert normalize_segment("branch", "refs/heads/main") == "branch:(refs/heads/main)"

    def test_idempotent_for_grouped_value(self):
        assert normalize_segment("branch", "(refs/heads/main)") == "branch:(refs/heads/main)"

    def test_blank_value_yields_empty(self):
        assert normalize_segment("branch", "   ") == ""

    def test_normalize_locator_rewraps_branch_only(self):
        assert normalize_locator("branch:refs/heads/main,name:a/b") == [
            "branch:(refs/heads/main)",
            "name:a/b",
        ]

    def test_build_branch_segment_strips_prefix(self):
        assert build_branch_segment("branch:feature/x") == "branch:(feature/x)"
        assert build_branch_segment("default:any") == "branch:default:any"


class TestMergeSegments:
    """Tests for merge_segments."""

    def test_existing_keys_win(self):
        merged = merge_segments("status:FAILURE", ["status:SUCCESS", "count:10"])
        assert merged == "status:FAILURE,count:10"

    def test_key_match_is_case_insensitive(self):
        assert merge_segments("buildType:(id:A)", ["BUILDTYPE:(id:B)"]) == "buildType:(id:A)"

    def test_existing_duplicates_collapsed(self):
        assert merge_segments("count:1,count:2", []) == "count:1"

    def test_new_segments_as_string(self):
        assert merge_segments("a:1", "b:2,a:3") == "a:1,b:2"

    def test_empty_existing(self):
        assert merge_segments(None, ["a:1"]) == "a:1"
        assert merge_segments("", None) == ""

    def test_has_segment(self):
        assert has_segment("branch:(x),count:1", "Branch")
        assert not has_segment("branch:(x)", "count")
        assert has_segment(["count:1"], "count")


class TestPageMarkers:
    def test_with_page_markers_replaces_existing(self):
        locator = with_page_markers("status:SUCCESS,count:5,start:40", offset=10, limit=20)
        assert locator == "status:SUCCESS,count:20,start:10"

    def test_with_page_markers_on_empty(self):
        assert with_page_markers(None, 0, 100) == "count:100,start:0"

    def test_parse_encoded_next_href(self):
        href = "/app/rest/builds?locator=status%3ASUCCESS%2Ccount%3A2%2Cstart%3A4"
        assert parse_page_markers(href) == (4, 2)

    def test_parse_missing(self):
        assert parse_page_markers("/app/rest/builds") == (None, None)
        assert parse_page_markers(None) == (None, None)


class TestDates:
    def test_date_only(self):
        assert to_teamcity_date("2024-03-01") == "20240301T000000+0000"

    def test_iso_with_offset_converted_to_utc(self):
        assert to_teamcity_date("2024-03-01T10:30:00+02:00") == "20240301T083000+0000"

    def test_teamcity_format_passthrough(self):
        assert to_teamcity_date("20240301T083000+0000") == "20240301T083000+0000"

    def test_invalid_date_raises(self):
        with pytest.raises(LocatorValidationError):
            to_teamcity_date("yesterday", "since_date")


class TestBuildLocator:
    """Tests for build_locator and FilterCriteria."""

    def test_structured_fields(self):
        locator = build_locator(
            FilterCriteria(
                build_type_id="Proj_Build",
                status="failure",
                branch="refs/heads/main",
                running=False,
            )
        )
        assert locator == (
            "buildType:(id:Proj_Build),status:FAILURE,branch:(refs/heads/main),running:false"
        )

    def test_raw_locator_wins(self):
        locator = build_locator({"locator": "status:SUCCESS", "status": "FAILURE", "tag": "nightly"})
        assert locator == "status:SUCCESS,tag:nightly"

    def test_none_is_empty(self):
        assert build_locator(None) == ""

    def test_invalid_status(self):
        with pytest.raises(LocatorValidationError) as exc_info:
            build_locator(FilterCriteria(status="BROKEN"))
        assert exc_info.value.field == "status"

    def test_since_must_precede_until(self):
        with pytest.raises(LocatorValidationError):
            build_locator(FilterCriteria(since_date="2024-02-01", until_date="2024-01-01"))

    def test_date_range(self):
        locator = build_locator(FilterCriteria(since_date="2024-01-01", until_date="2024-02-01"))
        assert locator == "sinceDate:20240101T000000+0000,untilDate:20240201T000000+0000"

    def test_extra_clauses(self):
        locator = build_locator(FilterCriteria(project_id="P", extra={"agentName": "agent 1"}))
        assert locator == "project:(id:P),agentName:(agent 1)"
