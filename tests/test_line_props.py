"""Design bits extraction and alias configuration parsing."""

from __future__ import annotations

import pytest

from fulfilment_service.line_props import extract_props, find_first_key, get_design_bits
from fulfilment_service.models import ClientConfig, KeyAliases, LineItemProperty, parse_alias_list


def _props(*pairs):
    return extract_props([LineItemProperty(name=n, value=v) for n, v in pairs])


class TestParseAliasList:

    def test_list_is_kept(self):
        assert parse_alias_list(["Top line", " Line 1 "]) == ["Top line", "Line 1"]

    def test_json_array_string(self):
        assert parse_alias_list('["A", "B"]') == ["A", "B"]

    def test_json_array_drops_non_strings(self):
        assert parse_alias_list('["A", 3, null, "B"]') == ["A", "B"]

    def test_comma_separated_fallback(self):
        assert parse_alias_list("Top line, Line 1 ,,") == ["Top line", "Line 1"]

    def test_json_scalar_falls_back_to_split(self):
        assert parse_alias_list('"quoted"') == ['"quoted"']

    @pytest.mark.parametrize("value", [None, "", "   ", 42, {"a": 1}])
    def test_empty_or_unsupported(self, value):
        assert parse_alias_list(value) == []

    def test_client_config_accepts_all_stored_forms(self):
        client = ClientConfig.model_validate({
            "slug": "acme",
            "shopDomain": "acme.myshopify.com",
            "secretName": "acme/secret",
            "topKeys": ["T1"],
            "middleKeysJson": '["M1", "M2"]',
            "bottom_aliases": "B1,B2",
        })
        assert client.secret_ref == "acme/secret"
        assert client.key_aliases == KeyAliases(top=["T1"], middle=["M1", "M2"], bottom=["B1", "B2"])


class TestFindFirstKey:

    def test_case_insensitive(self):
        assert find_first_key({"TOP LINE": "HELLO"}, ["top line"]) == "HELLO"

    def test_first_configured_alias_wins(self):
        props = {"Line 1": "one", "Top": "top"}
        assert find_first_key(props, ["Top", "Line 1"]) == "top"

    def test_empty_value_is_skipped(self):
        assert find_first_key({"Top": "", "Line 1": "one"}, ["Top", "Line 1"]) == "one"

    def test_no_candidates(self):
        assert find_first_key({"Top": "x"}, []) is None


class TestGetDesignBits:

    def test_defaults_without_configuration(self):
        bits = get_design_bits(_props(("Top line", "HELLO"), ("Middle line", "FROM"), ("Bottom line", "IVC")))
        assert (bits.top, bits.middle, bits.bottom) == ("HELLO", "FROM", "IVC")

    def test_configured_alias_before_default(self):
        aliases = KeyAliases(top=["Line 1"])
        bits = get_design_bits(_props(("Top line", "default"), ("line 1", "configured")), aliases)
        assert bits.top == "configured"

    def test_falls_back_to_default_when_alias_missing(self):
        bits = get_design_bits(_props(("Top line", "default")), KeyAliases(top=["Line 1"]))
        assert bits.top == "default"

    def test_print_job_and_thumb_metadata(self):
        bits = get_design_bits(_props(("_printJobId", "PJ1"), ("_thumb", "https://cdn/x.png")))
        assert bits.print_job_id == "PJ1"
        assert bits.thumb == "https://cdn/x.png"

    @pytest.mark.parametrize("name", ["_printJobId", "_printjobid", "print_job_ref"])
    def test_print_job_names(self, name):
        assert get_design_bits(_props((name, "PJ9"))).print_job_id == "PJ9"

    @pytest.mark.parametrize("name", ["_thumb", "_thumbnail", "thumbnail"])
    def test_thumbnail_names(self, name):
        assert get_design_bits(_props((name, "u"))).thumb == "u"

    def test_metadata_names_are_a_closed_set(self):
        bits = get_design_bits(_props(("_PRINTJOBID", "PJ1"), ("_print_job_id", "PJ2"), ("THUMB", "u")))
        assert bits.print_job_id is None
        assert bits.thumb is None

    def test_metadata_ignores_client_aliases(self):
        bits = get_design_bits(_props(("_printJobId", "PJ1")), KeyAliases(top=["_printJobId"]))
        assert bits.print_job_id == "PJ1"
        assert bits.top == "PJ1"

    def test_nothing_found(self):
        bits = get_design_bits({})
        assert bits.model_dump() == {
            "top": None, "middle": None, "bottom": None, "print_job_id": None, "thumb": None,
        }
