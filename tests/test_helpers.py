import base64

import pytest
from jinja2 import Environment
from jinja2.tests import TESTS
from markupsafe import Markup

from cr.errors import HelperTypeError
from cr.helpers import build_helpers, cleanid, duration, embedmime, register_helpers


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _render(source: str, **context) -> str:
    env = register_helpers(Environment(autoescape=True))
    return env.from_string(source).render(**context)


class TestCleanId:
    def test_strips_unsafe_characters(self):
        assert cleanid("Scenario: Login/Logout #1") == "ScenarioLoginLogout1"

    def test_keeps_dash_and_underscore(self):
        assert cleanid("login-feature;valid_user") == "login-featurevalid_user"

    def test_empty_text(self):
        assert cleanid("") == ""

    def test_rejects_non_text(self):
        with pytest.raises(HelperTypeError) as excinfo:
            cleanid(42)
        assert excinfo.value.helper == "cleanid"
        assert isinstance(excinfo.value, TypeError)


class TestDuration:
    @pytest.mark.parametrize(
        "nanos, expected",
        [
            (0, "0s 0ms"),
            (1_500_000_000, "1s 500ms"),
            (999_999, "0s 0ms"),
            (1_000_000, "0s 1ms"),
            (61_234_000_000, "61s 234ms"),
        ],
    )
    def test_formats_seconds_and_millis(self, nanos, expected):
        assert duration(nanos) == expected

    def test_float_rounds_to_nearest_nanosecond(self):
        assert duration(999_999.5) == "0s 1ms"
        assert duration(1.5e9) == "1s 500ms"

    @pytest.mark.parametrize("value", ["1000", None, True, [1], float("nan")])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(HelperTypeError):
            duration(value)


class TestEmbedMime:
    def test_wraps_decoded_payload(self):
        html = embedmime(_b64("<b>hi</b>"))
        assert "<b>hi</b>" in html
        assert html == "<span><b>hi</b></span>"
        assert isinstance(html, Markup)

    def test_payload_not_escaped_when_rendered(self):
        out = _render("{{ data|embedmime }}", data=_b64("<i>x</i>"))
        assert out == "<span><i>x</i></span>"

    def test_invalid_utf8_is_replaced(self):
        payload = base64.b64encode(b"ok\xff").decode("ascii")
        assert embedmime(payload) == "<span>ok�</span>"

    def test_rejects_bad_padding(self):
        with pytest.raises(HelperTypeError):
            embedmime("abc")

    def test_rejects_non_text(self):
        with pytest.raises(HelperTypeError):
            embedmime(b"PGI+")


class TestConditionalHelpers:
    def test_expression_form_returns_bool(self):
        helpers = build_helpers()
        assert helpers["eq"]("passed", "passed") is True
        assert helpers["ne"](1, 2) is True
        assert helpers["neq"](1, 1) is False
        assert helpers["gt"](3, 2, 1) is True
        assert helpers["gte"](2, 2) is True
        assert helpers["lt"](1, 2, 2) is False
        assert helpers["lte"](1, 2, 2) is True
        assert helpers["and_"](1, "x", True) is True
        assert helpers["or_"](0, "", None) is False
        assert helpers["not_"]([]) is True

    def test_block_renders_when_true(self):
        source = '{% call eq(status, "failed") %}FAIL{% endcall %}'
        assert _render(source, status="failed") == "FAIL"
        assert _render(source, status="passed") == ""

    def test_block_renders_inverse_when_false(self):
        source = '{% call gt(count, 0, inverse="none") %}some{% endcall %}'
        assert _render(source, count=3) == "some"
        assert _render(source, count=0) == "none"

    def test_logical_helpers_in_if(self):
        source = "{% if and_(a, or_(b, c)) %}yes{% else %}no{% endif %}"
        assert _render(source, a=1, b=0, c=1) == "yes"
        assert _render(source, a=1, b=0, c=0) == "no"

    def test_registered_as_tests(self):
        assert _render("{{ 5 is gt(3) }}") == "True"
        assert _render("{{ 2 is lte(2) }}|{{ 1 is gte(2) }}|{{ 1 is neq(2) }}") == "True|False|True"

    def test_builtin_tests_are_kept(self):
        env = register_helpers(Environment())
        for name in ("eq", "ne", "gt", "lt"):
            assert env.tests[name] is TESTS[name]

    def test_incomparable_values(self):
        with pytest.raises(HelperTypeError):
            build_helpers()["gt"]("a", 1)

    def test_needs_two_values(self):
        with pytest.raises(HelperTypeError):
            build_helpers()["eq"]("a")

    def test_not_takes_one_value(self):
        with pytest.raises(HelperTypeError):
            build_helpers()["not_"](1, 2)


def test_each_run_gets_a_fresh_mapping():
    first, second = build_helpers(), build_helpers()
    assert set(first) == set(second)
    assert first is not second
    assert {"cleanid", "duration", "embedmime", "eq", "ne", "gt", "lt", "and_", "or_"} <= set(first)


def test_filters_and_globals_registered():
    env = register_helpers(Environment())
    assert {"cleanid", "duration", "embedmime"} <= set(env.filters)
    assert "eq" in env.globals and "eq" in env.tests
    assert "and_" not in env.tests
    assert _render("{{ cleanid(name) }}|{{ n|duration }}", name="a b", n=2_000_000) == "ab|0s 2ms"
