"""Template helpers for the feature report.

Every helper is a plain function so it can be called and tested without a
Jinja2 environment.  `register_helpers` installs a fresh set into an
environment for a single run:

* all helpers become globals, e.g. ``{{ duration(step.result.duration) }}``;
* the value helpers (`cleanid`, `duration`, `embedmime`) are also filters,
  e.g. ``{{ scenario.id | cleanid }}``;
* the comparison aliases missing from Jinja2's built-in tests (`neq`, `gte`,
  `lte`) are added as tests, e.g. ``{% if n is gte(1) %}``.

The conditional helpers return a boolean when used in an expression.  When
used from a call block they render the block if the relation holds and the
``inverse`` text otherwise::

    {% call eq(step.result.status, "passed") %}ok{% endcall %}
"""

from __future__ import annotations

import base64
import binascii
import logging
import math
import re
from typing import Any, Callable, Dict, Sequence

from jinja2 import Environment
from jinja2.tests import TESTS
from markupsafe import Markup

from .errors import HelperTypeError

log = logging.getLogger(__name__)

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MILLI = 1_000_000

# anything outside this set is dropped from HTML ids and anchors
_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def _require_text(helper: str, value: Any) -> str:
    if not isinstance(value, str):
        raise HelperTypeError(helper, "text", value)
    return value


def cleanid(value: Any) -> str:
    """Strip every character that is not a letter, digit, ``-`` or ``_``."""
    return _UNSAFE_ID_CHARS.sub("", _require_text("cleanid", value))


def duration(value: Any) -> str:
    """Format elapsed nanoseconds as ``"<seconds>s <milliseconds>ms"``.

    The value is rounded half-up to a whole nanosecond first; the
    millisecond part is truncated, so ``999_999`` gives ``"0s 0ms"``.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise HelperTypeError("duration", "number", value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise HelperTypeError("duration", "finite number", value)
        value = math.floor(value + 0.5)
    seconds, nanos = divmod(value, NANOS_PER_SECOND)
    return f"{seconds}s {nanos // NANOS_PER_MILLI}ms"


def embedmime(value: Any) -> Markup:
    """Decode a base64 payload and wrap it for inline embedding."""
    payload = _require_text("embedmime", value)
    try:
        raw = base64.b64decode(payload)
    except (binascii.Error, ValueError) as exc:
        raise HelperTypeError("embedmime", "base64 text", value) from exc
    html = Markup("<span>{}</span>").format(
        Markup(raw.decode("utf-8", errors="replace"))
    )
    log.debug("embedmime: %s", html)
    return html


def _pairwise(name: str, relation: Callable[[Any, Any], bool]) -> Callable[[Sequence[Any]], bool]:
    def holds(values: Sequence[Any]) -> bool:
        if len(values) < 2:
            raise HelperTypeError(name, "at least two values", values)
        try:
            return all(relation(a, b) for a, b in zip(values, values[1:]))
        except TypeError as exc:
            raise HelperTypeError(name, "comparable values", values) from exc

    return holds


def _all_truthy(values: Sequence[Any]) -> bool:
    if not values:
        raise HelperTypeError("and_", "at least one value", values)
    return all(values)


def _any_truthy(values: Sequence[Any]) -> bool:
    if not values:
        raise HelperTypeError("or_", "at least one value", values)
    return any(values)


def _negate(values: Sequence[Any]) -> bool:
    if len(values) != 1:
        raise HelperTypeError("not_", "exactly one value", values)
    return not values[0]


def conditional(name: str, predicate: Callable[[Sequence[Any]], bool]) -> Callable[..., Any]:
    """Turn a predicate over the helper arguments into a template helper."""

    def helper(*values: Any, caller: Callable[[], str] | None = None, inverse: str = "") -> Any:
        outcome = predicate(values)
        if caller is None:
            return outcome
        return caller() if outcome else inverse

    helper.__name__ = name
    helper.__qualname__ = name
    return helper


COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": TESTS["eq"],
    "ne": TESTS["ne"],
    "neq": TESTS["ne"],
    "gt": TESTS["gt"],
    "gte": TESTS["ge"],
    "lt": TESTS["lt"],
    "lte": TESTS["le"],
}

VALUE_HELPERS: Dict[str, Callable[[Any], Any]] = {
    "cleanid": cleanid,
    "duration": duration,
    "embedmime": embedmime,
}


def build_helpers() -> Dict[str, Callable[..., Any]]:
    """Return a new name -> helper mapping holding the full built-in set."""
    helpers: Dict[str, Callable[..., Any]] = dict(VALUE_HELPERS)
    for name, relation in COMPARISONS.items():
        helpers[name] = conditional(name, _pairwise(name, relation))
    helpers["and_"] = conditional("and_", _all_truthy)
    helpers["or_"] = conditional("or_", _any_truthy)
    helpers["not_"] = conditional("not_", _negate)
    return helpers


def register_helpers(env: Environment, helpers: Dict[str, Callable[..., Any]] | None = None) -> Environment:
    """Install helpers into `env` as globals, filters and tests."""
    if helpers is None:
        helpers = build_helpers()
    env.globals.update(helpers)
    env.filters.update({name: fn for name, fn in helpers.items() if name in VALUE_HELPERS})
    for name in COMPARISONS:
        # Jinja2 already ships eq, ne, gt, lt; only the aliases are added
        env.tests.setdefault(name, helpers[name])
    return env
