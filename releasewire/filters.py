"""Pure evaluation of subscription filter rules against event payloads.

Evaluation is total: every rule yields a :class:`FilterDecision` and nothing
raises. A pattern that does not compile fails open, so a misconfigured filter
can never silently mute a subscriber; the decision carries the configuration
error so callers can report it.

Patterns use search semantics (:meth:`re.Pattern.search`): a pattern is only
anchored when it says so, e.g. ``^v\\d+\\.\\d+\\.\\d+$``.
"""

from __future__ import annotations

import dataclasses
import functools
import re
import typing as typ

from releasewire.events.models import EventKind
from releasewire.subscriptions.models import (
    AllOfRule,
    AuthorRule,
    BranchRule,
    ExcludeFlagRule,
    PathRule,
    PatternRule,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from releasewire.subscriptions.models import FilterRule


@dataclasses.dataclass(frozen=True, slots=True)
class FilterDecision:
    """Outcome of evaluating one rule.

    Attributes
    ----------
    passed
        ``True`` when the event should be delivered.
    reason
        Short machine-readable reason for a suppression.
    config_errors
        Invalid patterns that were skipped while evaluating.

    """

    passed: bool
    reason: str | None = None
    config_errors: tuple[str, ...] = ()


_PASS = FilterDecision(passed=True)


@functools.lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> re.Pattern[str] | re.error:
    """Compile ``pattern`` once, returning the compile error instead of raising."""
    try:
        return re.compile(pattern)
    except re.error as exc:
        return exc


class FilterEngine:
    """Evaluate :data:`~releasewire.subscriptions.models.FilterRule` values.

    Commit-only rules (branch, author, path) pass unconditionally for release
    events.
    """

    def evaluate(
        self,
        rule: FilterRule | None,
        payload: cabc.Mapping[str, typ.Any],
        *,
        kind: EventKind = EventKind.RELEASE,
    ) -> FilterDecision:
        """Return whether an event with ``payload`` passes ``rule``."""
        match rule:
            case None:
                return _PASS
            case AllOfRule(rules=rules):
                return self._evaluate_all(rules, payload, kind)
            case ExcludeFlagRule(field=field):
                if payload.get(field):
                    return FilterDecision(passed=False, reason=f"{field}_excluded")
                return _PASS
            case PatternRule(pattern=pattern, field=field):
                return _evaluate_pattern(pattern, payload.get(field), field)
            case BranchRule() | AuthorRule() | PathRule() if kind != EventKind.COMMIT:
                return _PASS
            case BranchRule(branch=branch):
                return _evaluate_branch(branch, payload)
            case AuthorRule(author=author):
                return _evaluate_author(author, payload)
            case PathRule(pattern=pattern):
                return _evaluate_paths(pattern, payload)
        return _PASS

    def _evaluate_all(
        self,
        rules: cabc.Sequence[FilterRule],
        payload: cabc.Mapping[str, typ.Any],
        kind: EventKind,
    ) -> FilterDecision:
        errors: list[str] = []
        for nested in rules:
            decision = self.evaluate(nested, payload, kind=kind)
            errors.extend(decision.config_errors)
            if not decision.passed:
                return dataclasses.replace(decision, config_errors=tuple(errors))
        return FilterDecision(passed=True, config_errors=tuple(errors))


def _invalid(pattern: str, error: re.error) -> FilterDecision:
    return FilterDecision(passed=True, config_errors=(f"{pattern!r}: {error}",))


def _evaluate_pattern(pattern: str, value: object, field: str) -> FilterDecision:
    compiled = compile_pattern(pattern)
    if isinstance(compiled, re.error):
        return _invalid(pattern, compiled)
    if value is None or compiled.search(str(value)) is None:
        return FilterDecision(passed=False, reason=f"{field}_mismatch")
    return _PASS


def _evaluate_branch(
    branch: str, payload: cabc.Mapping[str, typ.Any]
) -> FilterDecision:
    actual = payload.get("branch")
    if actual and actual != branch:
        return FilterDecision(passed=False, reason="branch_mismatch")
    return _PASS


def _evaluate_author(
    author: str, payload: cabc.Mapping[str, typ.Any]
) -> FilterDecision:
    needle = author.lower()
    haystacks = (
        str(payload.get("author_name") or "").lower(),
        str(payload.get("author_email") or "").lower(),
    )
    if any(needle in haystack for haystack in haystacks):
        return _PASS
    return FilterDecision(passed=False, reason="author_mismatch")


def _evaluate_paths(
    pattern: str, payload: cabc.Mapping[str, typ.Any]
) -> FilterDecision:
    changed_files = payload.get("changed_files")
    if not changed_files:
        return _PASS
    compiled = compile_pattern(pattern)
    if isinstance(compiled, re.error):
        return _invalid(pattern, compiled)
    if any(compiled.search(str(path)) for path in changed_files):
        return _PASS
    return FilterDecision(passed=False, reason="path_mismatch")
