"""Detection engine: evaluates every rule against one snapshot."""

from __future__ import annotations

import logging
from typing import Optional

from clawfix.core.models import Issue
from clawfix.core.predicates import PREDICATES, Predicate
from clawfix.core.rules import RULES, RuleSpec
from clawfix.core.snapshot import Snapshot

logger = logging.getLogger(__name__)


def _evaluate(rule: RuleSpec, predicate: Predicate, snapshot: Snapshot) -> bool:
    try:
        matched = predicate(snapshot)
    except Exception as e:
        logger.debug("Rule %s raised %s: %s", rule.id, type(e).__name__, e)
        return False
    if not isinstance(matched, bool):
        logger.debug(
            "Rule %s returned %s instead of bool", rule.id, type(matched).__name__
        )
        return False
    return matched


def detect(
    snapshot: Snapshot,
    rules: tuple[RuleSpec, ...] = RULES,
    predicates: Optional[dict[str, Predicate]] = None,
) -> list[Issue]:
    """Return the issues whose predicates match, in registry order.

    A predicate that raises or returns a non-bool counts as no match, so
    one defective rule never hides the others. The result is not sorted
    by severity; use sort_by_severity() for that.
    """
    predicates = PREDICATES if predicates is None else predicates
    issues: list[Issue] = []
    for rule in rules:
        predicate = predicates.get(rule.id)
        if predicate is None:
            logger.warning("No predicate registered for rule %s", rule.id)
            continue
        if _evaluate(rule, predicate, snapshot):
            issues.append(rule.to_issue())
    logger.debug("Detected %d issue(s): %s", len(issues), [i.id for i in issues])
    return issues


def sort_by_severity(issues: list[Issue]) -> list[Issue]:
    """Stable sort, most severe first."""
    return sorted(issues, key=lambda i: i.severity.rank)
