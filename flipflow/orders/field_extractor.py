"""
Field extractor: best candidate for one field from a list of PatternRules.

Every rule runs over the whole content; every match becomes a Candidate in the
diagnostic trail. The winner is the accepted candidate whose rule has the
lowest priority number, first-seen in rule order on ties. Pure function: no
I/O, no clock, no module state.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from flipflow.orders.types import Candidate, ExtractionResult, PatternRule


def clean_candidate(raw: str) -> str:
    """Strip surrounding angle brackets and whitespace from a raw match."""
    return raw.strip().strip("<>").strip()


def _is_poisoned(rule: PatternRule, candidate: str, poison: frozenset[str]) -> bool:
    if not poison:
        return False
    return candidate in poison or rule.normalize(candidate) in poison


def extract(
    content: str | None,
    rules: Sequence[PatternRule],
    poison_values: Iterable[str] = (),
) -> ExtractionResult:
    """
    Extract the best value for one field.

    Args:
        content: Text to search (subject + decoded body view)
        rules: Ordered PatternRules for the field
        poison_values: Known-bad values; a candidate equal to one of these
            (raw or normalized) is rejected and extraction moves on

    Returns:
        ExtractionResult with the normalized winner, or value=None if no
        candidate was accepted. all_candidates lists every match in rule order.
    """
    if not content or not rules:
        return ExtractionResult.not_found()

    poison = frozenset(poison_values)
    candidates: list[Candidate] = []
    best_rule: PatternRule | None = None
    best_raw: str | None = None

    for rule in rules:
        for match in rule.matcher.finditer(content):
            captured = match.group(rule.group)
            if captured is None:
                continue
            raw = clean_candidate(captured)
            if not raw:
                continue

            poisoned = _is_poisoned(rule, raw, poison)
            valid = not poisoned and rule.validate(raw)
            candidates.append(
                Candidate(
                    rule_name=rule.name,
                    raw_match=raw,
                    valid=valid,
                    priority=rule.priority,
                    poisoned=poisoned,
                )
            )

            if valid and (best_rule is None or rule.priority < best_rule.priority):
                best_rule = rule
                best_raw = raw

    if best_rule is None or best_raw is None:
        return ExtractionResult.not_found(tuple(candidates))

    return ExtractionResult(
        value=best_rule.normalize(best_raw),
        matched_rule_name=best_rule.name,
        all_candidates=tuple(candidates),
    )
