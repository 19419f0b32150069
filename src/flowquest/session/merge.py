"""Merge rules for session updates.

Updates are merged rather than replaced so that a client resubmitting
overlapping state neither duplicates history nor loses evaluation text:

- conversation logs are appended and deduplicated on role|content|timestamp
- keywords and pass rules are unioned
- evaluation results are concatenated
- status and turn count are taken from the update when provided
"""

import copy

from .models import ConversationLog, UnitResult


def _union(existing: list[str], incoming: list[str]) -> list[str]:
    """Order-preserving set union."""
    merged = list(dict.fromkeys(existing))
    seen = set(merged)
    for item in incoming:
        if item not in seen:
            seen.add(item)
            merged.append(item)
    return merged


def merge_logs(
    existing: list[ConversationLog], incoming: list[ConversationLog]
) -> list[ConversationLog]:
    """Append incoming logs, dropping replays, and keep timestamp order.

    The sort is stable, so logs sharing a timestamp keep generation order.
    """
    seen: set[str] = set()
    merged: list[ConversationLog] = []
    for log in [*existing, *incoming]:
        key = log.dedupe_key
        if key in seen:
            continue
        seen.add(key)
        merged.append(log)
    return sorted(merged, key=lambda log: log.timestamp)


def merge_unit_result(existing: UnitResult, incoming: UnitResult) -> UnitResult:
    """Merge an update into a stored unit result.

    The turn count never goes backwards: an update carrying a lower count
    than the stored one leaves the stored count in place.

    Args:
        existing: The stored result.
        incoming: The update for the same unit.

    Returns:
        A new merged result; neither input is modified.
    """
    merged = copy.deepcopy(existing)
    merged.conversation_logs = merge_logs(existing.conversation_logs, incoming.conversation_logs)
    merged.important_keywords = _union(existing.important_keywords, incoming.important_keywords)
    merged.standard_pass_rules = _union(existing.standard_pass_rules, incoming.standard_pass_rules)
    merged.evaluation_results = [*existing.evaluation_results, *incoming.evaluation_results]

    if incoming.status is not None:
        merged.status = incoming.status
    if incoming.turn_count is not None:
        merged.turn_count = max(existing.turns, incoming.turn_count)
    return merged


def _normalized(result: UnitResult) -> UnitResult:
    """Copy a new result, deduplicating its logs and defaulting the count."""
    fresh = copy.deepcopy(result)
    fresh.conversation_logs = merge_logs([], fresh.conversation_logs)
    fresh.important_keywords = _union([], fresh.important_keywords)
    fresh.standard_pass_rules = _union([], fresh.standard_pass_rules)
    if fresh.turn_count is None:
        fresh.turn_count = 0
    return fresh


def merge_unit_results(
    existing: list[UnitResult], incoming: list[UnitResult]
) -> list[UnitResult]:
    """Merge incoming unit results into stored ones by unit_id.

    Stored order is kept; units seen for the first time are appended in
    the order they arrive.

    Args:
        existing: Stored results.
        incoming: Results from the update.

    Returns:
        The merged list.
    """
    by_unit: dict[str, UnitResult] = {}
    for result in existing:
        if result.unit_id in by_unit:
            by_unit[result.unit_id] = merge_unit_result(by_unit[result.unit_id], result)
        else:
            by_unit[result.unit_id] = copy.deepcopy(result)

    for result in incoming:
        current = by_unit.get(result.unit_id)
        if current is None:
            by_unit[result.unit_id] = _normalized(result)
        else:
            by_unit[result.unit_id] = merge_unit_result(current, result)

    return list(by_unit.values())
