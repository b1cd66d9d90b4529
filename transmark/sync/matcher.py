"""Pairs source units with target units."""

from __future__ import annotations

from dataclasses import dataclass

from transmark.document import Unit


@dataclass
class UnitPair:
    """A source/target pairing. One side is None for added or orphaned units."""

    source: Unit | None
    target: Unit | None


def match_units(
    source_units: list[Unit],
    target_units: list[Unit],
    source_keys: list[str],
) -> list[UnitPair]:
    """Pair units by ``from`` reference first, then by document order.

    *source_keys* holds the hash each source unit was known under before
    this sync, which is what target ``from`` references point at. Only
    targets without a ``from`` take part in positional pairing; a target
    whose ``from`` matches nothing is an orphan.
    """
    pairs: list[UnitPair] = []
    matched_sources: set[int] = set()
    matched_targets: set[int] = set()

    for s_idx, key in enumerate(source_keys):
        if not key:
            continue
        for t_idx, target in enumerate(target_units):
            if t_idx in matched_targets:
                continue
            if target.marker is not None and target.marker.from_hash == key:
                pairs.append(UnitPair(source_units[s_idx], target))
                matched_sources.add(s_idx)
                matched_targets.add(t_idx)
                break

    def eligible_target(t_idx: int) -> bool:
        target = target_units[t_idx]
        return t_idx not in matched_targets and (target.marker is None or not target.marker.from_hash)

    s_ptr = t_ptr = 0
    while s_ptr < len(source_units) or t_ptr < len(target_units):
        while s_ptr < len(source_units) and s_ptr in matched_sources:
            s_ptr += 1
        while t_ptr < len(target_units) and t_ptr in matched_targets:
            t_ptr += 1
        if s_ptr >= len(source_units) and t_ptr >= len(target_units):
            break

        s_ok = s_ptr < len(source_units)
        t_ok = t_ptr < len(target_units) and eligible_target(t_ptr)
        if s_ok and t_ok:
            pairs.append(UnitPair(source_units[s_ptr], target_units[t_ptr]))
            matched_sources.add(s_ptr)
            matched_targets.add(t_ptr)
        elif s_ok:
            pairs.append(UnitPair(source_units[s_ptr], None))
            matched_sources.add(s_ptr)
        elif t_ptr < len(target_units):
            # Target keeps a stale from reference: orphan
            pairs.append(UnitPair(None, target_units[t_ptr]))
            matched_targets.add(t_ptr)

    # Source order first, orphans last
    order = {id(unit): i for i, unit in enumerate(source_units)}
    paired = sorted((p for p in pairs if p.source is not None), key=lambda p: order[id(p.source)])
    return paired + [p for p in pairs if p.source is None]
