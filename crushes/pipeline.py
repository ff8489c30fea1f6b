"""
Pure derivations over a snapshot of a user's crushes.

Nothing here touches the database: the CRUD layer loads a snapshot, asks these
functions for the grouped view, the stats or a placement plan, and writes the plan
back in one transaction.
"""
import math
from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .schema import STAGE_ORDER, DEFAULT_STAGE, TERMINAL_STAGE

# crush id -> (stage, position)
Placement = Dict[str, Tuple[str, int]]


def stage_of(crush) -> str:
    return crush.current_stage or DEFAULT_STAGE


def order_stage(members: Iterable) -> List:
    """Ascending position; among equal positions the newest crush comes first"""
    newest_first = sorted(
        members,
        key=lambda c: c.created_at or datetime.min,
        reverse=True
    )
    return sorted(newest_first, key=lambda c: c.position or 0)


def group_by_stage(crushes: Sequence) -> "OrderedDict[str, List]":
    """
    Group crushes by stage, each group sorted by position.

    The four fixed stages are always present (possibly empty) and come first in
    pipeline order. Rows carrying any other stage label are kept in trailing groups
    so they never silently disappear from the board.
    """
    groups: "OrderedDict[str, List]" = OrderedDict((stage, []) for stage in STAGE_ORDER)
    for crush in crushes:
        groups.setdefault(stage_of(crush), []).append(crush)
    for stage in groups:
        groups[stage] = order_stage(groups[stage])
    return groups


def success_rate(relationship_count: int, total: int) -> int:
    """Integer percentage, half rounded up; 0 for an empty pipeline"""
    if total <= 0:
        return 0
    return int(math.floor(relationship_count * 100 / total + 0.5))


def compute_stats(crushes: Sequence) -> Dict:
    groups = group_by_stage(crushes)
    total = len(crushes)
    return {
        "total": total,
        "by_stage": {stage: len(groups[stage]) for stage in STAGE_ORDER},
        "success_rate": success_rate(len(groups[TERMINAL_STAGE]), total),
    }


def _renumber(members: Sequence, stage: str, start: int = 0) -> Placement:
    return {c.id: (stage, index) for index, c in enumerate(members, start=start)}


def plan_insert_at_top(crushes: Sequence, stage: str) -> Placement:
    """Placement for the existing members of `stage` when a new crush takes slot 0"""
    return _renumber(group_by_stage(crushes).get(stage, []), stage, start=1)


def plan_move(
    crushes: Sequence,
    crush_id: str,
    new_stage: str,
    new_position: Optional[int] = None
) -> Placement:
    """
    Placement after dragging `crush_id` to `new_stage` at `new_position`.

    Args:
        crushes: full snapshot of the owner's crushes (pre-move)
        crush_id: the dragged crush
        new_stage: target column
        new_position: insert-before index in the target column computed without the
            dragged card; None appends, out-of-range values are clamped

    Returns:
        stage/position for every member of the source and target stages, both
        renumbered contiguously from 0

    Raises:
        KeyError: crush_id is not part of the snapshot
    """
    dragged = next((c for c in crushes if c.id == crush_id), None)
    if dragged is None:
        raise KeyError(crush_id)

    groups = group_by_stage(crushes)
    source_stage = stage_of(dragged)

    source = [c for c in groups[source_stage] if c.id != crush_id]
    if source_stage == new_stage:
        target = source
    else:
        target = [c for c in groups.get(new_stage, []) if c.id != crush_id]

    if new_position is None:
        new_position = len(target)
    new_position = max(0, min(new_position, len(target)))
    target.insert(new_position, dragged)

    placement = _renumber(target, new_stage)
    if source_stage != new_stage:
        placement.update(_renumber(source, source_stage))
    return placement


def plan_remove(crushes: Sequence, crush_id: str) -> Placement:
    """Placement closing the gap left in the stage of a deleted crush"""
    removed = next((c for c in crushes if c.id == crush_id), None)
    if removed is None:
        return {}
    stage = stage_of(removed)
    remaining = [c for c in group_by_stage(crushes)[stage] if c.id != crush_id]
    return _renumber(remaining, stage)
