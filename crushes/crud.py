from sqlalchemy.orm import Session
from typing import Dict, List, Optional, Tuple
import logging

from .models import Crush
from .schema import CrushCreate, CrushUpdate, CrushResponse
from .pipeline import (
    Placement, group_by_stage, compute_stats, stage_of,
    plan_insert_at_top, plan_move, plan_remove,
)

logger = logging.getLogger(__name__)


def list_crushes(db: Session, user_id: str) -> List[Crush]:
    """All of the owner's crushes, newest first"""
    return (
        db.query(Crush)
        .filter(Crush.user_id == user_id)
        .order_by(Crush.created_at.desc())
        .all()
    )


def get_crush(db: Session, user_id: str, crush_id: str) -> Optional[Crush]:
    return db.query(Crush).filter(Crush.id == crush_id, Crush.user_id == user_id).first()


def _apply_placement(crushes: List[Crush], placement: Placement) -> None:
    for crush in crushes:
        if crush.id in placement:
            stage, position = placement[crush.id]
            if crush.current_stage != stage:
                crush.current_stage = stage
            if crush.position != position:
                crush.position = position


def get_pipeline(db: Session, user_id: str) -> Dict:
    crushes = list_crushes(db, user_id)
    return build_pipeline(crushes)


def build_pipeline(crushes: List[Crush]) -> Dict:
    to_response = CrushResponse.model_validate
    return {
        "crushes": [to_response(c) for c in crushes],
        "crushes_by_stage": {
            stage: [to_response(c) for c in members]
            for stage, members in group_by_stage(crushes).items()
        },
        "stats": compute_stats(crushes),
    }


def create_crush(db: Session, user_id: str, data: CrushCreate) -> Crush:
    """New crushes land at the top of their stage; existing members shift down one slot"""
    snapshot = list_crushes(db, user_id)
    stage = data.current_stage.value
    _apply_placement(snapshot, plan_insert_at_top(snapshot, stage))

    fields = data.model_dump()
    fields["current_stage"] = stage
    crush = Crush(user_id=user_id, position=0, **fields)
    db.add(crush)
    db.commit()
    db.refresh(crush)
    return crush


def update_crush(
    db: Session, user_id: str, crush_id: str, update: CrushUpdate
) -> Tuple[Optional[Crush], Optional[str]]:
    """
    Patch a crush; stage/position changes are routed through the reorder plan

    Returns:
        (updated crush or None when not found, stage before the update)
    """
    snapshot = list_crushes(db, user_id)
    crush = next((c for c in snapshot if c.id == crush_id), None)
    if crush is None:
        return None, None

    previous_stage = stage_of(crush)
    fields = update.model_dump(exclude_unset=True)
    new_stage = fields.pop("current_stage", None)
    new_position = fields.pop("position", None)

    for key, value in fields.items():
        setattr(crush, key, value)

    target_stage = new_stage.value if new_stage is not None else previous_stage
    if target_stage != previous_stage or new_position is not None:
        _apply_placement(snapshot, plan_move(snapshot, crush_id, target_stage, new_position))

    db.commit()
    db.refresh(crush)
    return crush, previous_stage


def move_crush(
    db: Session, user_id: str, crush_id: str, new_stage: str, new_position: Optional[int] = None
) -> Tuple[Optional[Crush], Optional[str], List[Crush]]:
    """
    Drag-and-drop reorder in a single transaction

    Returns:
        (moved crush or None when not found, its previous stage, post-move snapshot)
    """
    snapshot = list_crushes(db, user_id)
    crush = next((c for c in snapshot if c.id == crush_id), None)
    if crush is None:
        return None, None, snapshot

    previous_stage = stage_of(crush)
    _apply_placement(snapshot, plan_move(snapshot, crush_id, new_stage, new_position))
    db.commit()

    for c in snapshot:
        db.refresh(c)
    return crush, previous_stage, snapshot


def delete_crush(db: Session, user_id: str, crush_id: str) -> bool:
    snapshot = list_crushes(db, user_id)
    crush = next((c for c in snapshot if c.id == crush_id), None)
    if crush is None:
        return False

    placement = plan_remove(snapshot, crush_id)
    _apply_placement([c for c in snapshot if c.id != crush_id], placement)
    db.delete(crush)
    db.commit()
    return True
