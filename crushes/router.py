from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy import orm
import logging

from config.database import get_db
from models import Profile
from profiles.deps import get_current_profile
from webhooks.events import publish_event
from webhooks.dispatcher import schedule_delivery
from . import crud
from .schema import (
    CrushCreate, CrushUpdate, CrushMove, CrushResponse,
    PipelineResponse, PipelineStats,
)
from .pipeline import compute_stats

router = APIRouter(tags=["Crushes"])
logger = logging.getLogger(__name__)


def _crush_payload(crush) -> dict:
    return CrushResponse.model_validate(crush).model_dump(mode="json")


@router.get("/crushes", response_model=PipelineResponse)
def get_crushes(profile: Profile = Depends(get_current_profile), db: orm.Session = Depends(get_db)):
    try:
        return crud.get_pipeline(db, profile.id)
    except Exception as e:
        logger.error(f"Error fetching crushes for {profile.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao carregar paqueras")


@router.get("/crushes/stats", response_model=PipelineStats)
def get_crush_stats(profile: Profile = Depends(get_current_profile), db: orm.Session = Depends(get_db)):
    return compute_stats(crud.list_crushes(db, profile.id))


@router.get("/crushes/{crush_id}", response_model=CrushResponse)
def get_crush(crush_id: str, profile: Profile = Depends(get_current_profile), db: orm.Session = Depends(get_db)):
    crush = crud.get_crush(db, profile.id, crush_id)
    if not crush:
        raise HTTPException(status_code=404, detail="Paquera não encontrada")
    return crush


@router.post("/crushes", status_code=201)
def add_crush(
    data: CrushCreate,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    try:
        crush = crud.create_crush(db, profile.id, data)
    except Exception as e:
        db.rollback()
        logger.error(f"Error adding crush for {profile.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao adicionar paquera")

    logger.info(f"Crush {crush.id} added to {crush.current_stage} by {profile.id}")
    publish_event("crush_added", {"crush": _crush_payload(crush)}, profile.id, profile.email)
    schedule_delivery(background_tasks)

    return {
        "message": "Nova paquera adicionada com sucesso!",
        "crush": CrushResponse.model_validate(crush),
    }


@router.patch("/crushes/{crush_id}", response_model=CrushResponse)
def patch_crush(
    crush_id: str,
    update: CrushUpdate,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    try:
        crush, previous_stage = crud.update_crush(db, profile.id, crush_id, update)
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating crush {crush_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao atualizar paquera")

    if crush is None:
        raise HTTPException(status_code=404, detail="Paquera não encontrada")

    publish_event(
        "crush_updated",
        {"crush": _crush_payload(crush), "updates": update.model_dump(mode="json", exclude_unset=True)},
        profile.id, profile.email
    )
    if crush.current_stage != previous_stage:
        publish_event(
            "stage_changed",
            {"crush_id": crush.id, "from_stage": previous_stage, "stage": crush.current_stage},
            profile.id, profile.email
        )
    schedule_delivery(background_tasks)
    return crush


@router.post("/crushes/{crush_id}/move", response_model=PipelineResponse)
def move_crush(
    crush_id: str,
    move: CrushMove,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    """Drag-and-drop: place a crush in a stage at a position and return the canonical pipeline"""
    try:
        crush, previous_stage, snapshot = crud.move_crush(
            db, profile.id, crush_id, move.new_stage.value, move.new_position
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Error moving crush {crush_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao atualizar posição")

    if crush is None:
        raise HTTPException(status_code=404, detail="Paquera não encontrada")

    publish_event(
        "crush_updated",
        {"crush": _crush_payload(crush), "updates": move.model_dump(mode="json")},
        profile.id, profile.email
    )
    if crush.current_stage != previous_stage:
        publish_event(
            "stage_changed",
            {"crush_id": crush.id, "from_stage": previous_stage, "stage": crush.current_stage},
            profile.id, profile.email
        )
    schedule_delivery(background_tasks)
    return crud.build_pipeline(snapshot)


@router.delete("/crushes/{crush_id}")
def remove_crush(
    crush_id: str,
    background_tasks: BackgroundTasks,
    profile: Profile = Depends(get_current_profile),
    db: orm.Session = Depends(get_db)
):
    try:
        deleted = crud.delete_crush(db, profile.id, crush_id)
    except Exception as e:
        db.rollback()
        logger.error(f"Error deleting crush {crush_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Erro ao remover paquera")

    if not deleted:
        raise HTTPException(status_code=404, detail="Paquera não encontrada")

    publish_event("crush_deleted", {"crush_id": crush_id}, profile.id, profile.email)
    schedule_delivery(background_tasks)
    return {"message": "Paquera removida com sucesso!", "crush_id": crush_id}
