from enum import Enum
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime


class Stage(str, Enum):
    """Fixed, ordered pipeline columns"""
    PRIMEIRO_CONTATO = "Primeiro Contato"
    CONVERSA_INICIAL = "Conversa Inicial"
    ENCONTRO = "Encontro"
    RELACIONAMENTO = "Relacionamento"


STAGE_ORDER: List[str] = [stage.value for stage in Stage]
DEFAULT_STAGE = Stage.PRIMEIRO_CONTATO.value
TERMINAL_STAGE = Stage.RELACIONAMENTO.value


class CrushCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    age: Optional[int] = Field(None, ge=0, le=120)
    current_stage: Stage = Stage.PRIMEIRO_CONTATO
    interest_level: int = Field(50, ge=0, le=100)
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    photo_delete_hash: Optional[str] = None
    last_interaction: Optional[datetime] = None


class CrushUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    age: Optional[int] = Field(None, ge=0, le=120)
    current_stage: Optional[Stage] = None
    interest_level: Optional[int] = Field(None, ge=0, le=100)
    position: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    photo_delete_hash: Optional[str] = None
    last_interaction: Optional[datetime] = None


class CrushMove(BaseModel):
    new_stage: Stage
    # Omitted: append to the end of the target stage
    new_position: Optional[int] = Field(None, ge=0)


class CrushResponse(BaseModel):
    id: str
    user_id: str
    name: str
    age: Optional[int] = None
    current_stage: Optional[str] = None
    interest_level: Optional[int] = None
    position: int
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    photo_delete_hash: Optional[str] = None
    last_interaction: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PipelineStats(BaseModel):
    total: int
    by_stage: Dict[str, int]
    success_rate: int


class PipelineResponse(BaseModel):
    crushes: List[CrushResponse]
    crushes_by_stage: Dict[str, List[CrushResponse]]
    stats: PipelineStats
