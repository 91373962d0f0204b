from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from draft_models import TradeAssetType, TradeStatus


class ManagerSlotModel(BaseModel):
    manager_id: str = Field(..., min_length=1)
    pick_number: int = Field(..., ge=1)

class CreateDraftRequest(BaseModel):
    year: int
    type: str
    is_snake_draft: bool = True
    initial_rounds: int = Field(..., ge=1)
    # empty -> fall back to DATA_DIR/draft_order.csv
    draft_order: List[ManagerSlotModel] = Field(default_factory=list)

class UpdatePickStateRequest(BaseModel):
    round: int = Field(..., ge=1)
    pick: int = Field(..., ge=1)
    overall_pick_number: int = Field(..., ge=1)

class AdvancePickRequest(BaseModel):
    skip_completed: bool = False

class MarkPickRequest(BaseModel):
    overall_pick_number: int = Field(..., ge=1)
    manager_id: str
    player_id: str
    advance: bool = True          # move the current pick on afterwards

class TradeAssetModel(BaseModel):
    type: TradeAssetType
    draft_id: Optional[str] = None
    overall_pick_number: Optional[int] = None
    pick_number: Optional[int] = None
    round_number: Optional[int] = None
    player_id: Optional[str] = None

class TradePartyModel(BaseModel):
    manager_id: str
    assets: List[TradeAssetModel] = Field(default_factory=list)

class CreateTradeRequest(BaseModel):
    parties: List[TradePartyModel]
    # receiving manager -> contributing manager -> assets; optional for 2 parties
    asset_distribution: Dict[str, Dict[str, List[TradeAssetModel]]] = Field(default_factory=dict)
    notes: Optional[str] = None

class PickCursorOut(BaseModel):
    round: int
    pick: int
    overall: int

class DraftPositionOut(BaseModel):
    manager_id: str
    pick_number: int
    overall_pick_number: int
    is_complete: bool
    player_id: Optional[str]
    traded_to: List[str]
    current_owner: str

class DraftRoundOut(BaseModel):
    round_number: int
    picks: List[DraftPositionOut]

class DraftOut(BaseModel):
    id: str
    year: int
    type: str
    is_snake_draft: bool
    is_active: bool
    created_at: datetime
    draft_order: List[ManagerSlotModel]
    rounds: List[DraftRoundOut]
    current: PickCursorOut
    active: PickCursorOut
    version: int

class TradeOut(BaseModel):
    id: str
    timestamp: datetime
    notes: Optional[str]
    status: TradeStatus
    parties: List[TradePartyModel]
    asset_distribution: Dict[str, Dict[str, List[TradeAssetModel]]]

class CanCancelOut(BaseModel):
    trade_id: str
    can_cancel: bool

class ErrorOut(BaseModel):
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
