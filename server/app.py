# server/app.py
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os, logging, uuid, time

from api_models import (
    AdvancePickRequest, CanCancelOut, CreateDraftRequest, CreateTradeRequest,
    DraftOut, DraftPositionOut, DraftRoundOut, ErrorOut, ManagerSlotModel, MarkPickRequest,
    PickCursorOut, TradeAssetModel, TradeOut, TradePartyModel, UpdatePickStateRequest,
)
from data_loader import draft_board_frame
from draft_manager import DraftManager
from draft_models import (
    Draft, DraftPosition, ManagerSlot, PickCursor, Trade, TradeAsset, TradeParty, TradeStatus,
)
from draft_store import MemoryStore
from errors import (
    ConcurrencyConflictError, DraftEngineError, NotFoundError, StorageAcknowledgementError,
)
from trade_ledger import TradeLedger

DATA_DIR = os.getenv("DATA_DIR", "data")
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://127.0.0.1:5173,http://localhost:5173,http://localhost:8080").split(",")
    if o.strip()
]

# every DraftEngineError is rendered as ErrorOut
ERROR_RESPONSES = {status: {"model": ErrorOut} for status in (400, 404, 409, 503)}

app = FastAPI(title="Draft Pick Tracker", version="0.2.0", responses=ERROR_RESPONSES)
logger = logging.getLogger("uvicorn.error")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    rid = str(uuid.uuid4())[:8]
    start = time.perf_counter()
    response = None
    try:
        logger.info("REQ %s %s %s", rid, request.method, request.url.path)
        response = await call_next(request)
        return response
    finally:
        dur = time.perf_counter() - start
        logger.info("RES %s %s %.3fs %s", rid, request.url.path, dur, getattr(response, "status_code", "?"))


def _status_for(exc: DraftEngineError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConcurrencyConflictError):
        return 409
    if isinstance(exc, StorageAcknowledgementError):
        return 503
    return 400


@app.exception_handler(DraftEngineError)
async def draft_engine_error(request: Request, exc: DraftEngineError):
    status = _status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status, content=ErrorOut(**exc.to_dict()).model_dump())


_store = MemoryStore()
manager = DraftManager(store=_store, data_dir=DATA_DIR)
ledger = TradeLedger(manager)

def get_manager() -> DraftManager:
    return manager

def get_ledger() -> TradeLedger:
    return ledger

# ---- conversions -----------------------------------------------------

def to_cursor_out(c: PickCursor) -> PickCursorOut:
    return PickCursorOut(round=c.round, pick=c.pick, overall=c.overall)

def to_pick_out(p: DraftPosition) -> DraftPositionOut:
    return DraftPositionOut(
        manager_id=p.manager_id,
        pick_number=p.pick_number,
        overall_pick_number=p.overall_pick_number,
        is_complete=p.is_complete,
        player_id=p.player_id,
        traded_to=list(p.traded_to),
        current_owner=p.current_owner,
    )

def to_draft_out(d: Draft) -> DraftOut:
    return DraftOut(
        id=d.id,
        year=d.year,
        type=d.type,
        is_snake_draft=d.is_snake_draft,
        is_active=d.is_active,
        created_at=d.created_at,
        draft_order=[ManagerSlotModel(manager_id=s.manager_id, pick_number=s.pick_number) for s in d.draft_order],
        rounds=[DraftRoundOut(round_number=r.round_number, picks=[to_pick_out(p) for p in r.picks]) for r in d.rounds],
        current=to_cursor_out(d.current),
        active=to_cursor_out(d.active),
        version=d.version,
    )

def to_asset_model(a: TradeAsset) -> TradeAssetModel:
    return TradeAssetModel(
        type=a.type,
        draft_id=a.draft_id,
        overall_pick_number=a.overall_pick_number,
        pick_number=a.pick_number,
        round_number=a.round_number,
        player_id=a.player_id,
    )

def from_asset_model(m: TradeAssetModel) -> TradeAsset:
    return TradeAsset(
        type=m.type,
        draft_id=m.draft_id,
        overall_pick_number=m.overall_pick_number,
        pick_number=m.pick_number,
        round_number=m.round_number,
        player_id=m.player_id,
    )

def to_trade_out(t: Trade) -> TradeOut:
    return TradeOut(
        id=t.id,
        timestamp=t.timestamp,
        notes=t.notes,
        status=t.status,
        parties=[
            TradePartyModel(manager_id=p.manager_id, assets=[to_asset_model(a) for a in p.assets])
            for p in t.parties
        ],
        asset_distribution={
            receiver: {c: [to_asset_model(a) for a in assets] for c, assets in by_c.items()}
            for receiver, by_c in t.asset_distribution.items()
        },
    )

# ---- drafts ----------------------------------------------------------

@app.get("/health")
def health():
    return {"ok": True}

@app.get("/drafts", response_model=list[DraftOut])
def list_drafts(dm: DraftManager = Depends(get_manager)):
    return [to_draft_out(d) for d in dm.list_drafts()]

@app.post("/drafts", response_model=DraftOut)
def create_draft(req: CreateDraftRequest, dm: DraftManager = Depends(get_manager)):
    draft = dm.create_draft(
        year=req.year,
        type=req.type,
        is_snake_draft=req.is_snake_draft,
        initial_rounds=req.initial_rounds,
        draft_order=[ManagerSlot(s.manager_id, s.pick_number) for s in req.draft_order],
    )
    return to_draft_out(draft)

@app.get("/drafts/active", response_model=DraftOut)
def active_draft(dm: DraftManager = Depends(get_manager)):
    draft = dm.get_active_draft()
    if not draft:
        raise HTTPException(status_code=404, detail="no active draft")
    return to_draft_out(draft)

@app.get("/drafts/current-pick", response_model=DraftPositionOut | None)
def current_pick(dm: DraftManager = Depends(get_manager)):
    pick = dm.get_current_pick()
    return to_pick_out(pick) if pick else None

@app.post("/drafts/advance-pick", response_model=DraftOut)
def advance_pick(req: AdvancePickRequest, dm: DraftManager = Depends(get_manager)):
    return to_draft_out(dm.advance_pick(skip_completed=req.skip_completed))

@app.post("/drafts/active-pick", response_model=DraftOut)
def update_active_pick(req: UpdatePickStateRequest, dm: DraftManager = Depends(get_manager)):
    return to_draft_out(dm.update_pick_state(req.round, req.pick, req.overall_pick_number))

@app.get("/drafts/{draft_id}", response_model=DraftOut)
def get_draft(draft_id: str, dm: DraftManager = Depends(get_manager)):
    return to_draft_out(dm.require_draft(draft_id))

@app.delete("/drafts/{draft_id}")
def delete_draft(draft_id: str, dm: DraftManager = Depends(get_manager)):
    dm.delete_draft(draft_id)
    return {"ok": True}

@app.get("/drafts/{draft_id}/next-pick", response_model=DraftPositionOut | None)
def next_pick(draft_id: str, from_overall: int, skip_completed: bool = False, dm: DraftManager = Depends(get_manager)):
    pick = dm.get_next_pick(draft_id, from_overall, skip_completed)
    return to_pick_out(pick) if pick else None

@app.post("/drafts/{draft_id}/pick", response_model=DraftOut)
def mark_pick(draft_id: str, req: MarkPickRequest, dm: DraftManager = Depends(get_manager)):
    draft = dm.mark_pick_complete(draft_id, req.overall_pick_number, req.manager_id, req.player_id)
    # only move on when the pick just made was the one on the clock
    if req.advance and draft.is_active and draft.current.overall == req.overall_pick_number:
        if dm.get_next_pick(draft_id, draft.current.overall, skip_completed=True) is not None:
            draft = dm.advance_pick(skip_completed=True)
    return to_draft_out(draft)

@app.post("/drafts/{draft_id}/rounds", response_model=DraftOut)
def add_round(draft_id: str, dm: DraftManager = Depends(get_manager)):
    return to_draft_out(dm.add_round(draft_id))

@app.delete("/drafts/{draft_id}/rounds", response_model=DraftOut)
def remove_round(draft_id: str, dm: DraftManager = Depends(get_manager)):
    return to_draft_out(dm.remove_round(draft_id))

@app.post("/drafts/{draft_id}/reset", response_model=DraftOut)
def reset_draft(draft_id: str, tl: TradeLedger = Depends(get_ledger)):
    return to_draft_out(tl.reset_draft(draft_id))

@app.post("/drafts/{draft_id}/toggle-active", response_model=DraftOut)
def toggle_active(draft_id: str, dm: DraftManager = Depends(get_manager)):
    return to_draft_out(dm.toggle_active(draft_id))

@app.get("/drafts/{draft_id}/board")
def draftboard(draft_id: str, dm: DraftManager = Depends(get_manager)):
    board = draft_board_frame(dm.require_draft(draft_id))
    # NaN/None player ids -> null in JSON
    board = board.astype(object).where(board.notna(), None)
    return {"picks": board.to_dict(orient="records")}

@app.get("/drafts/{draft_id}/managers/{manager_id}/picks", response_model=list[DraftPositionOut])
def manager_picks(draft_id: str, manager_id: str, include_complete: bool = False, dm: DraftManager = Depends(get_manager)):
    return [to_pick_out(p) for p in dm.picks_owned_by(draft_id, manager_id, include_complete)]

# ---- trades ----------------------------------------------------------

@app.get("/trades", response_model=list[TradeOut])
def list_trades(status: TradeStatus | None = None, tl: TradeLedger = Depends(get_ledger)):
    return [to_trade_out(t) for t in tl.get_trades(status)]

@app.post("/trades", response_model=TradeOut)
def create_trade(req: CreateTradeRequest, tl: TradeLedger = Depends(get_ledger)):
    logger.info("Creating trade with %d parties", len(req.parties))
    trade = tl.create_trade(
        parties=[TradeParty(p.manager_id, [from_asset_model(a) for a in p.assets]) for p in req.parties],
        asset_distribution={
            receiver: {c: [from_asset_model(a) for a in assets] for c, assets in by_c.items()}
            for receiver, by_c in req.asset_distribution.items()
        },
        notes=req.notes,
    )
    return to_trade_out(trade)

@app.get("/trades/{trade_id}", response_model=TradeOut)
def get_trade(trade_id: str, tl: TradeLedger = Depends(get_ledger)):
    return to_trade_out(tl.get_trade(trade_id))

@app.get("/trades/{trade_id}/can-cancel", response_model=CanCancelOut)
def can_cancel(trade_id: str, tl: TradeLedger = Depends(get_ledger)):
    return CanCancelOut(trade_id=trade_id, can_cancel=tl.can_cancel(trade_id))

@app.post("/trades/{trade_id}/cancel", response_model=TradeOut)
def cancel_trade(trade_id: str, tl: TradeLedger = Depends(get_ledger)):
    return to_trade_out(tl.cancel_trade(trade_id))

@app.delete("/trades/{trade_id}")
def delete_trade(trade_id: str, tl: TradeLedger = Depends(get_ledger)):
    tl.delete_trade(trade_id)
    return {"ok": True}
