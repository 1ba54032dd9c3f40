from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings
from app.core.exceptions import InvalidArgument
from app.core.models import (
    Account,
    LedgerEntry,
    Room,
    RoomResult,
    RoomStatus,
    RoomSummary,
    WagerResult,
)
from app.core.services import LedgerServices

limiter = Limiter(key_func=get_remote_address)

router = APIRouter()

# ==================== Request Models ====================

class RegisterRequest(BaseModel):
    wallet_address: str
    username: Optional[str] = None

class BalanceDeltaRequest(BaseModel):
    wallet_address: str
    balance_change: int

class CreateRoomRequest(BaseModel):
    wallet_address: str
    stake: int

class UpdateRoomRequest(BaseModel):
    wallet_address: Optional[str] = None
    status: Optional[RoomStatus] = None
    winner: Optional[str] = None

class FlipRequest(BaseModel):
    wallet_address: str
    amount: int


# ==================== Helpers ====================

def get_services(request: Request) -> LedgerServices:
    """The service container owned by the running application."""
    return request.app.state.services

def require_wallet(wallet: Optional[str]) -> str:
    if not wallet:
        raise InvalidArgument("Wallet address is required", reason="wallet_required")
    return wallet

def get_game_rate_limit():
    """Get rate limit string for game actions from config."""
    return settings.rate_limit.game_requests if settings.rate_limit.enabled else "1000/minute"

def get_api_rate_limit():
    """Get rate limit string for general API calls from config."""
    return settings.rate_limit.api_requests if settings.rate_limit.enabled else "1000/minute"


# ==================== Health ====================

@router.get("/health")
async def health(services: LedgerServices = Depends(get_services)):
    return {"status": "ok", **services.db.get_stats()}


# ==================== Account Endpoints ====================

@router.get("/users", response_model=Account)
async def get_user(wallet: Optional[str] = None, services: LedgerServices = Depends(get_services)):
    """Get account by wallet address."""
    return services.accounts.get(require_wallet(wallet))

@router.post("/users", response_model=Account)
async def register_user(
    data: RegisterRequest,
    response: Response,
    services: LedgerServices = Depends(get_services),
):
    """Create the account on wallet connection, or update its display name."""
    account, created = services.accounts.register(data.wallet_address, data.username)
    response.status_code = 201 if created else 200
    return account

@router.patch("/users")
@limiter.limit(get_api_rate_limit)
async def update_balance(
    request: Request,
    data: BalanceDeltaRequest,
    services: LedgerServices = Depends(get_services),
):
    """Deposit (positive) or withdraw (negative) tokens."""
    change = services.accounts.apply_delta(data.wallet_address, data.balance_change)
    return {"success": True, **change.model_dump()}

@router.get("/users/balance")
async def get_balance(wallet: Optional[str] = None, services: LedgerServices = Depends(get_services)):
    identity = services.accounts.normalize_identity(require_wallet(wallet))
    return {"wallet_address": identity, "balance": services.lobby.get_balance(identity)}

@router.get("/users/transactions", response_model=List[LedgerEntry])
async def get_transactions(
    wallet: Optional[str] = None,
    limit: Optional[int] = None,
    services: LedgerServices = Depends(get_services),
):
    return services.accounts.get_transactions(require_wallet(wallet), limit)


# ==================== Room Endpoints ====================

@router.get("/rooms", response_model=List[RoomSummary])
async def list_rooms(services: LedgerServices = Depends(get_services)):
    """All active rooms, newest first."""
    return services.lobby.list_active_rooms()

@router.post("/rooms", response_model=Room, status_code=201)
@limiter.limit(get_game_rate_limit)
async def create_room(
    request: Request,
    data: CreateRoomRequest,
    services: LedgerServices = Depends(get_services),
):
    return services.rooms.create_room(data.wallet_address, data.stake)

@router.get("/rooms/{room_id}", response_model=RoomSummary)
async def get_room(room_id: str, services: LedgerServices = Depends(get_services)):
    return services.lobby.get_room(room_id)

@router.patch("/rooms/{room_id}")
@limiter.limit(get_game_rate_limit)
async def update_room(
    request: Request,
    room_id: str,
    data: UpdateRoomRequest,
    services: LedgerServices = Depends(get_services),
):
    """Join a room (wallet_address) or finish it (status/winner)."""
    if data.wallet_address:
        game = services.rooms.join_room(room_id, data.wallet_address)
        return {"message": "Joined room successfully", "game": game}

    room = services.rooms.update_room(room_id, status=data.status, winner_identity=data.winner)
    return {"message": "Room updated successfully", "room": room}

@router.delete("/rooms/{room_id}")
async def delete_room(room_id: str, services: LedgerServices = Depends(get_services)):
    deleted = services.rooms.delete_room(room_id)
    return {"deleted": deleted, "room_id": room_id}

@router.post("/rooms/{room_id}/flip", response_model=RoomResult)
@limiter.limit(get_game_rate_limit)
async def resolve_room(
    request: Request,
    room_id: str,
    services: LedgerServices = Depends(get_services),
):
    """Flip for a PLAYING room and settle the stake."""
    return services.coinflip.resolve_room(room_id)


# ==================== Game Endpoints ====================

@router.post("/game/flip", response_model=WagerResult)
@limiter.limit(get_game_rate_limit)
async def solo_flip(
    request: Request,
    data: FlipRequest,
    services: LedgerServices = Depends(get_services),
):
    """Flip against the house."""
    return services.coinflip.flip(data.wallet_address, data.amount)
