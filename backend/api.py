"""
REST API for the Nordic football betting backend.
Thin wrappers around the service layer and persistence.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

# Ensure project root on path
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from backend import config
from backend.auth import create_access_token, decode_token
from backend.betting.diamonds import BOOST_OPTIONS, active_diamond_events
from backend.betting.limits import limits_for
from backend.betting.odds import odds_snapshot
from backend.derby import detect_derby
from backend.live_match_engine import LiveMatchEngine
from backend.middleware import install_middleware
from backend.models import MatchStatus, User
from backend.persistence import (
    LeagueRepository,
    MatchEventRepository,
    MatchRepository,
    NotificationRepository,
    OddsRepository,
    TeamRepository,
    TransactionRepository,
    UserRepository,
    get_connection,
    init_db,
)
from backend.rate_limiter import RateLimiter
from backend.services import (
    AccountService,
    AchievementService,
    BettingService,
    CashOutValueChangedError,
    ChallengeService,
    DailyBonusAlreadyClaimedError,
    DailyLoginService,
    ForbiddenError,
    LiveBettingService,
    NotFoundError,
    leaderboard,
    stake_usage,
)

logger = logging.getLogger(__name__)


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


engine = LiveMatchEngine()
rate_limiter = RateLimiter()


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db(seed=config.SEED_ON_STARTUP)
    logger.info("Database ready, live engine idle")
    yield
    engine.stop_all()


# ---------- FastAPI app ----------
app = FastAPI(
    title="Nordic Football Betting API",
    description="Free-to-play betting on Finnish and Swedish football with live matches",
    version="0.1.0",
    lifespan=lifespan,
)
install_middleware(app, rate_limiter)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

security = HTTPBearer(auto_error=False)


# ---------- Request models ----------


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=128)
    email: str | None = Field(None, max_length=200)


class LoginRequest(BaseModel):
    username: str
    password: str


class LiveBetRequest(BaseModel):
    match_id: str
    market: str = Field(..., description="match_result, total_goals, next_goal or btts")
    selection: str
    odds: int = Field(..., ge=101, description="Odds in hundredths, 250 == 2.50")
    stake: int = Field(..., gt=0)
    enhanced_odds: int | None = Field(None, ge=101)


class CashOutRequest(BaseModel):
    confirm_value: int | None = Field(None, description="Value the user accepted; rejected if it moved more than 5%")


class SelectionIn(BaseModel):
    match_id: str
    market: str = Field(..., description="MATCH_RESULT, OVER_UNDER_25, BTTS, DOUBLE_CHANCE or CORRECT_SCORE")
    selection: str


class PlaceBetRequest(BaseModel):
    bet_type: str = Field("PITKAVETO", description="SINGLE or PITKAVETO")
    stake: int = Field(..., gt=0)
    selections: list[SelectionIn] = Field(..., min_length=1)
    diamond_boost: str | None = Field(None, description="SMALL, MEDIUM or LARGE")


class PreviewBetRequest(BaseModel):
    bet_type: str = "PITKAVETO"
    stake: int | None = Field(None, gt=0)
    selections: list[SelectionIn] = Field(..., min_length=1)
    diamond_boost: str | None = None


class ClaimChallengeRequest(BaseModel):
    challenge_id: str


class StartLiveRequest(BaseModel):
    seed: int | None = Field(None, description="RNG seed for a reproducible match")


class StartEngineRequest(BaseModel):
    limit: int = Field(3, ge=1, le=10)


# ---------- Auth dependencies ----------


def get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> User:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user_id = decode_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    with db_conn() as conn:
        user = UserRepository().get(conn, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User no longer exists")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def _http_error(e: ValueError) -> HTTPException:
    """Map a service-layer error to an HTTPException."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ForbiddenError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, CashOutValueChangedError):
        return HTTPException(status_code=409, detail={"message": str(e), "current_value": e.current_value})
    if isinstance(e, DailyBonusAlreadyClaimedError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


# ---------- Health ----------


@app.get("/api/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "time": datetime.now(timezone.utc).isoformat(),
        "live_matches": engine.active_matches(),
    }


# ---------- Auth ----------


@app.post("/api/auth/register")
def register(req: RegisterRequest) -> dict[str, Any]:
    """Create an account with starting bet points and diamonds. Returns a JWT."""
    with db_conn() as conn:
        try:
            user = AccountService().register(conn, req.username, req.password, req.email)
        except ValueError as e:
            raise _http_error(e) from e
    return {"user": user.to_dict(), "token": create_access_token(user.id, user.role)}


@app.post("/api/auth/login")
def login(req: LoginRequest) -> dict[str, Any]:
    with db_conn() as conn:
        user = AccountService().authenticate(conn, req.username, req.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return {"user": user.to_dict(), "token": create_access_token(user.id, user.role)}


@app.get("/api/auth/me")
def me(user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        usage = stake_usage(conn, user.id, datetime.now(timezone.utc))
    return {
        "user": user.to_dict(),
        "limits": limits_for(user.level, user.vip_status, user.role).to_dict(),
        "usage": usage,
    }


# ---------- Currency ----------


@app.get("/api/currency/balance")
def balance(user: User = Depends(get_current_user)) -> dict[str, Any]:
    return {
        "bet_points": user.bet_points,
        "diamonds": user.diamonds,
        "level": user.level,
        "xp": user.xp,
        "diamond_events": active_diamond_events(datetime.now(timezone.utc)),
        "boost_options": {
            k.value: {"cost": v.cost, "multiplier": v.multiplier} for k, v in BOOST_OPTIONS.items()
        },
    }


@app.get("/api/currency/transactions")
def transactions(
    currency: str | None = Query(default=None, description="BETPOINTS or DIAMONDS"),
    limit: int = Query(default=50, ge=1, le=200),
    user: User = Depends(get_current_user),
) -> dict[str, Any]:
    if currency and currency not in ("BETPOINTS", "DIAMONDS"):
        raise HTTPException(status_code=400, detail="currency must be BETPOINTS or DIAMONDS")
    with db_conn() as conn:
        rows = TransactionRepository().list_by_user(conn, user.id, currency=currency, limit=limit)
    return {"transactions": [t.to_dict() for t in rows]}


@app.get("/api/daily-bonus")
def daily_bonus_status(user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        return DailyLoginService().status(conn, user.id)


@app.post("/api/daily-bonus")
def claim_daily_bonus(user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            return DailyLoginService().claim(conn, user.id)
        except ValueError as e:
            raise _http_error(e) from e


@app.get("/api/challenges")
def daily_challenges(user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            return {"daily": ChallengeService().daily_challenges(conn, user.id)}
        except ValueError as e:
            raise _http_error(e) from e


@app.post("/api/challenges/claim")
def claim_challenge(req: ClaimChallengeRequest, user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            return ChallengeService().claim(conn, user.id, req.challenge_id)
        except ValueError as e:
            raise _http_error(e) from e


@app.get("/api/achievements")
def achievements(user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        return {"achievements": AchievementService().list_for_user(conn, user.id)}


@app.post("/api/achievements/{achievement_id}/claim")
def claim_achievement(achievement_id: str, user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            return AchievementService().claim(conn, user.id, achievement_id)
        except ValueError as e:
            raise _http_error(e) from e


@app.get("/api/notifications")
def notifications(
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(get_current_user),
) -> dict[str, Any]:
    with db_conn() as conn:
        rows = NotificationRepository().list_by_user(conn, user.id, limit=limit)
    return {"notifications": [n.to_dict() for n in rows]}


# ---------- Leagues and matches ----------


@app.get("/api/leagues")
def list_leagues() -> dict[str, Any]:
    with db_conn() as conn:
        return {"leagues": [lg.to_dict() for lg in LeagueRepository().list_all(conn)]}


@app.get("/api/leagues/{league_id}/teams")
def league_teams(league_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        league = LeagueRepository().get(conn, league_id)
        if league is None:
            raise HTTPException(status_code=404, detail="League not found")
        teams = TeamRepository().list_by_league(conn, league_id)
    return {"league": league.to_dict(), "teams": [t.to_dict() for t in teams]}


@app.get("/api/matches")
def list_matches(
    status: str | None = Query(default=None, description="SCHEDULED, LIVE or FINISHED"),
    league_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
) -> dict[str, Any]:
    if status and status not in {s.value for s in MatchStatus}:
        raise HTTPException(status_code=400, detail="status must be SCHEDULED, LIVE or FINISHED")
    with db_conn() as conn:
        matches = MatchRepository().list(conn, status=status, league_id=league_id, limit=limit)
        odds_repo = OddsRepository()
        out = []
        for m in matches:
            d = m.to_dict()
            odds = odds_repo.get(conn, m.id)
            d["odds"] = odds.to_dict() if odds else None
            out.append(d)
    return {"matches": out}


@app.get("/api/matches/{match_id}")
def get_match(match_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        m = MatchRepository().get(conn, match_id)
        if m is None:
            raise HTTPException(status_code=404, detail="Match not found")
        odds = OddsRepository().get(conn, match_id)
        events = MatchEventRepository().list_for_match(conn, match_id)
    derby = detect_derby(m.home_team_name, m.away_team_name)
    return {
        **m.to_dict(),
        "odds": odds.to_dict() if odds else None,
        "events": [e.to_dict() for e in events],
        "derby": derby.to_dict() if derby else None,
        "is_running": engine.is_running(match_id),
    }


@app.get("/api/derbies")
def upcoming_derbies(limit: int = Query(default=20, ge=1, le=100)) -> dict[str, Any]:
    with db_conn() as conn:
        matches = MatchRepository().list(conn, status=MatchStatus.SCHEDULED.value, limit=500)
    out = []
    for m in matches:
        derby = detect_derby(m.home_team_name, m.away_team_name)
        if derby:
            out.append({**m.to_dict(), "derby": derby.to_dict()})
        if len(out) >= limit:
            break
    return {"derbies": out}


# ---------- Live betting ----------


@app.get("/api/live-betting/matches")
def live_matches() -> dict[str, Any]:
    with db_conn() as conn:
        matches = MatchRepository().list(conn, status=MatchStatus.LIVE.value, limit=100)
        odds_repo = OddsRepository()
        out = []
        for m in matches:
            d = m.to_dict()
            d["odds"] = odds_snapshot(odds_repo.get(conn, m.id), m.home_score, m.away_score, m.minute, m.is_derby)
            out.append(d)
    return {"matches": out}


@app.get("/api/live-betting/odds/{match_id}")
def live_odds(match_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        m = MatchRepository().get(conn, match_id)
        if m is None:
            raise HTTPException(status_code=404, detail="Match not found")
        odds = OddsRepository().get(conn, match_id)
    return {
        "match": m.to_dict(),
        "odds": odds_snapshot(odds, m.home_score, m.away_score, m.minute, m.is_derby),
    }


@app.post("/api/live-betting/place-bet")
def place_live_bet(req: LiveBetRequest, user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            bet, new_balance = LiveBettingService().place_live_bet(
                conn, user.id, req.match_id, req.market, req.selection, req.odds, req.stake,
                enhanced_odds=req.enhanced_odds,
            )
        except ValueError as e:
            raise _http_error(e) from e
    return {"bet": bet.to_dict(), "new_balance": new_balance}


@app.get("/api/live-betting/user-bets")
def live_user_bets(
    status: str | None = Query(default=None, description="PENDING, WON, LOST, CASHED_OUT or VOID"),
    user: User = Depends(get_current_user),
) -> dict[str, Any]:
    with db_conn() as conn:
        return {"bets": LiveBettingService().list_user_bets(conn, user.id, status=status)}


@app.get("/api/live-betting/cash-out")
def all_cash_out_values(user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        return {"bets": LiveBettingService().list_cash_out_values(conn, user.id)}


@app.get("/api/live-betting/cash-out/{bet_id}")
def cash_out_quote(bet_id: str, user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            return LiveBettingService().quote_cash_out(conn, user.id, bet_id)
        except ValueError as e:
            raise _http_error(e) from e


@app.post("/api/live-betting/cash-out/{bet_id}")
def execute_cash_out(
    bet_id: str,
    req: CashOutRequest | None = None,
    user: User = Depends(get_current_user),
) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            return LiveBettingService().execute_cash_out(
                conn, user.id, bet_id, confirm_value=req.confirm_value if req else None
            )
        except ValueError as e:
            raise _http_error(e) from e


@app.post("/api/live-betting/start-engine")
async def start_engine(req: StartEngineRequest | None = None, user: User = Depends(get_current_user)) -> dict[str, Any]:
    """Start the next scheduled fixtures live so there is something to bet on."""
    started = engine.start_test_matches(limit=req.limit if req else 3)
    return {"started": started, "live_matches": engine.active_matches()}


# ---------- Pre-match bets ----------


@app.post("/api/bets/preview")
def preview_bet(req: PreviewBetRequest) -> dict[str, Any]:
    """Price a slip without placing it."""
    with db_conn() as conn:
        try:
            priced, price = BettingService().price_slip(
                conn, req.bet_type, [s.model_dump() for s in req.selections], req.diamond_boost
            )
        except ValueError as e:
            raise _http_error(e) from e
    out = {"selections": [p.to_dict() for p in priced], **price.to_dict()}
    if req.stake:
        out["potential_win"] = round(req.stake * price.total_odds / 100)
    return out


@app.post("/api/bets/place")
def place_bet(req: PlaceBetRequest, user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            bet, price = BettingService().place_bet(
                conn, user.id, req.bet_type, req.stake,
                [s.model_dump() for s in req.selections], req.diamond_boost,
            )
        except ValueError as e:
            raise _http_error(e) from e
        new_balance = UserRepository().get(conn, user.id)
    return {
        "bet": bet.to_dict(),
        "pricing": price.to_dict(),
        "new_balance": new_balance.bet_points if new_balance else None,
    }


@app.get("/api/bets/history")
def bet_history(
    status: str | None = None,
    bet_type: str | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(get_current_user),
) -> dict[str, Any]:
    with db_conn() as conn:
        bets = BettingService().history(conn, user.id, status=status, bet_type=bet_type, limit=limit, offset=offset)
    return {"bets": [b.to_dict() for b in bets], "limit": limit, "offset": offset}


@app.get("/api/bets/pitkaveto/stats")
def pitkaveto_stats(user: User = Depends(get_current_user)) -> dict[str, Any]:
    with db_conn() as conn:
        return BettingService().pitkaveto_stats(conn, user.id)


@app.post("/api/bets/{bet_id}/settle")
def settle_bet(bet_id: str, user: User = Depends(get_current_user)) -> dict[str, Any]:
    """Settle one of the caller's bets if all its matches have finished."""
    service = BettingService()
    with db_conn() as conn:
        try:
            bet = service.get_user_bet(conn, user.id, bet_id)
            bet = service.settle_bet(conn, bet.id)
        except ValueError as e:
            raise _http_error(e) from e
    return {"bet": bet.to_dict()}


# ---------- Leaderboard ----------


@app.get("/api/leaderboard")
def get_leaderboard(
    board: str = Query(default="level", description="level, xp, wins, winnings, betpoints, diamonds or streak"),
    limit: int = Query(default=10, ge=1, le=100),
) -> dict[str, Any]:
    with db_conn() as conn:
        try:
            return {"board": board, "entries": leaderboard(conn, board, limit)}
        except ValueError as e:
            raise _http_error(e) from e


# ---------- Admin ----------


@app.get("/api/admin/live-matches")
def admin_live_matches(admin: User = Depends(require_admin)) -> dict[str, Any]:
    return {"running": engine.active_matches()}


@app.post("/api/admin/live-matches/{match_id}/start")
async def admin_start_match(
    match_id: str,
    req: StartLiveRequest | None = None,
    admin: User = Depends(require_admin),
) -> dict[str, Any]:
    try:
        engine.start_match(match_id, seed=req.seed if req else None)
    except ValueError as e:
        raise _http_error(e) from e
    return {"match_id": match_id, "status": MatchStatus.LIVE.value, "started": True}


@app.post("/api/admin/live-matches/{match_id}/stop")
async def admin_stop_match(match_id: str, admin: User = Depends(require_admin)) -> dict[str, Any]:
    return {"match_id": match_id, "stopped": await engine.cancel_match(match_id)}


@app.post("/api/admin/live-matches/{match_id}/fast-forward")
async def admin_fast_forward(
    match_id: str,
    req: StartLiveRequest | None = None,
    admin: User = Depends(require_admin),
) -> dict[str, Any]:
    """Play the rest of a match instantly and settle its bets."""
    try:
        return await engine.fast_forward(match_id, seed=req.seed if req else None)
    except ValueError as e:
        raise _http_error(e) from e


@app.post("/api/admin/bets/settle")
def admin_settle_all(admin: User = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return BettingService().settle_all_pending(conn)


# ---------- WebSocket ----------


@app.websocket("/ws/live/{match_id}")
async def websocket_live_match(websocket: WebSocket, match_id: str):
    """
    Subscribe to live updates for a match. Server pushes { type: "live_update", minute, home_score,
    away_score, events, odds, finished }. On connect the current state is sent immediately.
    """
    await websocket.accept()
    engine.subscribe(websocket.send_json, match_id)
    try:
        with db_conn() as conn:
            m = MatchRepository().get(conn, match_id)
            odds = OddsRepository().get(conn, match_id) if m else None
        if m is None:
            await websocket.send_json({"type": "error", "detail": "Match not found"})
            return
        await websocket.send_json({
            "type": "live_update",
            "match_id": m.id,
            "status": m.status,
            "minute": m.minute,
            "home_team": m.home_team_name,
            "away_team": m.away_team_name,
            "home_score": m.home_score,
            "away_score": m.away_score,
            "events": [],
            "odds": odds_snapshot(odds, m.home_score, m.away_score, m.minute, m.is_derby),
            "finished": m.status == MatchStatus.FINISHED.value,
        })
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        engine.unsubscribe(websocket.send_json, match_id)


# ---------- Run with: uvicorn backend.api:app --reload ----------
