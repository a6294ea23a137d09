import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Header, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
import uvicorn

from ultiscore import auth, events, lifecycle, live, queries, teams
from ultiscore.config import AppConfig, print_config
from ultiscore.db import init_db as _init_db
from ultiscore.errors import NotFoundError, ScoreError
from ultiscore.models import (
    CallTimeoutRequest,
    CreateGameRequest,
    CreatePlayerRequest,
    CreateTeamRequest,
    CreateUserRequest,
    RecordGoalRequest,
    RecordSubstitutionRequest,
    RecordTurnoverRequest,
    UpdateClockRequest,
    UpdateGenderRatioRequest,
    UpdatePossessionRequest,
    UpdateRulesRequest,
    UpdateStatusRequest,
    User,
)
from ultiscore.schema import SCHEMA_VERSION

# Set up logger for this module
logger = logging.getLogger("ultiscore.app")

# ---------- SQLite setup ----------
DB_PATH = AppConfig.DB_PATH


def init_db():
    """Initialize app database."""
    _init_db(DB_PATH)


# ---------- Live subscriptions ----------
# game_id -> connected scoreboards
subscribers: dict[str, list[WebSocket]] = {}


async def broadcast_state(game_id: str):
    """Push the current snapshot of a game to everyone watching it."""
    clients = subscribers.get(game_id)
    if not clients:
        return

    try:
        state = queries.get_game_state(DB_PATH, game_id)
        data = json.dumps({"state": state.model_dump()})
    except NotFoundError:
        data = json.dumps({"state": None})

    dead = []
    for ws in clients:
        try:
            await ws.send_text(data)
        except (RuntimeError, WebSocketDisconnect):
            dead.append(ws)

    for ws in dead:
        clients.remove(ws)

    if dead:
        logger.debug(f"Removed {len(dead)} disconnected client(s) from {game_id}")


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info("Starting scorekeeping API...")
    init_db()

    # Log available endpoints
    logger.info("Available endpoints:")
    for route in app.routes:
        methods = getattr(route, "methods", None)
        path = getattr(route, "path", None)
        if methods and path:
            methods_str = ", ".join(sorted(methods - {"HEAD", "OPTIONS"}))
            if methods_str:  # Skip if only HEAD/OPTIONS
                logger.info(f"  {methods_str:20s} {path}")

    yield
    logger.info("Scorekeeping API shutting down")


app = FastAPI(
    title="Ultimate Live Scorekeeping API",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(ScoreError)
async def score_error_handler(request: Request, exc: ScoreError):
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def current_user(authorization: Optional[str] = Header(None)) -> Optional[User]:
    """Resolve the ``Authorization: Bearer <token>`` header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return auth.resolve_user(DB_PATH, token.strip())


# ---------- Health ----------
@app.get("/health")
async def health():
    return {"status": "ok", "schema_version": SCHEMA_VERSION}


# ---------- Games: lifecycle ----------
@app.post("/games", status_code=201)
async def create_game(request: CreateGameRequest, authorization: Optional[str] = Header(None)):
    game_id = lifecycle.create_game(DB_PATH, request, current_user(authorization))
    return {"status": "ok", "game_id": game_id}


@app.get("/games")
async def list_games(
    status: Optional[str] = Query(None, description="upcoming, live, completed or cancelled"),
    limit: Optional[int] = Query(None, ge=0),
):
    return {"games": [g.model_dump() for g in queries.list_games(DB_PATH, status, limit)]}


@app.get("/games/live")
async def get_live_games():
    return {"games": [g.model_dump() for g in queries.get_live_games(DB_PATH)]}


@app.get("/games/{game_id}")
async def get_game(game_id: str):
    return queries.get_game(DB_PATH, game_id).model_dump()


@app.delete("/games/{game_id}")
async def delete_game(game_id: str, authorization: Optional[str] = Header(None)):
    lifecycle.delete_game(DB_PATH, game_id, current_user(authorization))
    await broadcast_state(game_id)
    return {"status": "ok"}


@app.put("/games/{game_id}/rules")
async def update_game_rules(game_id: str, request: UpdateRulesRequest, authorization: Optional[str] = Header(None)):
    game = lifecycle.update_game_rules(DB_PATH, game_id, request.rule_config, current_user(authorization))
    await broadcast_state(game_id)
    return {"status": "ok", "rule_config": game.rule_config.model_dump()}


@app.post("/games/{game_id}/start")
async def start_game(game_id: str, authorization: Optional[str] = Header(None)):
    game = lifecycle.start_game(DB_PATH, game_id, current_user(authorization))
    await broadcast_state(game_id)
    return {"status": "ok", "game_status": game.status}


@app.post("/games/{game_id}/end")
async def end_game(game_id: str, authorization: Optional[str] = Header(None)):
    game = lifecycle.end_game(DB_PATH, game_id, current_user(authorization))
    await broadcast_state(game_id)
    return {"status": "ok", "game_status": game.status}


@app.post("/games/{game_id}/status")
async def update_game_status(game_id: str, request: UpdateStatusRequest, authorization: Optional[str] = Header(None)):
    game = lifecycle.update_game_status(DB_PATH, game_id, request.status, current_user(authorization))
    await broadcast_state(game_id)
    return {"status": "ok", "game_status": game.status}


# ---------- Games: scorekeeping ----------
@app.post("/games/{game_id}/goal")
async def record_goal(game_id: str, request: RecordGoalRequest, authorization: Optional[str] = Header(None)):
    result = live.record_goal(
        DB_PATH,
        game_id,
        request.team,
        current_user(authorization),
        scored_by=request.scored_by,
        assisted_by=request.assisted_by,
        hockey_assist_by=request.hockey_assist_by,
    )
    await broadcast_state(game_id)
    return {"status": "ok", **result}


@app.post("/games/{game_id}/clock")
async def update_clock(game_id: str, request: UpdateClockRequest, authorization: Optional[str] = Header(None)):
    state = live.update_clock(
        DB_PATH, game_id, request.clock_seconds, request.clock_running, current_user(authorization)
    )
    await broadcast_state(game_id)
    return {"status": "ok", "state": state.model_dump()}


@app.post("/games/{game_id}/possession")
async def update_possession(game_id: str, request: UpdatePossessionRequest, authorization: Optional[str] = Header(None)):
    state = live.update_possession(DB_PATH, game_id, request.team, current_user(authorization))
    await broadcast_state(game_id)
    return {"status": "ok", "possession": state.possession}


@app.post("/games/{game_id}/turnover")
async def record_turnover(game_id: str, request: RecordTurnoverRequest, authorization: Optional[str] = Header(None)):
    event = live.record_turnover(
        DB_PATH,
        game_id,
        request.turnover_type,
        current_user(authorization),
        turnover_by=request.turnover_by,
        forced_by=request.forced_by,
    )
    await broadcast_state(game_id)
    return {"status": "ok", "event_id": event.event_id}


@app.post("/games/{game_id}/timeout")
async def call_timeout(game_id: str, request: CallTimeoutRequest, authorization: Optional[str] = Header(None)):
    event = live.call_timeout(DB_PATH, game_id, request.team, current_user(authorization))
    await broadcast_state(game_id)
    return {"status": "ok", "event_id": event.event_id}


@app.post("/games/{game_id}/timeout/end")
async def end_timeout(game_id: str, authorization: Optional[str] = Header(None)):
    live.end_timeout(DB_PATH, game_id, current_user(authorization))
    await broadcast_state(game_id)
    return {"status": "ok"}


@app.post("/games/{game_id}/period")
async def advance_period(game_id: str, authorization: Optional[str] = Header(None)):
    state = live.advance_period(DB_PATH, game_id, current_user(authorization))
    await broadcast_state(game_id)
    return {"status": "ok", "period": state.period}


@app.post("/games/{game_id}/substitution")
async def record_substitution(game_id: str, request: RecordSubstitutionRequest, authorization: Optional[str] = Header(None)):
    event = live.record_substitution(
        DB_PATH,
        game_id,
        request.team,
        current_user(authorization),
        player_in=request.player_in,
        player_out=request.player_out,
        line=request.line,
    )
    return {"status": "ok", "event_id": event.event_id}


@app.post("/games/{game_id}/gender-ratio")
async def update_gender_ratio(game_id: str, request: UpdateGenderRatioRequest, authorization: Optional[str] = Header(None)):
    live.update_gender_ratio(
        DB_PATH, game_id, request.team, request.male, request.female, current_user(authorization)
    )
    await broadcast_state(game_id)
    return {"status": "ok"}


# ---------- Games: reads ----------
@app.get("/games/{game_id}/state")
async def get_game_state(game_id: str):
    return queries.get_game_state(DB_PATH, game_id).model_dump()


@app.get("/games/{game_id}/events")
async def get_game_events(game_id: str, limit: Optional[int] = Query(None, ge=0)):
    game_events = events.get_game_events(DB_PATH, game_id, limit)
    return {
        "game_id": game_id,
        "event_count": len(game_events),
        "events": [e.model_dump() for e in game_events],
    }


@app.get("/games/{game_id}/timeline")
async def get_score_timeline(game_id: str, limit: Optional[int] = Query(None, ge=0)):
    state = queries.get_game_state(DB_PATH, game_id)
    game_events = events.get_game_events(DB_PATH, game_id, limit)
    return {
        "game_id": game_id,
        "timeline": events.score_timeline(game_events, state.home_score, state.away_score),
    }


# ---------- Teams ----------
@app.post("/teams", status_code=201)
async def create_team(request: CreateTeamRequest, authorization: Optional[str] = Header(None)):
    team_id = teams.create_team(DB_PATH, request, current_user(authorization))
    return {"status": "ok", "team_id": team_id}


@app.get("/teams")
async def list_teams():
    return {"teams": [t.model_dump() for t in teams.list_teams(DB_PATH)]}


@app.get("/teams/{team_id}")
async def get_team(team_id: str):
    return teams.get_team(DB_PATH, team_id).model_dump()


@app.put("/teams/{team_id}")
async def update_team(team_id: str, request: CreateTeamRequest, authorization: Optional[str] = Header(None)):
    teams.update_team(DB_PATH, team_id, request, current_user(authorization))
    return {"status": "ok", "team_id": team_id}


@app.get("/teams/{team_id}/players")
async def get_team_players(team_id: str, active_only: bool = Query(False)):
    players = teams.get_team_players(DB_PATH, team_id, active_only)
    return {"players": [p.model_dump() for p in players]}


@app.post("/players", status_code=201)
async def create_player(request: CreatePlayerRequest, authorization: Optional[str] = Header(None)):
    player_id = teams.create_player(DB_PATH, request, current_user(authorization))
    return {"status": "ok", "player_id": player_id}


# ---------- Users ----------
@app.post("/users")
async def create_user(request: CreateUserRequest, authorization: Optional[str] = Header(None)):
    user_id = auth.create_user(DB_PATH, request, current_user(authorization))
    return {"status": "ok", "user_id": user_id}


# ---------- WebSocket ----------
@app.websocket("/ws/games/{game_id}")
async def websocket_game_state(ws: WebSocket, game_id: str):
    await ws.accept()
    try:
        state = queries.get_game_state(DB_PATH, game_id)
    except NotFoundError as e:
        await ws.send_text(json.dumps(e.to_dict()))
        await ws.close(code=4404)
        return

    clients = subscribers.setdefault(game_id, [])
    clients.append(ws)
    logger.info(f"WebSocket client connected to {game_id} (total: {len(clients)})")

    await ws.send_text(json.dumps({"state": state.model_dump()}))

    try:
        while True:
            # Scoreboards only listen; drain anything they send
            await ws.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        if ws in clients:
            clients.remove(ws)
        logger.info(f"WebSocket client disconnected from {game_id} (total: {len(clients)})")


def main():
    # Configure logging first - this will handle all log records
    from ultiscore.log import init_logging
    init_logging("api", color="dim cyan")

    if os.getenv("APP_PRINT_CONFIG"):
        print_config(AppConfig)

    logger.info("Starting scorekeeping API")
    logger.info(f"Starting web server on http://{AppConfig.HOST}:{AppConfig.PORT}")
    uvicorn.run(app, host=AppConfig.HOST, port=AppConfig.PORT, log_config=None)


# ---------- Run ----------
if __name__ == "__main__":
    main()
