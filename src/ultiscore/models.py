"""Shared Pydantic models for the game state engine and its API."""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

Format = Literal["professional", "tournament", "recreational"]
GameStatus = Literal["upcoming", "live", "completed", "cancelled"]
Side = Literal["home", "away"]
EventType = Literal[
    "goal",
    "turnover",
    "timeout",
    "substitution",
    "penalty",
    "periodEnd",
    "gameStart",
    "gameEnd",
    "gameCancelled",
]
TurnoverType = Literal["drop", "throwaway", "block", "stall", "out-of-bounds", "other"]
Line = Literal["O", "D"]
Role = Literal["admin", "scorekeeper", "viewer"]


def other_side(side: str) -> str:
    """Return the opposing side."""
    return "away" if side == "home" else "home"


# ---------- Rule Configuration ----------

class CapRules(BaseModel):
    """Soft/hard time caps for tournament games (minutes)."""
    soft_cap_time: int = Field(gt=0)
    hard_cap_time: int = Field(gt=0)

    @model_validator(mode="after")
    def _soft_before_hard(self):
        if self.soft_cap_time > self.hard_cap_time:
            raise ValueError("soft_cap_time must not exceed hard_cap_time")
        return self


class _BaseRules(BaseModel):
    """Fields shared by every format."""
    stall_count: Literal[6, 7, 10] = 10
    timeouts_per_half: int = Field(default=2, ge=0)
    timeout_duration: int = Field(default=70, ge=0)  # seconds


class ProfessionalRules(_BaseRules):
    """Timed quarters; the game ends when regulation time expires."""
    format: Literal["professional"] = "professional"
    quarter_length: Optional[int] = Field(default=12, gt=0)  # minutes


class TournamentRules(_BaseRules):
    """Game to a target score, optionally capped."""
    format: Literal["tournament"] = "tournament"
    target_score: Optional[int] = Field(default=15, gt=0)
    cap_rules: Optional[CapRules] = None


class RecreationalRules(_BaseRules):
    """Timed halves; the game ends when time expires."""
    format: Literal["recreational"] = "recreational"
    half_length: Optional[int] = Field(default=25, gt=0)  # minutes


RuleConfig = Annotated[
    Union[ProfessionalRules, TournamentRules, RecreationalRules],
    Field(discriminator="format"),
]


def period_length_seconds(rules) -> int:
    """Clock value at the start of a period (0 for score-target formats)."""
    if rules.format == "professional" and rules.quarter_length:
        return rules.quarter_length * 60
    if rules.format == "recreational" and rules.half_length:
        return rules.half_length * 60
    return 0


# ---------- Game Models ----------

class FieldInfo(BaseModel):
    """Field geometry (yards)."""
    length: float
    width: float
    end_zone_depth: float
    surface: str


class Game(BaseModel):
    """A scheduled match and its rules."""
    game_id: str
    format: Format
    status: GameStatus = "upcoming"
    home_team_id: str
    away_team_id: str
    scheduled_start: int  # Unix ms
    actual_start: Optional[int] = None
    end_time: Optional[int] = None
    venue: str
    field_info: Optional[FieldInfo] = None
    rule_config: RuleConfig
    gender_ratio_required: bool = False


class TimeoutRecord(BaseModel):
    """Timeout currently in progress."""
    team: Side
    start_time: int  # Unix ms


class GenderRatio(BaseModel):
    """On-field gender counts for mixed division play."""
    male: int = Field(ge=0)
    female: int = Field(ge=0)


class LiveState(BaseModel):
    """Current mutable snapshot of a game."""
    game_id: str
    home_score: int = 0
    away_score: int = 0
    period: int = 1
    clock_seconds: int = 0
    clock_running: bool = False
    possession: Side = "home"
    point_started_with: Side = "home"
    home_timeouts_remaining: int = 0
    away_timeouts_remaining: int = 0
    timeout_active: Optional[TimeoutRecord] = None
    home_gender_ratio: Optional[GenderRatio] = None
    away_gender_ratio: Optional[GenderRatio] = None
    last_update_time: int
    last_updated_by: str
    version: int = 0


class Event(BaseModel):
    """Immutable play-by-play entry."""
    event_id: str
    game_id: str
    timestamp: int  # Unix ms
    clock_seconds: int
    period: int
    type: EventType
    # Goal
    scoring_team: Optional[Side] = None
    scored_by: Optional[str] = None
    assisted_by: Optional[str] = None
    hockey_assist_by: Optional[str] = None
    # Turnover
    turnover_type: Optional[TurnoverType] = None
    turnover_by: Optional[str] = None
    forced_by: Optional[str] = None
    # Timeout / substitution
    team: Optional[Side] = None
    player_in: Optional[str] = None
    player_out: Optional[str] = None
    line: Optional[Line] = None
    description: str
    recorded_by: str


# ---------- Team/Player/User Models ----------

class TeamColors(BaseModel):
    primary: str
    secondary: str


class Team(BaseModel):
    """Team record."""
    team_id: str
    name: str
    abbreviation: str
    colors: TeamColors
    logo: Optional[str] = None
    division: Optional[Literal["open", "womens", "mixed"]] = None


class Player(BaseModel):
    """Rostered player."""
    player_id: str
    first_name: str
    last_name: str
    jersey_number: int
    team_id: str
    position: Literal["handler", "cutter"]
    primary_line: Literal["O", "D", "both"]
    gender: Optional[Literal["M", "F"]] = None
    is_active: bool = True


class User(BaseModel):
    """Permission-bearing identity resolved from a bearer token."""
    user_id: str
    auth_subject: str
    email: str
    name: str
    role: Role = "viewer"
    can_manage_games: bool = False
    can_manage_teams: bool = False


class UserSummary(BaseModel):
    """Public view of a user, safe to embed in event listings."""
    user_id: str
    name: str
    role: Role = "viewer"


# ---------- Request Models ----------

class CreateGameRequest(BaseModel):
    """Request to create a game."""
    format: Format
    home_team_id: str
    away_team_id: str
    scheduled_start: int
    venue: str
    rule_config: RuleConfig
    field_info: Optional[FieldInfo] = None
    gender_ratio_required: bool = False


class UpdateRulesRequest(BaseModel):
    rule_config: RuleConfig


class UpdateStatusRequest(BaseModel):
    status: GameStatus


class RecordGoalRequest(BaseModel):
    """Request to record a goal."""
    team: Side
    scored_by: Optional[str] = None
    assisted_by: Optional[str] = None
    hockey_assist_by: Optional[str] = None


class UpdateClockRequest(BaseModel):
    clock_seconds: int
    clock_running: bool


class UpdatePossessionRequest(BaseModel):
    team: Side


class RecordTurnoverRequest(BaseModel):
    """Request to record a turnover."""
    turnover_type: TurnoverType
    turnover_by: Optional[str] = None
    forced_by: Optional[str] = None


class CallTimeoutRequest(BaseModel):
    team: Side


class RecordSubstitutionRequest(BaseModel):
    """Request to record a substitution."""
    team: Side
    player_in: Optional[str] = None
    player_out: Optional[str] = None
    line: Optional[Line] = None


class UpdateGenderRatioRequest(BaseModel):
    team: Side
    male: int = Field(ge=0)
    female: int = Field(ge=0)


class CreateTeamRequest(BaseModel):
    """Request to create or update a team."""
    name: str
    abbreviation: str
    colors: TeamColors
    logo: Optional[str] = None
    division: Optional[Literal["open", "womens", "mixed"]] = None


class CreatePlayerRequest(BaseModel):
    """Request to add a player to a team."""
    first_name: str
    last_name: str
    jersey_number: int = Field(ge=0)
    team_id: str
    position: Literal["handler", "cutter"]
    primary_line: Literal["O", "D", "both"] = "both"
    gender: Optional[Literal["M", "F"]] = None
    is_active: bool = True


class CreateUserRequest(BaseModel):
    """Request to register a user (first sign-in)."""
    auth_subject: str
    email: str
    name: str
    role: Optional[Role] = None


# ---------- Response Models ----------

class EventWithPlayers(Event):
    """Event hydrated with the referenced player and user records."""
    scored_by_player: Optional[Player] = None
    assisted_by_player: Optional[Player] = None
    recorded_by_user: Optional[UserSummary] = None


class GameDetail(Game):
    """Game with its teams and current state."""
    home_team: Optional[Team] = None
    away_team: Optional[Team] = None
    state: Optional[LiveState] = None
