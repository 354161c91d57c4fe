# database.py - Edge engine persistence models
# Games (snapshot root), line capture / graded outcome, picks, analyst
# consensus tables and weakness predictions.

import functools
import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, date, timezone
from enum import Enum as PyEnum
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum, Float, ForeignKey, Index, Integer,
    String, Text, UniqueConstraint, create_engine,
)
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from core.errors import EngineError, NotFound, OperationResult

logger = logging.getLogger("database")

# SQLAlchemy setup
Base = declarative_base()
engine = None
SessionLocal = None
DB_ENABLED = False
DB_TYPE = "none"

SQLITE_FALLBACK_URL = "sqlite:///./local.db"


def utcnow() -> datetime:
    """Naive UTC timestamp (all DateTime columns store UTC without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def init_database(url: Optional[str] = None) -> bool:
    """Initialize database connection and create tables."""
    global engine, SessionLocal, DB_ENABLED, DB_TYPE

    if url is None:
        from env_config import Config
        url = Config.DATABASE_URL or SQLITE_FALLBACK_URL

    # Hosted Postgres URLs use postgres:// but SQLAlchemy needs postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)

    if url.startswith("sqlite"):
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory db
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        DB_TYPE = "sqlite"
        logger.info("Database: Using SQLite (%s)", url)
    else:
        engine = create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)
        DB_TYPE = "postgresql"
        logger.info("Database: Using PostgreSQL")

    try:
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
        Base.metadata.create_all(bind=engine)
        DB_ENABLED = True
        logger.info("Database initialized successfully")
        return True
    except Exception as e:
        logger.error("Database initialization failed: %s", e)
        DB_ENABLED = False
        return False


def reset_database() -> None:
    """Drop and recreate all tables (tests and local tooling only)."""
    if engine is None:
        raise EngineError("Database not initialized")
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@contextmanager
def get_db():
    """Get database session context manager."""
    if not DB_ENABLED or SessionLocal is None:
        yield None
        return

    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def uses_db(fn):
    """
    Run fn with the caller's session, or a fresh get_db() session when db is None.

    Decorated functions take ``db`` as a keyword argument.
    """
    @functools.wraps(fn)
    def wrapper(*args, db: Optional[Session] = None, **kwargs):
        if db is not None:
            return fn(*args, db=db, **kwargs)
        with get_db() as session:
            if session is None:
                raise EngineError("Database not initialized")
            return fn(*args, db=session, **kwargs)
    return wrapper


def get_database_status() -> Dict[str, Any]:
    return {"enabled": DB_ENABLED, "type": DB_TYPE}


# ============================================================================
# ENUMS
# ============================================================================

class GameStatus(PyEnum):
    """Ordered: a game only ever moves forward through these."""
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"

    @property
    def rank(self) -> int:
        return list(GameStatus).index(self)


class OutcomeStage(PyEnum):
    """GameResult lifecycle: lines captured once, then outcome computed once."""
    OPEN = "open"
    LINES_CAPTURED = "lines_captured"
    FINALIZED = "finalized"


class Lifecycle(PyEnum):
    UNSTARTED = "unstarted"
    FINALIZED = "finalized"


class SpreadResult(PyEnum):
    HOME_COVERED = "home_covered"
    AWAY_COVERED = "away_covered"
    PUSH = "push"


class TotalResult(PyEnum):
    OVER = "over"
    UNDER = "under"
    PUSH = "push"


class PickType(PyEnum):
    SPREAD = "spread"
    TOTAL = "total"
    MONEYLINE = "moneyline"


class PickStatus(PyEnum):
    DRAFT = "draft"
    PUBLISHED = "published"


class PickResult(PyEnum):
    """Result status for graded picks."""
    PENDING = "pending"
    WIN = "win"
    LOSS = "loss"
    PUSH = "push"


class PredictionState(PyEnum):
    DETECTED = "detected"
    EVALUATED = "evaluated"


PICK_SIDES = {
    PickType.SPREAD: ("home", "away"),
    PickType.MONEYLINE: ("home", "away"),
    PickType.TOTAL: ("over", "under"),
}


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _enum_value(value) -> Optional[str]:
    return value.value if value is not None else None


# ============================================================================
# DATABASE MODELS
# ============================================================================

@dataclass(frozen=True)
class GameSnapshot:
    """Read-only view of a Game handed to the scoring engine."""
    game_id: int
    external_id: Optional[str]
    game_date: Optional[datetime]
    home: str
    away: str
    home_spread: Optional[float]
    total_line: Optional[float]
    status: GameStatus
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    home_edge: Optional[str] = None
    away_edge: Optional[str] = None

    @property
    def has_final_score(self) -> bool:
        return self.status == GameStatus.FINISHED and self.home_score is not None and self.away_score is not None


class Game(Base):
    """A scheduled contest. Root entity for every other table."""
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(100), unique=True, nullable=True, index=True)
    game_date = Column(DateTime, nullable=False, index=True)  # scheduled start, UTC

    home_team = Column(String(10), nullable=False, index=True)
    away_team = Column(String(10), nullable=False, index=True)
    home_team_name = Column(String(100), nullable=True)
    away_team_name = Column(String(100), nullable=True)

    # Market lines at time of capture (home perspective spread)
    home_spread = Column(Float, nullable=True)
    total_line = Column(Float, nullable=True)

    # Schedule annotations, e.g. "B2B", "3in4", "REST-2"
    home_edge = Column(String(200), nullable=True)
    away_edge = Column(String(200), nullable=True)

    status = Column(Enum(GameStatus), default=GameStatus.SCHEDULED, nullable=False, index=True)
    home_score = Column(Integer, nullable=True)
    away_score = Column(Integer, nullable=True)
    scores_final_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    result = relationship("GameResult", uselist=False, back_populates="game")
    picks = relationship("Pick", back_populates="game")
    predictions = relationship("WeaknessPrediction", back_populates="game")

    @property
    def matchup(self) -> str:
        return f"{self.away_team} @ {self.home_team}"

    def to_snapshot(self) -> GameSnapshot:
        return GameSnapshot(
            game_id=self.id,
            external_id=self.external_id,
            game_date=self.game_date,
            home=self.home_team,
            away=self.away_team,
            home_spread=self.home_spread,
            total_line=self.total_line,
            status=self.status,
            home_score=self.home_score,
            away_score=self.away_score,
            home_edge=self.home_edge,
            away_edge=self.away_edge,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "game_date": _iso(self.game_date),
            "matchup": self.matchup,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "home_spread": self.home_spread,
            "total_line": self.total_line,
            "status": _enum_value(self.status),
            "home_score": self.home_score,
            "away_score": self.away_score,
        }


class GameResult(Base):
    """
    Line capture + graded outcome for one game.

    stage: OPEN -> LINES_CAPTURED -> FINALIZED. Each transition happens at
    most once; the *_at columns are audit timestamps, the guard is stage.
    """
    __tablename__ = "game_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id"), unique=True, nullable=False)

    opening_spread = Column(Float, nullable=True)
    closing_spread = Column(Float, nullable=True)
    opening_total = Column(Float, nullable=True)
    closing_total = Column(Float, nullable=True)
    lines_captured_at = Column(DateTime, nullable=True)

    home_score = Column(Integer, nullable=True)
    away_score = Column(Integer, nullable=True)
    margin = Column(Integer, nullable=True)
    spread_result = Column(Enum(SpreadResult), nullable=True)
    total_result = Column(Enum(TotalResult), nullable=True)
    spread_covered_home = Column(Boolean, nullable=True)
    total_over = Column(Boolean, nullable=True)
    result_captured_at = Column(DateTime, nullable=True)

    stage = Column(Enum(OutcomeStage), default=OutcomeStage.OPEN, nullable=False, index=True)

    game = relationship("Game", back_populates="result")

    @property
    def lines_captured(self) -> bool:
        return self.stage in (OutcomeStage.LINES_CAPTURED, OutcomeStage.FINALIZED)

    @property
    def finalized(self) -> bool:
        return self.stage == OutcomeStage.FINALIZED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "stage": _enum_value(self.stage),
            "opening_spread": self.opening_spread,
            "closing_spread": self.closing_spread,
            "opening_total": self.opening_total,
            "closing_total": self.closing_total,
            "lines_captured_at": _iso(self.lines_captured_at),
            "home_score": self.home_score,
            "away_score": self.away_score,
            "margin": self.margin,
            "spread_result": _enum_value(self.spread_result),
            "total_result": _enum_value(self.total_result),
            "result_captured_at": _iso(self.result_captured_at),
        }


class Pick(Base):
    """A directional recommendation (report) tied to one game."""
    __tablename__ = "picks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)

    pick_type = Column(Enum(PickType), nullable=False)
    pick_side = Column(String(10), nullable=False)  # home/away/over/under
    pick_line = Column(Float, nullable=True)
    stake = Column(Float, nullable=True)  # units, None = 1.0
    is_free = Column(Boolean, default=False)
    consensus_label = Column(String(50), nullable=True)
    edge_model = Column(String(20), nullable=True)
    edge_score = Column(Float, nullable=True)
    title = Column(String(200), nullable=True)

    status = Column(Enum(PickStatus), default=PickStatus.DRAFT, nullable=False, index=True)
    published_at = Column(DateTime, nullable=True)

    result = Column(Enum(PickResult), default=PickResult.PENDING, nullable=False, index=True)
    result_state = Column(Enum(Lifecycle), default=Lifecycle.UNSTARTED, nullable=False)
    result_recorded_at = Column(DateTime, nullable=True)
    result_note = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)

    game = relationship("Game", back_populates="picks")
    analyst_picks = relationship("AnalystPick", back_populates="pick")

    __table_args__ = (
        Index("ix_picks_status_result", "status", "result"),
    )

    @property
    def effective_stake(self) -> float:
        return self.stake if self.stake is not None else 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "game_id": self.game_id,
            "pick_type": _enum_value(self.pick_type),
            "pick_side": self.pick_side,
            "pick_line": self.pick_line,
            "stake": self.effective_stake,
            "is_free": bool(self.is_free),
            "consensus_label": self.consensus_label,
            "status": _enum_value(self.status),
            "published_at": _iso(self.published_at),
            "result": _enum_value(self.result),
            "result_recorded_at": _iso(self.result_recorded_at),
            "result_note": self.result_note,
        }


class AnalystPick(Base):
    """One analyst's directional call for a pick's game. Unique per (pick, analyst)."""
    __tablename__ = "analyst_picks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pick_id = Column(Integer, ForeignKey("picks.id"), nullable=False, index=True)
    analyst = Column(String(30), nullable=False, index=True)
    pick_side = Column(String(10), nullable=False)  # HOME / AWAY
    correct = Column(Boolean, nullable=True)
    evaluated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    pick = relationship("Pick", back_populates="analyst_picks")

    __table_args__ = (
        UniqueConstraint("pick_id", "analyst", name="uq_analyst_pick"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pick_id": self.pick_id,
            "analyst": self.analyst,
            "pick_side": self.pick_side,
            "correct": self.correct,
            "evaluated_at": _iso(self.evaluated_at),
        }


class AnalystWeight(Base):
    """Per-analyst calibration, mutated only by recalibration."""
    __tablename__ = "analyst_weights"

    id = Column(Integer, primary_key=True, autoincrement=True)
    analyst = Column(String(30), unique=True, nullable=False)
    accuracy = Column(Float, nullable=False)
    weight = Column(Float, nullable=False)
    signal_type = Column(String(20), nullable=False)
    sample_size = Column(Integer, default=0)
    last_backtest_date = Column(Date, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analyst": self.analyst,
            "accuracy": self.accuracy,
            "weight": self.weight,
            "signal_type": self.signal_type,
            "sample_size": self.sample_size,
            "last_backtest_date": _iso(self.last_backtest_date),
        }


class WeaknessPrediction(Base):
    """One (game, team, trigger_type) detection. DETECTED -> EVALUATED."""
    __tablename__ = "weakness_predictions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    team = Column(String(10), nullable=False, index=True)
    trigger_type = Column(String(30), nullable=False, index=True)
    trigger_detail = Column(String(200), nullable=True)
    confidence = Column(Float, nullable=False)
    predicted_outcome = Column(String(20), nullable=False)  # LOSS / UNDER / COVER_FAIL
    actual_outcome = Column(String(20), nullable=True)
    hit = Column(Boolean, nullable=True)
    source = Column(String(50), default="engine")
    triggered_at = Column(DateTime, default=utcnow)
    state = Column(Enum(PredictionState), default=PredictionState.DETECTED, nullable=False, index=True)
    evaluated_at = Column(DateTime, nullable=True)

    game = relationship("Game", back_populates="predictions")

    __table_args__ = (
        UniqueConstraint("game_id", "team", "trigger_type", name="uq_weakness_prediction"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "game_id": self.game_id,
            "team": self.team,
            "trigger_type": self.trigger_type,
            "trigger_detail": self.trigger_detail,
            "confidence": self.confidence,
            "predicted_outcome": self.predicted_outcome,
            "actual_outcome": self.actual_outcome,
            "hit": self.hit,
            "state": _enum_value(self.state),
            "triggered_at": _iso(self.triggered_at),
            "evaluated_at": _iso(self.evaluated_at),
        }


class CalibrationLog(Base):
    """Audit trail for weight and confidence recalibration runs."""
    __tablename__ = "calibration_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(30), nullable=False, index=True)  # analyst_weight / trigger_confidence
    subject = Column(String(50), nullable=False)
    before_json = Column(Text, nullable=True)
    after_json = Column(Text, nullable=False)
    sample_size = Column(Integer, default=0)
    window_start = Column(Date, nullable=True)
    window_end = Column(Date, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "subject": self.subject,
            "before": json.loads(self.before_json) if self.before_json else None,
            "after": json.loads(self.after_json),
            "sample_size": self.sample_size,
            "window_start": _iso(self.window_start),
            "window_end": _iso(self.window_end),
            "created_at": _iso(self.created_at),
        }


# ============================================================================
# HELPERS
# ============================================================================

def game_entity(game_id: int) -> str:
    return f"game:{game_id}"


def pick_entity(pick_id: int) -> str:
    return f"pick:{pick_id}"


def get_game(game_id: int, db: Session) -> Game:
    game = db.get(Game, game_id)
    if game is None:
        raise NotFound(game_entity(game_id))
    return game


def get_pick(pick_id: int, db: Session) -> Pick:
    pick = db.get(Pick, pick_id)
    if pick is None:
        raise NotFound(pick_entity(pick_id))
    return pick


def ensure_game_result(game: Game, db: Session) -> GameResult:
    if game.result is None:
        game.result = GameResult(game_id=game.id, stage=OutcomeStage.OPEN)
        db.add(game.result)
        db.flush()
    return game.result


def upsert_game(game_data: Dict[str, Any], db: Session = None) -> int:
    """
    Insert a game snapshot or refresh its pre-game fields (dedupe by external_id).

    Final scores and status are not touched here; see game_status.
    Opening lines are recorded the first time lines are seen.
    Returns the game id.
    """
    if db is None:
        with get_db() as db:
            if db is None:
                raise EngineError("Database not initialized")
            return _upsert_game_impl(game_data, db)
    return _upsert_game_impl(game_data, db)


def _upsert_game_impl(game_data: Dict[str, Any], db: Session) -> int:
    external_id = game_data.get("external_id")
    game = None
    if external_id:
        game = db.query(Game).filter(Game.external_id == external_id).first()

    game_date = game_data.get("game_date")
    if isinstance(game_date, str):
        game_date = datetime.fromisoformat(game_date.replace("Z", "+00:00"))
    if isinstance(game_date, datetime) and game_date.tzinfo is not None:
        game_date = game_date.astimezone(timezone.utc).replace(tzinfo=None)

    if game is None:
        game = Game(
            external_id=external_id,
            game_date=game_date,
            home_team=game_data["home_team"],
            away_team=game_data["away_team"],
            status=GameStatus.SCHEDULED,
        )
        db.add(game)

    # Lines are frozen once captured
    frozen = game.result is not None and game.result.lines_captured
    for key in ("home_team_name", "away_team_name", "home_edge", "away_edge"):
        if key in game_data:
            setattr(game, key, game_data[key])
    if game_date is not None:
        game.game_date = game_date
    if not frozen:
        for key in ("home_spread", "total_line"):
            if key in game_data:
                setattr(game, key, game_data[key])
    db.flush()

    if game.home_spread is not None or game.total_line is not None:
        result = ensure_game_result(game, db)
        if result.opening_spread is None and game.home_spread is not None:
            result.opening_spread = game.home_spread
        if result.opening_total is None and game.total_line is not None:
            result.opening_total = game.total_line
        db.flush()

    return game.id


def create_pick(
    game_id: int,
    pick_type: str,
    pick_side: str,
    pick_line: Optional[float] = None,
    stake: Optional[float] = None,
    is_free: bool = False,
    consensus_label: Optional[str] = None,
    title: Optional[str] = None,
    edge_model: Optional[str] = None,
    edge_score: Optional[float] = None,
    publish: bool = False,
    db: Session = None,
) -> int:
    """Create a draft (or published) pick for an existing game. Returns the pick id."""
    if db is None:
        with get_db() as db:
            if db is None:
                raise EngineError("Database not initialized")
            return _create_pick_impl(
                game_id, pick_type, pick_side, pick_line, stake, is_free,
                consensus_label, title, edge_model, edge_score, publish, db,
            )
    return _create_pick_impl(
        game_id, pick_type, pick_side, pick_line, stake, is_free,
        consensus_label, title, edge_model, edge_score, publish, db,
    )


def _create_pick_impl(
    game_id, pick_type, pick_side, pick_line, stake, is_free,
    consensus_label, title, edge_model, edge_score, publish, db: Session,
) -> int:
    game = get_game(game_id, db)
    try:
        kind = PickType(str(pick_type).lower())
    except ValueError:
        raise EngineError(f"Unsupported pick type {pick_type!r} for {game_entity(game_id)}")
    side = str(pick_side).lower()
    if side not in PICK_SIDES[kind]:
        raise EngineError(f"Side {pick_side!r} invalid for {kind.value} pick on {game_entity(game_id)}")
    if kind != PickType.MONEYLINE and pick_line is None:
        raise EngineError(f"{kind.value} pick on {game_entity(game_id)} needs a line")

    pick = Pick(
        game_id=game.id,
        pick_type=kind,
        pick_side=side,
        pick_line=pick_line,
        stake=stake,
        is_free=is_free,
        consensus_label=consensus_label,
        title=title or f"{game.matchup} {kind.value} {side}",
        edge_model=edge_model,
        edge_score=edge_score,
        status=PickStatus.PUBLISHED if publish else PickStatus.DRAFT,
        published_at=utcnow() if publish else None,
    )
    db.add(pick)
    db.flush()
    return pick.id


@uses_db
def publish_pick(pick_id: int, *, db: Session) -> OperationResult:
    """draft -> published, at most once."""
    pick = get_pick(pick_id, db)
    entity = pick_entity(pick_id)
    if pick.status == PickStatus.PUBLISHED:
        return OperationResult.already(entity, published_at=_iso(pick.published_at))
    pick.status = PickStatus.PUBLISHED
    pick.published_at = utcnow()
    db.flush()
    return OperationResult.done(entity, published_at=_iso(pick.published_at))


def get_graded_picks(
    since: Optional[date] = None,
    until: Optional[date] = None,
    published_only: bool = True,
    db: Session = None,
) -> List[Pick]:
    """Picks with a recorded result (win/loss/push), optionally by game date window."""
    if db is None:
        with get_db() as db:
            if db is None:
                return []
            return _get_graded_picks_impl(since, until, published_only, db)
    return _get_graded_picks_impl(since, until, published_only, db)


def _get_graded_picks_impl(since, until, published_only, db: Session) -> List[Pick]:
    query = db.query(Pick).join(Game).filter(Pick.result != PickResult.PENDING)
    if published_only:
        query = query.filter(Pick.status == PickStatus.PUBLISHED)
    if since is not None:
        query = query.filter(Game.game_date >= datetime.combine(since, datetime.min.time()))
    if until is not None:
        query = query.filter(Game.game_date <= datetime.combine(until, datetime.max.time()))
    picks = query.order_by(Game.game_date).all()
    for pick in picks:
        _ = pick.game  # load before the session closes
    return picks
