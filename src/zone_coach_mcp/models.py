"""Domain types and the SQLAlchemy table backing the persisted state."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import Column, Text, create_engine
from sqlalchemy.orm import Session as DbSession, declarative_base, sessionmaker

Base = declarative_base()


# ── Domain ───────────────────────────────────────────────────────────────────


class ActivityType(str, enum.Enum):
    RUN = "Run"
    LIFT = "Lift"
    SWIM = "Swim"
    BIKE = "Bike"
    CARDIO = "Cardio"


class Source(str, enum.Enum):
    MANUAL = "manual"
    EXTERNAL = "external"


ZONES = ("Z1", "Z2", "Z3", "Z4", "Z5")


@dataclass(frozen=True)
class Session:
    """One training session, manual or imported from a provider."""

    id: str
    date: date
    activity_type: ActivityType
    duration_min: float = 0.0
    z1_min: float = 0.0
    z2_min: float = 0.0
    z3_min: float = 0.0
    z4_min: float = 0.0
    z5_min: float = 0.0
    notes: str = ""
    source: Source = Source.MANUAL
    external_id: str | None = None

    @property
    def zone_min(self) -> tuple[float, float, float, float, float]:
        return (self.z1_min, self.z2_min, self.z3_min, self.z4_min, self.z5_min)

    @property
    def zoned_min(self) -> float:
        return sum(self.zone_min)

    @property
    def is_external(self) -> bool:
        return self.source is Source.EXTERNAL


@dataclass(frozen=True)
class ZoneThresholds:
    """Lower bounds (bpm) of zones 2-5.  Anything below z2_low is zone 1."""

    z2_low: float = 130
    z3_low: float = 150
    z4_low: float = 165
    z5_low: float = 180

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.z2_low, self.z3_low, self.z4_low, self.z5_low)


DEFAULT_THRESHOLDS = ZoneThresholds()


@dataclass(frozen=True)
class Connection:
    connected: bool = False
    athlete_name: str | None = None
    provider: str | None = None


@dataclass(frozen=True)
class TrainingState:
    """Everything the app persists: the selected week, sessions, zones, link status."""

    window_start: date
    sessions: tuple[Session, ...] = ()
    thresholds: ZoneThresholds = DEFAULT_THRESHOLDS
    connection: Connection = field(default_factory=Connection)


# ── Persistence ──────────────────────────────────────────────────────────────


class AppStateRow(Base):
    __tablename__ = "app_state"

    key = Column(Text, primary_key=True)
    payload = Column(Text, nullable=False)
    updated_at = Column(Text)


# ── DB helpers ───────────────────────────────────────────────────────────────


def init_db(db_path: str) -> DbSession:
    """Create tables and return a session."""
    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)()
