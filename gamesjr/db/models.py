from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Float, ForeignKey, UniqueConstraint, create_engine
from sqlalchemy.orm import relationship, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from datetime import datetime, timezone
import uuid
from gamesjr.config import DATABASE_URL

# Create a base class for declarative class definitions
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, comparable with values read back from any backend."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class SubmissionStatus:
    """Lifecycle states of a user-submitted game."""
    PENDING = "pending"
    BUILDING = "building"
    REVIEW = "review"
    APPROVED = "approved"
    REJECTED = "rejected"
    LIVE = "live"

    ALL = (PENDING, BUILDING, REVIEW, APPROVED, REJECTED, LIVE)


class SessionMode:
    PRACTICE = "PRACTICE"
    CHALLENGE = "CHALLENGE"
    BOSS = "BOSS"

    ALL = (PRACTICE, CHALLENGE, BOSS)


class GameSubmission(Base):
    """SQLAlchemy model for games proposed through "Make your game"."""
    __tablename__ = "game_submissions"

    id = Column(String(36), primary_key=True, default=new_id)
    game_slug = Column(String(100), nullable=False, index=True)
    game_title = Column(String(200), nullable=False)
    game_description = Column(Text, nullable=True)
    game_type = Column(String(50), nullable=True)
    creator_name = Column(String(100), nullable=True)
    creator_email = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default=SubmissionStatus.PENDING, index=True)
    generated_code = Column(Text, nullable=True)  # Full HTML document of the game
    approved_by = Column(String(255), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)
    live_url = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self, include_code: bool = True) -> dict:
        data = {
            "id": self.id,
            "gameSlug": self.game_slug,
            "gameTitle": self.game_title,
            "gameDescription": self.game_description,
            "gameType": self.game_type,
            "creatorName": self.creator_name,
            "creatorEmail": self.creator_email,
            "status": self.status,
            "approvedBy": self.approved_by,
            "approvedAt": self.approved_at.isoformat() if self.approved_at else None,
            "reviewNotes": self.review_notes,
            "liveUrl": self.live_url,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_code:
            data["generatedCode"] = self.generated_code
        return data


class TablesUser(Base):
    """SQLAlchemy model for times-tables learners (and their grown-ups)."""
    __tablename__ = "tables_users"

    id = Column(String(100), primary_key=True)
    role = Column(String(20), nullable=False, default="STUDENT")  # 'STUDENT', 'TEACHER', 'PARENT'
    display_name = Column(String(100), nullable=True)
    org_id = Column(String(100), nullable=True)
    ai_allowed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Fact(Base):
    """SQLAlchemy model for a single multiplication fact (a x b)."""
    __tablename__ = "facts"
    __table_args__ = (UniqueConstraint("a", "b", "op", name="uq_facts_a_b_op"),)

    id = Column(String(36), primary_key=True, default=new_id)
    a = Column(Integer, nullable=False)
    b = Column(Integer, nullable=False)
    op = Column(String(2), nullable=False, default="*")


class UserFact(Base):
    """SQLAlchemy model for a learner's mastery state of one fact."""
    __tablename__ = "user_facts"
    __table_args__ = (UniqueConstraint("user_id", "fact_id", name="uq_user_facts_user_fact"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(100), ForeignKey("tables_users.id", ondelete="CASCADE"), nullable=False, index=True)
    fact_id = Column(String(36), ForeignKey("facts.id", ondelete="CASCADE"), nullable=False, index=True)
    mastery_level = Column(Integer, nullable=False, default=0)  # 0-5
    streak = Column(Integer, nullable=False, default=0)
    easiness = Column(Float, nullable=False, default=2.5)
    interval_days = Column(Float, nullable=False, default=0)
    due_at = Column(DateTime, nullable=False, index=True)
    last_latency_ms = Column(Integer, nullable=True)
    last_accuracy = Column(Float, nullable=True)

    # Relationships
    fact = relationship("Fact")


class Session(Base):
    """SQLAlchemy model for a practice / challenge / boss session."""
    __tablename__ = "tables_sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(100), ForeignKey("tables_users.id", ondelete="CASCADE"), nullable=False, index=True)
    mode = Column(String(20), nullable=False, default=SessionMode.PRACTICE)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    ended_at = Column(DateTime, nullable=True)

    # Relationships
    attempts = relationship("Attempt", back_populates="session", cascade="all, delete-orphan")


class Attempt(Base):
    """SQLAlchemy model for a single answered fact."""
    __tablename__ = "tables_attempts"

    id = Column(Integer, primary_key=True)
    session_id = Column(String(36), ForeignKey("tables_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    fact_id = Column(String(36), ForeignKey("facts.id", ondelete="CASCADE"), nullable=False, index=True)
    correct = Column(Boolean, nullable=False)
    latency_ms = Column(Integer, nullable=False, default=0)
    hint_used = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    session = relationship("Session", back_populates="attempts")


_engine = None


def get_engine():
    """Get the shared SQLAlchemy engine instance."""
    global _engine
    if _engine is None:
        if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
            # In-memory SQLite must share one connection across threads
            _engine = create_engine(
                DATABASE_URL,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        elif DATABASE_URL.startswith("sqlite"):
            _engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
        else:
            _engine = create_engine(DATABASE_URL, pool_pre_ping=True)
    return _engine


def get_session():
    """Get a SQLAlchemy session."""
    SessionLocal = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return SessionLocal()


def init_db():
    """Initialize the database with tables."""
    Base.metadata.create_all(get_engine())
