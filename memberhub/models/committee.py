"""Committee snapshot and settings models."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer

from memberhub.database import Base


class CommitteeSnapshot(Base):
    """Immutable capture of the committee roster for one term."""

    __tablename__ = "committee_snapshot"

    id = Column(Integer, primary_key=True, autoincrement=True)
    data = Column(JSON, nullable=False)  # {"leadership": [...], "member": [...]}
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False, index=True)
    taken_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class CommitteeSettings(Base):
    """Singleton row (id=1) holding the committee term length."""

    __tablename__ = "committee_settings"

    id = Column(Integer, primary_key=True)
    term_years = Column(Integer, nullable=False, default=2)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
