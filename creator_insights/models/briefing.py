"""
AiBriefing model: one cached briefing per tenant, valid for BRIEFING_TTL_HOURS.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, Text, DateTime, JSON

from creator_insights.database import Base


class AiBriefing(Base):
    __tablename__ = 'ai_briefings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, unique=True)
    score = Column(Integer, default=50)
    summary = Column(Text, nullable=True)
    metrics = Column(JSON, default=list)
    actions = Column(JSON, default=list)
    generated_at = Column(DateTime, nullable=False, default=datetime.now)
    expires_at = Column(DateTime, nullable=False)
