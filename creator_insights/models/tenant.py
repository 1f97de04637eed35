"""
Tenant tables: owned by the main dashboard application, read-only here.

Mapped so the service can query them through the ORM. Columns drift across
deployments, so every metric column is nullable and readers must null-check.
Schema changes to these tables are not managed by this repo's migrations.
"""
from sqlalchemy import Column, Integer, Text, Float, DateTime

from creator_insights.database import Base


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=True, index=True)
    email = Column(Text, nullable=True, index=True)
    name = Column(Text, nullable=True)


class Campaign(Base):
    __tablename__ = 'campaigns'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    campaign_name = Column(Text, nullable=True)
    client = Column(Text, nullable=True)
    influencer_count = Column(Integer, nullable=True)


class Influencer(Base):
    __tablename__ = 'influencers'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    influencer = Column(Text, nullable=True)        # display name
    channel_url = Column(Text, nullable=True)
    price = Column(Float, nullable=True)            # amount paid to the creator
    total_conversions = Column(Integer, nullable=True)
    conversions = Column(Integer, nullable=True)    # legacy column, fallback for total_conversions
    clicks = Column(Integer, nullable=True)
    views = Column(Integer, nullable=True)          # legacy column, fallback for deliverable views
    created_at = Column(DateTime, nullable=True)


class Deliverable(Base):
    __tablename__ = 'deliverables'

    id = Column(Integer, primary_key=True, autoincrement=True)
    influencer_id = Column(Integer, nullable=False, index=True)
    views = Column(Integer, nullable=True)
    likes = Column(Integer, nullable=True)
    post_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=True)


class ConversionStat(Base):
    """Conversion/click/cost snapshots pulled from the tracking platform."""
    __tablename__ = 'stats_history_redtrack'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    influencer_id = Column(Integer, nullable=True)
    influencer_name = Column(Text, nullable=True)
    conversions = Column(Integer, nullable=True)
    clicks = Column(Integer, nullable=True)
    cost = Column(Float, nullable=True)
    recorded_at = Column(DateTime, nullable=False)


class ContentStat(Base):
    """View/like snapshots per piece of content."""
    __tablename__ = 'stats_history_content'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    content_id = Column(Text, nullable=True)
    influencer_name = Column(Text, nullable=True)
    content_title = Column(Text, nullable=True)
    content_url = Column(Text, nullable=True)
    views = Column(Integer, nullable=True)
    likes = Column(Integer, nullable=True)
    recorded_at = Column(DateTime, nullable=False)
