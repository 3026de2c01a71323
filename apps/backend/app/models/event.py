# apps/backend/app/models/event.py
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey

from app.db import Base

class Event(Base):
  __tablename__ = "events"

  id = Column(String(36), primary_key=True)
  project_id = Column(String(36), ForeignKey("projects.id"), nullable=True, index=True)

  session_id = Column(Text, nullable=False, index=True)
  user_id = Column(Text, nullable=True, index=True)
  event_type = Column(Text, nullable=False, index=True)
  event_name = Column(Text, nullable=False)

  # compact JSON text, key order preserved
  properties = Column(Text, nullable=False, default="{}")

  page_url = Column(Text, nullable=True)
  page_title = Column(Text, nullable=True)
  referrer = Column(Text, nullable=True)

  user_agent = Column(Text, nullable=True)
  ip_address = Column(String(64), nullable=False)
  country = Column(String(64), nullable=True, index=True)
  city = Column(String(128), nullable=True)

  screen_width = Column(Integer, nullable=True)
  screen_height = Column(Integer, nullable=True)
  language = Column(String(32), nullable=True)
  platform = Column(String(64), nullable=True)

  created_at = Column(DateTime(timezone=True), nullable=False, index=True,
                      default=lambda: datetime.now(timezone.utc))
  updated_at = Column(DateTime(timezone=True), nullable=False,
                      default=lambda: datetime.now(timezone.utc))
