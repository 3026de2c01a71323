# apps/backend/app/schemas/events.py
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional

class EventIn(BaseModel):
  session_id: str = Field(..., min_length=1)
  event_type: str = Field(..., min_length=1)
  event_name: str = Field(..., min_length=1)

  user_id: Optional[str] = None
  properties: Optional[Dict[str, Any]] = None

  page_url: Optional[str] = None
  page_title: Optional[str] = None
  referrer: Optional[str] = None

  user_agent: Optional[str] = None
  # filled from the request peer when empty
  ip_address: Optional[str] = None
  country: Optional[str] = None
  city: Optional[str] = None

  screen_width: Optional[int] = None
  screen_height: Optional[int] = None
  language: Optional[str] = None
  platform: Optional[str] = None
