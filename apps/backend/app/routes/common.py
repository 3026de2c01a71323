# apps/backend/app/routes/common.py
from typing import Any

from fastapi import Request

from app.realtime.hub import Hub
from app.services.ingest import EventIngestor

def ok(data: Any, **meta: Any) -> dict:
  body = {"success": True, "data": data}
  body.update(meta)
  return body

def limit_or_default(value: int, default: int, maximum: int) -> int:
  # out-of-range values fall back to the default instead of erroring
  if value <= 0 or value > maximum:
    return default
  return value

def get_hub(request: Request) -> Hub:
  return request.app.state.hub

def get_ingestor(request: Request) -> EventIngestor:
  return request.app.state.ingestor
