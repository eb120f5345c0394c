# backend/flash.py
from fastapi import Request

FLASH_KEY = "_flashes"

def flash(request: Request, category: str, message: str) -> None:
    """Queue a one-time message for the next rendered view."""
    request.session[FLASH_KEY] = request.session.get(FLASH_KEY, []) + [{"category": category, "message": message}]

def pop_flashes(request: Request) -> list[dict]:
    return request.session.pop(FLASH_KEY, [])
