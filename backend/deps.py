# backend/deps.py
from dataclasses import dataclass
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from auth import get_current_user
from database import get_session
from models import User, TokenPayload
from services.drive_service import DriveClient

@dataclass
class RequestContext:
    """Resolved per request for routes that talk to Drive."""
    user: User
    token: TokenPayload

class LoginRequired(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

async def require_login(request: Request, session: AsyncSession = Depends(get_session)) -> RequestContext:
    user = await get_current_user(request, session)
    token = TokenPayload.from_last_token(user.lastToken) if user else None
    if user is None or token is None:
        raise LoginRequired("Refresh your login")
    if token.is_expired():
        raise LoginRequired("Your token is expired, please login again.")
    return RequestContext(user=user, token=token)

def get_drive_client(context: RequestContext = Depends(require_login)) -> DriveClient:
    return DriveClient(context.token.access_token)
