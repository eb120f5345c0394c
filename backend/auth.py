# backend/auth.py
import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, cast
from dotenv import load_dotenv
from fastapi import Request
from authlib.integrations.starlette_client import OAuth
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from models import User, TokenPayload
from database import UserRepository

logger = logging.getLogger(__name__)

load_dotenv()

oauth = OAuth()
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
    raise ValueError("Google OAuth credentials are not set in .env file.")
oauth.register(
    name='google', client_id=GOOGLE_CLIENT_ID, client_secret=GOOGLE_CLIENT_SECRET,
    server_metadata_url='https://accounts.google.com/.well-known/openid-configuration',
    client_kwargs={'scope': 'openid email profile https://www.googleapis.com/auth/drive', 'prompt': 'consent'}
)

JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET: raise ValueError("JWT_SECRET is not set in .env file!")
safe_jwt_secret: str = cast(str, JWT_SECRET)
ALGORITHM = "HS256"
SESSION_TOKEN_KEY = "token"

class AuthenticationError(Exception):
    """The identity provider did not return what a login needs."""

def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(days=3)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, safe_jwt_secret, algorithm=ALGORITHM)

async def find_or_create_user(repo: UserRepository, user_info: dict, token: dict) -> User:
    google_id = user_info.get('sub')
    if not google_id: raise AuthenticationError("Google authentication requires an id.")
    last_token = TokenPayload.from_oauth(token).model_dump_json()

    # Known Google account: sign in and keep the fresh token.
    db_user = await repo.find_by_provider_id(google_id)
    if db_user:
        db_user.lastToken = last_token
        return await repo.save(db_user)

    email = user_info.get('email')
    if not email: raise AuthenticationError("No email detected.")

    # Existing account with the same email: link the Google id to it.
    db_user = await repo.find_by_email(email)
    if db_user:
        logger.info("Linking Google account to existing user %s", db_user.id)
        db_user.googleId = google_id
        db_user.lastToken = last_token
        return await repo.save(db_user)

    db_user = User(email=email, displayName=user_info.get('name'), googleId=google_id, lastToken=last_token)
    db_user = await repo.save(db_user)
    logger.info("Registered new user %s", db_user.id)
    return db_user

def login_user(request: Request, user: User) -> None:
    request.session[SESSION_TOKEN_KEY] = create_access_token(data={"sub": str(user.id)})

def logout_user(request: Request) -> None:
    request.session.clear()

async def get_current_user(request: Request, session: AsyncSession) -> Optional[User]:
    token = request.session.get(SESSION_TOKEN_KEY)
    if not token: return None
    try:
        payload = jwt.decode(token, safe_jwt_secret, algorithms=[ALGORITHM])
        user_id_str = payload.get("sub")
        if user_id_str is None: return None
    except JWTError:
        return None
    return await UserRepository(session).find_by_id(int(user_id_str))
