# backend/models.py
import time
from typing import Any, Optional
from datetime import datetime
from pydantic import BaseModel, ValidationError
from sqlmodel import Field, SQLModel

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    googleId: Optional[str] = Field(default=None, unique=True, index=True)
    email: str = Field(unique=True, index=True)
    displayName: Optional[str] = Field(default=None)
    lastToken: Optional[str] = Field(default=None, max_length=4096)

class UserRead(BaseModel):
    id: int
    email: str
    displayName: Optional[str] = None

class TokenPayload(BaseModel):
    """The part of an OAuth token kept on the user between logins."""
    access_token: str
    token_type: str = "Bearer"
    scope: Optional[str] = None
    expires_at: Optional[int] = None

    @classmethod
    def from_oauth(cls, token: dict) -> "TokenPayload":
        expires_at = token.get("expires_at")
        if expires_at is None and token.get("expires_in") is not None:
            expires_at = int(time.time()) + int(token["expires_in"])
        return cls(
            access_token=token["access_token"], token_type=token.get("token_type") or "Bearer",
            scope=token.get("scope"), expires_at=int(expires_at) if expires_at is not None else None,
        )

    @classmethod
    def from_last_token(cls, last_token: Optional[str]) -> Optional["TokenPayload"]:
        if not last_token: return None
        try:
            return cls.model_validate_json(last_token)
        except ValidationError:
            return None

    def is_expired(self, now: Optional[float] = None) -> bool:
        # A token without a known expiry cannot be trusted for a session.
        if self.expires_at is None: return True
        return self.expires_at <= (time.time() if now is None else now)

class FileEntry(BaseModel):
    id: str
    name: str
    mimeType: str
    modifiedTime: datetime

    @classmethod
    def from_api(cls, row: dict[str, Any]) -> "FileEntry":
        return cls(id=row["id"], name=row["name"], mimeType=row["mimeType"], modifiedTime=row["modifiedTime"])

    @property
    def type(self) -> str:
        if self.mimeType == FOLDER_MIME_TYPE: return "folder"
        if self.mimeType == "image/png": return "png"
        return self.mimeType

    def view(self) -> dict[str, Any]:
        return {**self.model_dump(mode="json"), "type": self.type}
