# backend/main.py
import os
import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Optional
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from fastapi import FastAPI, Depends, Request, File, Form, UploadFile, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.sessions import SessionMiddleware
from authlib.integrations.starlette_client import OAuthError

from database import create_db_and_tables, get_session, UserRepository
from models import UserRead
from auth import oauth, AuthenticationError, find_or_create_user, get_current_user, login_user, logout_user
from deps import RequestContext, LoginRequired, require_login, get_drive_client
from flash import flash, pop_flashes
from services.drive_service import DriveClient

logger = logging.getLogger(__name__)

load_dotenv()
SESSION_SECRET_KEY = os.getenv("JWT_SECRET")
if not SESSION_SECRET_KEY:
    raise ValueError("JWT_SECRET must be set in .env file!")

ROOT_FOLDER = "root"

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting up and creating database tables...")
    await create_db_and_tables()
    logger.info("Startup complete.")
    yield

app = FastAPI(lifespan=lifespan)
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET_KEY)

def redirect_to(request: Request, name: str, **path_params) -> RedirectResponse:
    return RedirectResponse(url=str(request.url_for(name, **path_params)), status_code=status.HTTP_303_SEE_OTHER)

def redirect_to_listing(request: Request, folder_id: Optional[str]) -> RedirectResponse:
    if folder_id:
        return redirect_to(request, "files_by_folder", folder_id=folder_id)
    return redirect_to(request, "files")

@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    flash(request, "warning", exc.message)
    return redirect_to(request, "login")

# --- Pages ---
@app.get("/", name="index")
async def index(request: Request, session: AsyncSession = Depends(get_session)):
    user = await get_current_user(request, session)
    return {
        "user": UserRead.model_validate(user, from_attributes=True) if user else None,
        "messages": pop_flashes(request),
    }

@app.get("/login", name="login")
async def login(request: Request):
    redirect_uri = str(request.url_for("auth_callback"))
    rv = await oauth.google.create_authorization_url(redirect_uri)
    await oauth.google.save_authorize_data(request, redirect_uri=redirect_uri, **rv)
    return {"google_oauth_link": rv["url"], "messages": pop_flashes(request)}

@app.get("/auth/callback", name="auth_callback")
async def auth_callback(request: Request, session: AsyncSession = Depends(get_session)):
    try:
        if not request.query_params.get("code"):
            raise AuthenticationError("No authorization code in callback.")
        token = await oauth.google.authorize_access_token(request)
        user_info = token.get("userinfo") or await oauth.google.userinfo(token=token)
        db_user = await find_or_create_user(UserRepository(session), dict(user_info), token)
    except (AuthenticationError, OAuthError) as e:
        logger.warning("Google login failed: %s", e)
        flash(request, "warning", "Authentication failed, please try again.")
        return redirect_to(request, "login")
    # Redirect so the authorization code does not stay in the browser's URL.
    login_user(request, db_user)
    return redirect_to(request, "index")

@app.get("/logout", name="logout")
async def logout(request: Request):
    logout_user(request)
    return redirect_to(request, "login")

@app.get("/me", response_model=UserRead)
async def get_profile(context: RequestContext = Depends(require_login)):
    return UserRead.model_validate(context.user, from_attributes=True)

# --- Drive ---
@app.post("/files/upload", name="upload_file", dependencies=[Depends(require_login)])
@app.post("/files/{folder_id}/upload", name="upload_file_by_folder", dependencies=[Depends(require_login)])
async def upload(
    request: Request,
    folder_id: Optional[str] = None,
    file: Optional[UploadFile] = File(None),
    drive: DriveClient = Depends(get_drive_client),
):
    content = await file.read() if file is not None and file.filename else b""
    if not content:
        flash(request, "warning", "Something went wrong uploading the file.")
        return redirect_to_listing(request, folder_id)

    with tempfile.NamedTemporaryFile(delete=False, suffix=Path(file.filename).suffix) as temp_file:
        temp_path = temp_file.name
    try:
        with open(temp_path, "wb") as f:
            f.write(content)
        await asyncio.to_thread(
            drive.upload_file, temp_path, Path(file.filename).stem, folder_id, file.content_type
        )
    finally:
        if os.path.exists(temp_path): os.remove(temp_path)
    flash(request, "success", "File has been uploaded.")
    return redirect_to_listing(request, folder_id)

@app.post("/mkdir", name="dir", dependencies=[Depends(require_login)])
@app.post("/mkdir/{folder_id}", name="dir_by_folder", dependencies=[Depends(require_login)])
async def mkdir(
    request: Request,
    folder_id: Optional[str] = None,
    name: Optional[str] = Form(None),
    drive: DriveClient = Depends(get_drive_client),
):
    name = (name or "").strip()
    if not name:
        flash(request, "warning", "Name cannot be empty.")
        return redirect_to_listing(request, folder_id)

    if await asyncio.to_thread(drive.dir_exists, name, folder_id or ROOT_FOLDER):
        flash(request, "warning", "Folder already exists.")
        return redirect_to_listing(request, folder_id)

    await asyncio.to_thread(drive.make_dir, name, folder_id)
    flash(request, "success", "Folder has been created.")
    return redirect_to_listing(request, folder_id)

@app.api_route("/files/{file_id}/delete", methods=["GET", "POST"], name="delete_file",
             dependencies=[Depends(require_login)])
async def delete(
    request: Request,
    file_id: str,
    drive: DriveClient = Depends(get_drive_client),
):
    await asyncio.to_thread(drive.delete, file_id)
    flash(request, "success", "File has been deleted.")
    return redirect_to(request, "files")

@app.get("/files", name="files", dependencies=[Depends(require_login)])
@app.get("/files/{folder_id}", name="files_by_folder", dependencies=[Depends(require_login)])
async def files(
    request: Request,
    folder_id: Optional[str] = None,
    drive: DriveClient = Depends(get_drive_client),
):
    entries = await asyncio.to_thread(drive.list_files, folder_id)
    if folder_id:
        upload_action = request.url_for("upload_file_by_folder", folder_id=folder_id)
        mkdir_action = request.url_for("dir_by_folder", folder_id=folder_id)
    else:
        upload_action, mkdir_action = request.url_for("upload_file"), request.url_for("dir")
    return {
        "folder": folder_id,
        "files": [entry.view() for entry in entries],
        "upload_action": str(upload_action),
        "mkdir_action": str(mkdir_action),
        "messages": pop_flashes(request),
    }
