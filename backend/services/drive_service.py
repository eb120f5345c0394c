# backend/services/drive_service.py
import logging
import mimetypes
from typing import Any, Optional
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload
from models import FileEntry, FOLDER_MIME_TYPE

logger = logging.getLogger(__name__)

LIST_FIELDS = "files(id, name, mimeType, modifiedTime)"

def _quote(value: str) -> str:
    """Escape a value for use inside a single-quoted Drive query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")

def build_drive_service(access_token: str):
    """Builds a Drive v3 service that sends the access token as a Bearer header."""
    creds = Credentials(token=access_token)
    try:
        return build('drive', 'v3', credentials=creds, cache_discovery=False)
    except HttpError as error:
        logger.error("An error occurred building the Drive service: %s", error)
        raise

class DriveClient:
    def __init__(self, access_token: str, service=None):
        self.access_token = access_token
        self._service = service

    @property
    def service(self):
        if self._service is None:
            self._service = build_drive_service(self.access_token)
        return self._service

    def list_files(self, folder_id: Optional[str] = None) -> list[FileEntry]:
        query = "'me' in owners"
        if folder_id:
            query += f" and '{_quote(folder_id)}' in parents"
        data = self.service.files().list(q=query, fields=LIST_FIELDS).execute()
        return [FileEntry.from_api(row) for row in data.get('files', [])]

    def delete(self, file_id: str) -> bool:
        # Drive answers 204 with an empty body; any other outcome raises HttpError.
        self.service.files().delete(fileId=file_id).execute()
        logger.info("Deleted Drive file %s", file_id)
        return True

    def upload_file(self, file_path: str, file_name: str, folder_id: Optional[str] = None,
                    mime_type: Optional[str] = None) -> dict[str, Any]:
        """Uploads a local file as a multipart request: JSON metadata followed by the raw bytes."""
        metadata: dict[str, Any] = {'name': file_name}
        if folder_id:
            metadata['parents'] = [folder_id]
        if not mime_type:
            mime_type = (mimetypes.guess_type(file_name)[0] or mimetypes.guess_type(file_path)[0]
                         or 'application/octet-stream')
        media = MediaFileUpload(file_path, mimetype=mime_type, resumable=False)
        created = self.service.files().create(body=metadata, media_body=media).execute()
        logger.info("Uploaded '%s' to Drive as %s", file_name, created.get('id'))
        return created

    def dir_exists(self, folder_name: str, parent_folder_id: Optional[str] = None) -> Optional[dict[str, Any]]:
        query = f"name='{_quote(folder_name)}' and mimeType='{FOLDER_MIME_TYPE}'"
        if parent_folder_id:
            query += f" and '{_quote(parent_folder_id)}' in parents"
        data = self.service.files().list(q=query, fields="files(id, name)").execute()
        files = data.get('files') or []
        return files[0] if files else None

    def make_dir(self, dirname: str, parent_folder_id: Optional[str] = None) -> dict[str, Any]:
        folder_metadata: dict[str, Any] = {'name': dirname, 'mimeType': FOLDER_MIME_TYPE}
        if parent_folder_id:
            folder_metadata['parents'] = [parent_folder_id]
        created = self.service.files().create(body=folder_metadata).execute()
        logger.info("Created Drive folder '%s' as %s", dirname, created.get('id'))
        return created
