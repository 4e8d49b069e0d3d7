"""Share exported product CSVs through Google Drive."""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import GDriveConfig

logger = logging.getLogger(__name__)

CSV_MIMETYPE = "text/csv"

# drive.file only reaches files this app created.
_SCOPES = ["https://www.googleapis.com/auth/drive.file"]


def shared_name(path: str | Path, shared_on: date) -> str:
    """Drive file name for an export: local stem plus the share date."""
    return f"{Path(path).stem}_{shared_on:%Y%m%d}.csv"


def _import_google():
    try:
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials
        from google_auth_oauthlib.flow import InstalledAppFlow
        from googleapiclient.discovery import build
    except ImportError:
        raise ImportError(
            "Google Drive 共有には追加パッケージが必要です:\n"
            "  pip install google-api-python-client google-auth-oauthlib"
        ) from None
    return Request, Credentials, InstalledAppFlow, build


class DriveCsvShare:
    """Upload export CSVs to a Drive folder with an OAuth desktop token.

    The first upload opens a browser for consent; the token is cached at
    ``token_path`` afterwards.
    """

    def __init__(
        self,
        credentials_path: str | Path,
        token_path: str | Path,
        folder_id: str = "",
    ) -> None:
        self._credentials_path = Path(credentials_path).expanduser()
        self._token_path = Path(token_path).expanduser()
        self._folder_id = folder_id
        self._service = None

    @classmethod
    def from_config(cls, config: GDriveConfig) -> DriveCsvShare:
        return cls(
            credentials_path=config.credentials_path,
            token_path=config.token_path,
            folder_id=config.folder_id,
        )

    def _authorize(self):
        Request, Credentials, InstalledAppFlow, _ = _import_google()

        creds = None
        if self._token_path.exists():
            creds = Credentials.from_authorized_user_file(
                str(self._token_path), _SCOPES
            )
        if creds is not None and creds.valid:
            return creds

        if creds is not None and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        elif self._credentials_path.exists():
            flow = InstalledAppFlow.from_client_secrets_file(
                str(self._credentials_path), _SCOPES
            )
            creds = flow.run_local_server(port=0)
        else:
            raise FileNotFoundError(
                f"OAuth クレデンシャルファイルが見つかりません: "
                f"{self._credentials_path}\n"
                f"Google Cloud Console でデスクトップ用の OAuth クライアントを作成してください。"
            )

        self._token_path.parent.mkdir(parents=True, exist_ok=True)
        self._token_path.write_text(creds.to_json())
        return creds

    def _drive(self):
        if self._service is None:
            build = _import_google()[3]
            self._service = build("drive", "v3", credentials=self._authorize())
        return self._service

    def upload_csv(
        self,
        path: str | Path,
        folder_id: str | None = None,
        shared_on: date | None = None,
    ) -> str:
        """Upload an export CSV and return its Drive file ID.

        The Drive copy is named ``<stem>_<YYYYMMDD>.csv`` so repeated exports
        stay distinguishable. ``folder_id`` overrides the configured folder.

        Raises:
            FileNotFoundError: If the CSV or the OAuth client file is missing.
            ImportError: If the Google client packages are not installed.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"ファイルが見つかりません: {path}")

        from googleapiclient.http import MediaFileUpload

        metadata: dict = {"name": shared_name(path, shared_on or date.today())}
        parent = folder_id or self._folder_id
        if parent:
            metadata["parents"] = [parent]

        media = MediaFileUpload(str(path), mimetype=CSV_MIMETYPE, resumable=True)
        created = (
            self._drive()
            .files()
            .create(body=metadata, media_body=media, fields="id")
            .execute()
        )

        logger.info("Google Drive に共有しました: %s -> %s", metadata["name"], created["id"])
        return created["id"]
