"""FTP uploader for the static image host."""
import ftplib
import io
import re
from typing import Callable, Dict, Optional
from loguru import logger

from config import settings
from errors import UploadError
from utils.retry import retry_call

TRANSIENT_FTP_ERRORS = (ftplib.error_temp, ConnectionError, TimeoutError, EOFError)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def safe_file_id(business_id: str) -> str:
    """Make a business id safe for use in a remote filename."""
    return _UNSAFE_CHARS.sub("_", business_id) or "unknown"


def logo_path(business_id: str) -> str:
    return f"logos/logo-{safe_file_id(business_id)}.jpg"


def photo_path(business_id: str, index: int) -> str:
    return f"photos/photo-{safe_file_id(business_id)}-{index}.jpg"


class HostingerUploader:
    """
    Upload image bytes to a fixed directory on an FTP host.

    Filenames are derived from the business id (and photo index) only, so a
    re-upload overwrites the previous file instead of leaving an orphan.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        port: Optional[int] = None,
        remote_dir: Optional[str] = None,
        base_url: Optional[str] = None,
        ftp_factory: Callable[[], ftplib.FTP] = ftplib.FTP,
    ):
        self.host = host or settings.ftp_host
        self.user = user or settings.ftp_user
        self.password = password if password is not None else settings.ftp_password
        self.port = port or settings.ftp_port
        self.remote_dir = (remote_dir or settings.ftp_remote_dir).rstrip("/")
        self.base_url = (base_url or settings.image_base_url).rstrip("/")
        self.ftp_factory = ftp_factory

    def _connect(self) -> ftplib.FTP:
        ftp = self.ftp_factory()
        ftp.connect(self.host, self.port, timeout=settings.request_timeout)
        ftp.login(self.user, self.password)
        return ftp

    def _ensure_dir(self, ftp: ftplib.FTP, path: str):
        """cd into path from the root, creating missing components."""
        ftp.cwd("/")
        for part in [p for p in path.split("/") if p]:
            try:
                ftp.cwd(part)
            except ftplib.error_perm:
                ftp.mkd(part)
                ftp.cwd(part)

    def _store(self, data: bytes, relative_path: str):
        directory, _, filename = relative_path.rpartition("/")
        ftp = self._connect()
        try:
            self._ensure_dir(ftp, f"{self.remote_dir}/{directory}" if directory else self.remote_dir)
            ftp.storbinary(f"STOR {filename}", io.BytesIO(data))
        finally:
            try:
                ftp.quit()
            except (ftplib.Error, OSError, EOFError):
                ftp.close()

    def public_url(self, relative_path: str) -> str:
        return f"{self.base_url}/{relative_path}"

    def upload_bytes(self, data: bytes, relative_path: str) -> str:
        """
        Upload bytes under the remote image directory.

        Args:
            data: File content
            relative_path: Path below the remote directory, e.g. 'logos/logo-x.jpg'

        Returns:
            Public URL of the uploaded file
        """
        if not data:
            raise UploadError(f"Refusing to upload empty file {relative_path}")
        try:
            retry_call(self._store, data, relative_path, retry_on=TRANSIENT_FTP_ERRORS)
        except (ftplib.Error, OSError, EOFError) as e:
            raise UploadError(f"Failed to upload {relative_path}: {e}") from e
        logger.debug(f"Uploaded {relative_path} ({len(data)} bytes)")
        return self.public_url(relative_path)

    def upload_logo(self, business_id: str, data: bytes) -> str:
        return self.upload_bytes(data, logo_path(business_id))

    def upload_photo(self, business_id: str, index: int, data: bytes) -> str:
        return self.upload_bytes(data, photo_path(business_id, index))

    def test_connection(self) -> Dict:
        """Log in, enter the remote directory and list it."""
        ftp = self._connect()
        try:
            self._ensure_dir(ftp, self.remote_dir)
            entries = ftp.nlst()
            cwd = ftp.pwd()
        finally:
            try:
                ftp.quit()
            except (ftplib.Error, OSError, EOFError):
                ftp.close()
        logger.info(f"FTP connection OK: {self.host} {cwd} ({len(entries)} entries)")
        return {
            "host": self.host,
            "user": self.user,
            "remoteDir": cwd,
            "entries": len(entries),
            "baseUrl": self.base_url,
        }
