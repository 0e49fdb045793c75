import logging
from pathlib import Path

import httpx

from arlog.storage import MAPS_DIR, SCENES_DIR, SCREEN_FILE, SESSION_FILE

logger = logging.getLogger(__name__)

LARGE_FILE_BYTES = 100 * 1024 * 1024


class BundleUploader:
    """Posts every file of a finished session bundle to the inspector service."""

    def __init__(self,
                 project_id: str,
                 server_url: str,
                 timeout: float = 30,
                 transport: httpx.BaseTransport | None = None):
        self.project_id = project_id
        self.server_url = server_url.rstrip('/')
        self.timeout = timeout
        self._transport = transport

    def upload_url(self, session_name: str) -> str:
        return f'{self.server_url}/log/{self.project_id}/{session_name.replace(" ", "--")}'

    def upload(self, folder: Path) -> int:
        """Returns the number of files uploaded; failures are logged."""
        folder = Path(folder)
        url = self.upload_url(folder.name)
        uploaded = 0
        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            if self._post(client, url, folder / SESSION_FILE, 'session', 'application/json'):
                uploaded += 1
            video = folder / SCREEN_FILE
            if video.is_file() and video.stat().st_size >= LARGE_FILE_BYTES:
                logger.warning('video file too large for upload: %s', video)
            elif self._post(client, url, video, 'session', 'video/mp4'):
                uploaded += 1
            for subfolder, content_type in ((SCENES_DIR, 'scene'), (MAPS_DIR, 'application/json')):
                directory = folder / subfolder
                if not directory.is_dir():
                    logger.debug('%s folder does not exist', subfolder)
                    continue
                for path in sorted(directory.iterdir()):
                    if self._post(client, url, path, subfolder, content_type):
                        uploaded += 1
        return uploaded

    def _post(self, client: httpx.Client, url: str, path: Path, subfolder: str, content_type: str) -> bool:
        if not path.is_file():
            return False
        headers = {
            'X-Session-Subfolder': subfolder,
            'X-Filename': path.name,
            'Content-Type': content_type,
        }
        try:
            resp = client.post(url, content=path.read_bytes(), headers=headers)
            resp.raise_for_status()
        except (httpx.HTTPError, OSError) as e:
            logger.error('uploading %s failed: %s', path.name, e)
            return False
        return True
