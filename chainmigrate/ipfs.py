"""
Minimal IPFS HTTP API client
"""

import os
import json
import logging
from typing import Optional

import requests

from .config import validate_remote_path
from .errors import ExternalServiceError, InvalidArguments

logger = logging.getLogger(__name__)


class IpfsClient:
    def __init__(self, endpoint: str, session: Optional[requests.Session] = None, timeout: int = 30):
        self.endpoint = endpoint.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def upload_file(self, filepath: str, remote_path: Optional[str] = None) -> str:
        """
        Upload a file and return its CID

        Args:
            filepath: Local file to upload
            remote_path: Optional MFS path (must start with '/') to also link the file at

        Returns:
            CID of the uploaded content
        """
        params = {}
        if remote_path is not None:
            params['to-files'] = validate_remote_path(remote_path)

        try:
            f = open(filepath, 'rb')
        except FileNotFoundError:
            raise InvalidArguments("filepath", "file not found") from None
        except PermissionError:
            raise InvalidArguments("filepath", "not read permissions to the file") from None
        except IsADirectoryError:
            raise InvalidArguments("filepath", "path is a directory") from None

        url = f"{self.endpoint}/api/v0/add"
        with f:
            try:
                response = self.session.post(
                    url,
                    params=params,
                    files={'file': (os.path.basename(filepath), f)},
                    timeout=self.timeout,
                )
                response.raise_for_status()
            except requests.exceptions.RequestException as e:
                raise ExternalServiceError(ExternalServiceError.IPFS, str(e)) from e

        cid = self._parse_hash(response.text)
        logger.info(f"Uploaded {filepath} to IPFS: {cid}")
        return cid

    @staticmethod
    def _parse_hash(body: str) -> str:
        # The add endpoint streams one JSON object per line; the last one is the root
        lines = [line for line in body.splitlines() if line.strip()]
        if not lines:
            raise ExternalServiceError(ExternalServiceError.IPFS, "empty response from add")
        try:
            cid = json.loads(lines[-1])['Hash']
        except (ValueError, KeyError, TypeError) as e:
            raise ExternalServiceError(ExternalServiceError.IPFS, f"unexpected add response: {lines[-1]}") from e
        if not cid:
            raise ExternalServiceError(ExternalServiceError.IPFS, "add response has an empty CID")
        return cid
