from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import quote

from taskforce_client.cancellation import CancelToken
from taskforce_client.transport import SUCCESS, Transport, decode_model, expect_status
from taskforce_common.errors import InvalidArgumentError
from taskforce_common.resources import File, FileListResponse, compact

logger = logging.getLogger(__name__)


class Files:
    def __init__(self, transport: Transport):
        self._t = transport

    def upload(
        self,
        filename: str,
        content: Union[bytes, BinaryIO],
        purpose: Optional[str] = None,
        mime_type: Optional[str] = None,
        token: Optional[CancelToken] = None,
    ) -> File:
        if not filename:
            raise InvalidArgumentError("filename is required")
        part = (filename, content, mime_type) if mime_type else (filename, content)
        resp = self._t.request(
            "POST",
            "/files",
            files={"file": part},
            data=compact({"purpose": purpose, "mime_type": mime_type}) or None,
            token=token,
        )
        expect_status(resp, SUCCESS, "upload file")
        uploaded = decode_model(resp, File)
        logger.info("uploaded %s as %s", filename, uploaded.id)
        return uploaded

    def list(self, limit: int = 20, offset: int = 0, token: Optional[CancelToken] = None) -> FileListResponse:
        resp = self._t.request("GET", "/files", params={"limit": limit, "offset": offset}, token=token)
        expect_status(resp, (200,), "list files")
        return decode_model(resp, FileListResponse)

    def get(self, file_id: str, token: Optional[CancelToken] = None) -> File:
        resp = self._t.request("GET", f"/files/{_file_path(file_id)}", token=token)
        expect_status(resp, (200,), "get file")
        return decode_model(resp, File)

    def delete(self, file_id: str, token: Optional[CancelToken] = None) -> None:
        resp = self._t.request("DELETE", f"/files/{_file_path(file_id)}", token=token)
        expect_status(resp, SUCCESS, "delete file")

    def download(self, file_id: str, token: Optional[CancelToken] = None) -> bytes:
        resp = self._t.request("GET", f"/files/{_file_path(file_id)}/content", token=token)
        expect_status(resp, (200,), "download file")
        return resp.content

    def download_to(self, file_id: str, dest: Union[str, Path], token: Optional[CancelToken] = None) -> Path:
        """Stream the file content to ``dest`` without holding it in memory.

        Bytes land in a ``.part`` sibling that is renamed onto ``dest`` once the
        body is complete; a failed or cancelled download leaves ``dest`` untouched.
        """
        dest = Path(dest)
        part = dest.with_name(dest.name + ".part")
        resp = self._t.open_stream(
            f"/files/{_file_path(file_id)}/content", token=token, what="download file", accept="*/*"
        )
        try:
            with part.open("wb") as fh:
                for chunk in resp.iter_bytes():
                    if token is not None:
                        token.raise_if_cancelled()
                    fh.write(chunk)
        except BaseException:
            part.unlink(missing_ok=True)
            raise
        finally:
            resp.close()
        part.replace(dest)
        return dest


def _file_path(file_id: str) -> str:
    if not file_id:
        raise InvalidArgumentError("file id is required")
    return quote(file_id, safe="")
