"""WebDAV source backed by recursive ``PROPFIND`` requests."""

from __future__ import annotations

import logging
import posixpath
from urllib.parse import quote, unquote, urlparse
from xml.etree import ElementTree as ET

import httpx

from ..config import SourceConfig
from ..errors import ConfigurationError, SourceEnumerationError
from ..logging_utils import render_fields_block
from ..models import FileDescriptor
from .base import SourceProvider

LOGGER = logging.getLogger(__name__)

DAV_NAMESPACE = "{DAV:}"

PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop><d:resourcetype/><d:getcontentlength/></d:prop></d:propfind>'
)


def _normalize_dir(path: str) -> str:
    normalized = "/" + path.strip("/")
    return normalized if normalized == "/" else normalized + "/"


class WebDAVSourceProvider(SourceProvider):
    """Walks a WebDAV share one directory level at a time."""

    def __init__(self, config: SourceConfig) -> None:
        super().__init__(config)
        if not config.server_address:
            raise ConfigurationError(f"WebDAV source '{config.name}' requires 'server_address'")
        self.server_address = config.server_address.rstrip("/")
        self._server_root = urlparse(self.server_address).path.rstrip("/")
        auth = None
        if config.username:
            auth = httpx.BasicAuth(config.username, config.password or "")
        self._client = httpx.Client(auth=auth, timeout=config.timeout)

    def _list_files(self) -> list[FileDescriptor]:
        files: list[FileDescriptor] = []
        pending = [_normalize_dir(self.config.path)]
        visited: set[str] = set()
        while pending:
            directory = pending.pop(0)
            if directory in visited:
                continue
            visited.add(directory)
            for path, is_directory in self._list_directory(directory):
                if is_directory:
                    pending.append(_normalize_dir(path))
                else:
                    files.append(self._describe(path))

        LOGGER.info(
            render_fields_block(
                "Listed WebDAV Source",
                {"Source": self.config.name, "Path": self.config.path, "Files": len(files)},
            )
        )
        return files

    def _list_directory(self, directory: str) -> list[tuple[str, bool]]:
        LOGGER.debug("PROPFIND %s%s", self.server_address, directory)
        try:
            response = self._client.request(
                "PROPFIND",
                f"{self.server_address}{quote(directory)}",
                headers={"Depth": "1", "Content-Type": "application/xml; charset=utf-8"},
                content=PROPFIND_BODY,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SourceEnumerationError(f"PROPFIND {directory} on source '{self.config.name}' failed: {exc}") from exc

        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as exc:
            raise SourceEnumerationError(f"Invalid PROPFIND response for {directory}: {exc}") from exc

        entries: list[tuple[str, bool]] = []
        for item in root.iter(f"{DAV_NAMESPACE}response"):
            href = item.findtext(f"{DAV_NAMESPACE}href")
            if not href:
                continue
            path = self._server_relative(href)
            if _normalize_dir(path) == directory:
                continue
            is_directory = item.find(f".//{DAV_NAMESPACE}resourcetype/{DAV_NAMESPACE}collection") is not None
            entries.append((path.rstrip("/") or "/", is_directory))
        return entries

    def _server_relative(self, href: str) -> str:
        path = unquote(urlparse(href).path)
        if self._server_root and path.startswith(self._server_root):
            path = path[len(self._server_root) :]
        return "/" + path.lstrip("/")

    def _describe(self, path: str) -> FileDescriptor:
        return FileDescriptor(
            filename=posixpath.basename(path),
            file_path=path,
            visit_url=self.build_visit_url(self.relative_to_root(path)),
            source=self.config,
        )

    def close(self) -> None:
        self._client.close()
