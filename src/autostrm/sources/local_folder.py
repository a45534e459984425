from __future__ import annotations

import logging
from pathlib import Path

from ..errors import SourceEnumerationError
from ..logging_utils import render_fields_block
from ..models import FileDescriptor
from .base import SourceProvider

LOGGER = logging.getLogger(__name__)


def skip_reason_for_source_file(path: Path) -> str | None:
    name = path.name
    if name.startswith("._") and len(name) > 2:
        return "macOS resource fork (._ prefix)"
    if path.is_symlink():
        return "symlink"
    return None


class LocalFolderSourceProvider(SourceProvider):
    """Lists files below a directory on the local filesystem.

    Without ``visit_url_prefix`` the access URL is the absolute file path,
    which media servers accept inside ``.strm`` files.
    """

    def _list_files(self) -> list[FileDescriptor]:
        root = Path(self.config.path).expanduser()
        if not root.is_dir():
            raise SourceEnumerationError(f"Local folder '{root}' does not exist or is not a directory")

        files: list[FileDescriptor] = []
        try:
            for path in sorted(root.rglob("*")):
                skip_reason = skip_reason_for_source_file(path)
                if skip_reason:
                    LOGGER.debug(
                        render_fields_block("Skipping Source File", {"Source": path, "Reason": skip_reason}, pad_top=False)
                    )
                    continue
                if not path.is_file():
                    continue
                files.append(self._describe(root, path))
        except OSError as exc:
            raise SourceEnumerationError(f"Unable to list '{root}': {exc}") from exc

        LOGGER.info(
            render_fields_block("Listed Local Folder", {"Source": self.config.name, "Path": root, "Files": len(files)})
        )
        return files

    def _describe(self, root: Path, path: Path) -> FileDescriptor:
        relative = "/" + path.relative_to(root).as_posix()
        if self.config.visit_url_prefix:
            visit_url = self.build_visit_url(relative)
        else:
            visit_url = str(path.resolve())
        return FileDescriptor(
            filename=path.name,
            file_path=str(path),
            visit_url=visit_url,
            source=self.config,
        )
