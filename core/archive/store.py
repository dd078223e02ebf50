"""Document archive store.

The archive is loaded once, mutated part by part and serialized once. The
member set is fixed: parts can be replaced but never added or removed, and
member order, compression type, timestamps and the archive comment survive
serialization.
"""

from __future__ import annotations

import io
import re
import zipfile
from collections.abc import Callable

from core.templates.models import PartsConfig
from core.utils.errors import ArchiveError, MissingMandatoryPartError


class ArchiveStore:
    """Ordered part path -> bytes mapping backed by a ZIP container."""

    def __init__(
        self,
        infos: list[zipfile.ZipInfo],
        contents: dict[str, bytes],
        comment: bytes = b"",
    ) -> None:
        self._infos = infos
        self._contents = contents
        self._comment = comment

    @classmethod
    def load(cls, data: bytes) -> ArchiveStore:
        """Read every member of a ZIP archive into memory."""

        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                infos = archive.infolist()
                contents = {info.filename: archive.read(info) for info in infos}
                comment = archive.comment
        except (zipfile.BadZipFile, zipfile.LargeZipFile, EOFError) as exc:
            raise ArchiveError(f"Template is not a readable document archive: {exc}") from exc
        return cls(infos, contents, comment)

    def list_parts(self, predicate: Callable[[str], bool] | None = None) -> list[str]:
        """Return member paths in archive order, optionally filtered."""

        names = [info.filename for info in self._infos if not info.is_dir()]
        if predicate is None:
            return names
        return [name for name in names if predicate(name)]

    def has_part(self, path: str) -> bool:
        return path in self._contents

    def read_part(self, path: str) -> bytes | None:
        """Return part bytes, or None when the part does not exist."""

        return self._contents.get(path)

    def require_part(self, path: str) -> bytes:
        data = self.read_part(path)
        if data is None:
            raise MissingMandatoryPartError(f"Mandatory part missing: {path}", part=path)
        return data

    def write_part(self, path: str, data: bytes) -> None:
        """Replace the bytes of an existing part."""

        if path not in self._contents:
            raise KeyError(f"Archive has no part {path}")
        self._contents[path] = data

    def text_parts(self, parts: PartsConfig) -> list[str]:
        """Return the main part followed by header/footer parts in archive order."""

        patterns = [re.compile(pattern) for pattern in parts.optional_patterns]
        optional = self.list_parts(
            lambda name: name != parts.main and any(p.fullmatch(name) for p in patterns)
        )
        return [parts.main, *optional]

    def serialize(self) -> bytes:
        """Write all members back in their original order."""

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            for info in self._infos:
                archive.writestr(
                    info, self._contents[info.filename], compress_type=info.compress_type
                )
            archive.comment = self._comment
        return buffer.getvalue()
