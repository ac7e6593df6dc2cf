"""Storage backend — byte-level read/write with atomic replace.

ProgressStore and DeploymentStore only see this protocol, so tests can
swap in an in-memory backend and the file layout stays in one place.

Rules Applied:
    - #23 Exception Handling: OSError propagates, callers map it
"""

from __future__ import annotations

import os
import tempfile
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from pathlib import Path


@runtime_checkable
class StorageBackend(Protocol):
    """Byte storage 인터페이스."""

    def read(self, path: Path) -> bytes:
        """파일 전체를 읽습니다.

        Raises:
            FileNotFoundError: 파일이 없을 때
        """
        ...

    def write(self, path: Path, data: bytes) -> None:
        """파일 전체를 교체합니다 (부분 쓰기 상태가 남지 않아야 함)."""
        ...


class FileBackend:
    """Local filesystem backend.

    write()는 같은 디렉토리의 임시 파일에 기록 → fsync → os.replace 순서로
    동작하므로 중간에 프로세스가 죽어도 마지막으로 커밋된 파일이 유지됩니다.
    """

    def read(self, path: Path) -> bytes:
        return path.read_bytes()

    def write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            # replace 전에 실패하면 임시 파일만 정리하고 원본은 그대로 둔다
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class MemoryBackend:
    """In-memory backend (tests, dry runs)."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files: dict[str, bytes] = dict(files or {})
        self.writes = 0

    def read(self, path: Path) -> bytes:
        try:
            return self.files[str(path)]
        except KeyError:
            raise FileNotFoundError(str(path)) from None

    def write(self, path: Path, data: bytes) -> None:
        self.files[str(path)] = data
        self.writes += 1
