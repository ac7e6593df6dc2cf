"""ProgressStore / DeploymentStore — durable sync state.

ProgressStore holds the full SyncState (checkpoint + entity cache + gaps)
and is rewritten in full after every entity update. DeploymentStore holds
the append-only factory deployment cache, one file per source.

Serialization is deterministic (sorted keys, fixed indent) so two runs
that leave the state unchanged produce byte-identical files.

Rules Applied:
    - #23 Exception Handling: corrupt/newer state → graceful fresh start,
      write failure or unreadable deployment cache → PersistenceError (fatal)
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from vendor_sync.core.exceptions import PersistenceError
from vendor_sync.state.models import STATE_VERSION, Deployment, SyncState

if TYPE_CHECKING:
    from pathlib import Path

    from vendor_sync.state.backend import StorageBackend

_DEPLOYMENTS_ADAPTER = TypeAdapter(list[Deployment])


def dump_json(payload: Any) -> bytes:
    """Deterministic JSON encoding."""
    return (json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False) + "\n").encode("utf-8")


class ProgressStore:
    """SyncState 영속화.

    Args:
        backend: StorageBackend 구현체
        path: progress 파일 경로
    """

    def __init__(self, backend: StorageBackend, path: Path) -> None:
        self._backend = backend
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SyncState:
        """저장된 상태 로드. 없거나 손상되었으면 빈 상태로 시작."""
        try:
            raw = self._backend.read(self._path)
        except FileNotFoundError:
            logger.info("No progress file at {}, starting fresh", self._path)
            return SyncState()
        except OSError as e:
            logger.warning("Progress file unreadable ({}), starting fresh", e)
            return SyncState()

        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Progress file {}: corrupted JSON, starting fresh", self._path)
            return SyncState()

        if not isinstance(payload, dict):
            logger.warning("Progress file {}: invalid format, starting fresh", self._path)
            return SyncState()

        version = payload.get("version")
        if not isinstance(version, int) or version > STATE_VERSION:
            logger.warning(
                "Progress file {}: version {} > {}, starting fresh",
                self._path,
                version,
                STATE_VERSION,
            )
            return SyncState()

        try:
            state = SyncState.model_validate(payload)
        except ValidationError as e:
            logger.warning(
                "Progress file {}: schema mismatch ({} errors), starting fresh",
                self._path,
                e.error_count(),
            )
            return SyncState()

        logger.debug(
            "Loaded progress: {} routers, {} vaults, {} open gaps",
            len(state.routers),
            len(state.vaults),
            state.open_gap_count,
        )
        return state

    def save(self, state: SyncState) -> None:
        """전체 상태를 덮어씁니다.

        Raises:
            PersistenceError: 저장 실패 (치명적)
        """
        data = dump_json(state.model_dump(mode="json"))
        try:
            self._backend.write(self._path, data)
        except OSError as e:
            raise PersistenceError(
                "Failed to save progress",
                context={"path": str(self._path), "error": str(e)},
            ) from e

    def reset(self) -> SyncState:
        """빈 상태로 초기화하고 저장."""
        state = SyncState()
        self.save(state)
        logger.info("Progress reset: {}", self._path)
        return state


class DeploymentStore:
    """Factory 배포 캐시 (append-only, 주소 기준 중복 제거)."""

    def __init__(self, backend: StorageBackend, path: Path) -> None:
        self._backend = backend
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[Deployment]:
        """캐시 로드. 파일이 없으면 빈 목록.

        An unreadable or invalid cache is never treated as empty: the next
        save would overwrite it and drop every known deployment.

        Raises:
            PersistenceError: 캐시를 읽거나 해석할 수 없음
        """
        try:
            raw = self._backend.read(self._path)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise PersistenceError(
                "Deployment cache unreadable",
                context={"path": str(self._path), "error": str(e)},
            ) from e

        try:
            return _DEPLOYMENTS_ADAPTER.validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(
                "Deployment cache is not a valid deployment list; restore it or run `reset --deployments`",
                context={"path": str(self._path), "errors": e.error_count()},
            ) from e

    def save(self, deployments: list[Deployment]) -> None:
        """Raises:
        PersistenceError: 저장 실패
        """
        data = dump_json(_DEPLOYMENTS_ADAPTER.dump_python(deployments, mode="json"))
        try:
            self._backend.write(self._path, data)
        except OSError as e:
            raise PersistenceError(
                "Failed to save deployment cache",
                context={"path": str(self._path), "error": str(e)},
            ) from e

    @staticmethod
    def merge(
        existing: list[Deployment], discovered: list[Deployment]
    ) -> tuple[list[Deployment], list[Deployment]]:
        """기존 캐시 뒤에 새 배포를 덧붙임 (대소문자 무시 주소 중복 제거).

        Returns:
            (merged, added): 병합된 전체 목록과 새로 추가된 항목
        """
        seen = {d.address.lower() for d in existing}
        added: list[Deployment] = []
        for deployment in discovered:
            key = deployment.address.lower()
            if key in seen:
                continue
            seen.add(key)
            added.append(deployment)
        return [*existing, *added], added
