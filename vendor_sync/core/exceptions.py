"""Custom exception hierarchy for the vendor sync engine.

Exceptions are grouped by how the run reacts to them:

    - Fatal (Fail Fast): configuration, registry and persistence errors
    - Recoverable (Local Retry): transient RPC failures during batch queries
    - Isolated (Record and Continue): failures scoped to a single entity

Rules Applied:
    - #23 Exception Handling: Domain-driven hierarchy, add_note()
"""


class SyncError(Exception):
    """모든 동기화 관련 예외의 기본 클래스.

    이 예외를 직접 발생시키지 말고, 하위 클래스를 사용하세요.

    Attributes:
        message: 에러 메시지
        context: 추가 컨텍스트 정보 (디버깅용)
    """

    def __init__(self, message: str, *, context: dict[str, object] | None = None) -> None:
        """SyncError 초기화.

        Args:
            message: 에러 메시지
            context: 추가 컨텍스트 정보 (선택)
        """
        super().__init__(message)
        self.message = message
        self.context: dict[str, object] = context or {}

    def __str__(self) -> str:
        """에러 메시지와 컨텍스트를 포함한 문자열 반환."""
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


# =============================================================================
# Configuration Errors (Unrecoverable - Fail before any network call)
# =============================================================================


class ConfigurationError(SyncError):
    """필수 설정 누락 (예: cold start 시 factory start block 미설정).

    Example:
        >>> raise ConfigurationError(
        ...     "ROUTER_FACTORY_START_BLOCK is not set",
        ...     context={"setting": "ROUTER_FACTORY_START_BLOCK"}
        ... )
    """


# =============================================================================
# Infrastructure Errors (Unrecoverable for this run)
# =============================================================================


class InfrastructureError(SyncError):
    """인프라 관련 오류 (파일 I/O 등)."""


class PersistenceError(InfrastructureError):
    """체크포인트 저장 실패.

    저장에 실패하면 재개 가능성이 깨지므로 즉시 실행을 중단합니다.
    """


class RegistryError(InfrastructureError):
    """Oracle registry / composite detail 파일 로드 실패."""


# =============================================================================
# RPC Errors (Recoverable - batch halving)
# =============================================================================


class RpcError(SyncError):
    """노드 RPC 관련 오류의 기본 클래스."""


class RpcTransientError(RpcError):
    """일시적 RPC 실패 (타임아웃, 연결 실패, 결과 개수 초과 등).

    BatchEventFetcher가 batch 크기를 절반으로 줄여 재시도합니다.

    Example:
        >>> raise RpcTransientError(
        ...     "eth_getLogs failed",
        ...     context={"from_block": 19400000, "to_block": 19409999}
        ... )
    """


class RateLimitError(RpcTransientError):
    """RPC 레이트 리밋 초과 (HTTP 429).

    Attributes:
        retry_after: 재시도까지 대기 시간 (초)
    """

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.retry_after = retry_after


# =============================================================================
# Data Validation Errors (Isolated per entity)
# =============================================================================


class DataValidationError(SyncError):
    """데이터 검증 오류 (스키마 불일치, 유효하지 않은 값 등)."""


class EventDecodeError(DataValidationError):
    """이벤트 로그 / eth_call 결과 디코딩 실패."""


class EntityProcessingError(SyncError):
    """단일 entity(router/vault) 처리 실패.

    해당 entity 레코드에 기록되고, 나머지 entity 처리는 계속됩니다.
    """


# =============================================================================
# Utility Functions
# =============================================================================


def add_context_note(exc: Exception, note: str) -> None:
    """예외에 컨텍스트 노트 추가 (Python 3.11+ add_note).

    원본 Traceback을 보존하면서 디버깅 정보를 추가합니다.

    Example:
        >>> try:
        ...     await processor.process_one(deployment, state, head)
        ... except Exception as e:
        ...     add_context_note(e, f"Failed while processing {address}")
        ...     raise
    """
    exc.add_note(note)
