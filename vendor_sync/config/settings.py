"""Pydantic Settings for configuration management.

All settings are loaded from environment variables and/or .env files
with type validation.

Features:
    - RPC endpoint, rate limit and retry parameters
    - Factory addresses and cold-start blocks
    - Recheck interval and inter-request delays
    - State / registry / log paths

Rules Applied:
    - #11 Pydantic Modeling: BaseSettings
    - #19 Git Security: No secrets in code
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Not user-configurable at runtime.
DEFAULT_BATCH_SIZE = 10_000
MIN_BATCH_SIZE = 1_000

DEFAULT_RECHECK_INTERVAL_BLOCKS = 50_000
DEFAULT_RECENT_WINDOW_BLOCKS = 10_000


class SyncSettings(BaseSettings):
    """동기화 엔진 설정.

    환경 변수 또는 .env 파일에서 설정을 로드합니다.

    Environment Variables:
        - RPC_URL: JSON-RPC 엔드포인트
        - ROUTER_FACTORY_START_BLOCK: Router factory 배포 블록 (cold start 필수)
        - EVAULT_FACTORY_START_BLOCK: EVault factory 배포 블록 (cold start 필수)
        - RECHECK_INTERVAL_BLOCKS: 재검사 간격 (기본: 50000)
        - STATE_DIR: 체크포인트 저장 경로 (기본: data/state)

    Example:
        >>> settings = get_settings()
        >>> settings.recheck_interval_blocks
        50000
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # RPC Endpoint
    # ==========================================================================
    rpc_url: str = Field(
        default="https://eth.llamarpc.com",
        description="Ethereum JSON-RPC 엔드포인트",
    )
    rpc_requests_per_minute: int = Field(
        default=300,
        ge=1,
        description="분당 최대 RPC 요청 수",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="RPC 요청 타임아웃 (초)",
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="HTTP 수준 최대 재시도 횟수",
    )
    backoff_base: float = Field(
        default=2.0,
        ge=1.0,
        le=5.0,
        description="지수 백오프 기준 값",
    )

    # ==========================================================================
    # Factories
    # ==========================================================================
    router_factory_address: str = Field(
        default="0x70B3f6F61b7Bf237DF04589DdAA842121072326A",
        description="EulerRouter factory 주소",
    )
    router_factory_start_block: PositiveInt | None = Field(
        default=None,
        description="Router factory 배포 블록 (체크포인트/캐시가 없을 때 필수)",
    )
    evault_factory_address: str = Field(
        default="0x29a56a1b8214D9Cf7c5561811750D5cBDb45CC8e",
        description="EVault (GenericFactory) 주소",
    )
    evault_factory_start_block: PositiveInt | None = Field(
        default=None,
        description="EVault factory 배포 블록 (체크포인트/캐시가 없을 때 필수)",
    )

    # ==========================================================================
    # Scheduling
    # ==========================================================================
    recheck_interval_blocks: int = Field(
        default=DEFAULT_RECHECK_INTERVAL_BLOCKS,
        ge=1,
        description="처리된 entity를 다시 조회하기까지의 최소 블록 간격",
    )
    recent_window_blocks: int = Field(
        default=DEFAULT_RECENT_WINDOW_BLOCKS,
        ge=1,
        description="체크포인트 없이 캐시만 있을 때 vault factory 재스캔 범위",
    )
    batch_delay_seconds: float = Field(
        default=0.2,
        ge=0,
        description="batch 쿼리 사이 대기 시간 (초)",
    )
    entity_delay_seconds: float = Field(
        default=0.2,
        ge=0,
        description="entity 처리 사이 대기 시간 (초)",
    )

    # ==========================================================================
    # Paths
    # ==========================================================================
    state_dir: Path = Field(
        default=Path("data/state"),
        description="체크포인트 및 deployment 캐시 저장 경로",
    )
    oracle_registry_path: Path = Field(
        default=Path("euler-oracles.json"),
        description="Oracle registry (scraper 출력) 경로",
    )
    cross_oracle_path: Path = Field(
        default=Path("cross-oracle-analysis.json"),
        description="Composite(cross) oracle 상세 테이블 경로",
    )
    log_dir: Path = Field(
        default=Path("logs"),
        description="로그 파일 저장 경로",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================
    @field_validator("state_dir", "oracle_registry_path", "cross_oracle_path", "log_dir", mode="before")
    @classmethod
    def ensure_path(cls, v: str | Path) -> Path:
        """문자열을 Path 객체로 변환."""
        return Path(v) if isinstance(v, str) else v

    @field_validator("router_factory_start_block", "evault_factory_start_block", mode="before")
    @classmethod
    def empty_as_none(cls, v: object) -> object:
        """빈 문자열 환경 변수는 미설정으로 취급."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    # ==========================================================================
    # Helper Methods
    # ==========================================================================
    @property
    def progress_path(self) -> Path:
        """전체 진행 상태(체크포인트 + entity 캐시) 파일 경로."""
        return self.state_dir / "vault-vendor-progress.json"

    def get_deployments_path(self, source: str) -> Path:
        """Source별 deployment 캐시 파일 경로.

        Example:
            >>> settings.get_deployments_path("router")
            PosixPath('data/state/router-deployments.json')
        """
        return self.state_dir / f"{source}-deployments.json"

    def ensure_directories(self) -> None:
        """State, Log 디렉토리를 생성 (이미 존재하면 무시)."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> SyncSettings:
    """설정 싱글톤 인스턴스 반환.

    Returns:
        SyncSettings 인스턴스
    """
    return SyncSettings()


def clear_settings_cache() -> None:
    """설정 캐시 초기화 (테스트용)."""
    get_settings.cache_clear()
