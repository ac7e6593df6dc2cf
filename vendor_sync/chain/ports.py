"""Chain client Port Protocol 정의.

동기화 엔진이 의존하는 체인 인터페이스입니다.
JsonRpcChainClient와 테스트용 fake 구현이 structural subtyping으로 만족합니다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from vendor_sync.chain.events import ChainEvent, EventFilter


@runtime_checkable
class ChainClient(Protocol):
    """체인 조회 인터페이스.

    모든 메서드는 일시적 실패 시 RpcTransientError를 발생시킵니다.
    """

    async def current_height(self) -> int:
        """현재 체인 head 블록 번호."""
        ...

    async def query_events(
        self,
        event_filter: EventFilter,
        from_block: int,
        to_block: int,
    ) -> list[ChainEvent]:
        """[from_block, to_block] 구간의 디코딩된 이벤트 (블록 오름차순)."""
        ...

    async def call(self, address: str, signature: str, output_type: str = "address") -> object:
        """인자 없는 view 함수 호출.

        Args:
            address: 대상 컨트랙트
            signature: 함수 시그니처 (예: "oracle()")
            output_type: ABI 반환 타입 (예: "address", "uint256")
        """
        ...
