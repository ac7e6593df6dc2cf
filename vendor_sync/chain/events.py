"""Typed event records decoded at the chain-client boundary.

Raw ``eth_getLogs`` entries are turned into frozen Pydantic models here;
nothing past this module inspects topics or data payloads.

Events:
    - ContractDeployed: EulerRouter factory deployment
    - ProxyCreated: EVault factory (GenericFactory) proxy deployment
    - ConfigSet: router (asset0, asset1) → oracle adapter configuration
    - ResolvedVaultSet: router vault → asset resolution

Rules Applied:
    - #11 Pydantic Modeling: frozen=True
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Self

from eth_utils import encode_hex
from pydantic import BaseModel, ConfigDict

from vendor_sync.chain.abi import decode_address, decode_values, event_topic, normalize_address
from vendor_sync.core.exceptions import EventDecodeError


class ChainEvent(BaseModel):
    """Decoded event log.

    Attributes:
        address: Emitting contract (checksum)
        block_number: Block the log was included in
        log_index: Position of the log within the block
    """

    model_config = ConfigDict(frozen=True)

    signature: ClassVar[str] = ""
    indexed_count: ClassVar[int] = 0

    address: str
    block_number: int
    log_index: int = 0

    @classmethod
    def topic0(cls) -> str:
        """keccak256 of the canonical signature."""
        return event_topic(cls.signature)

    @classmethod
    def decode_fields(cls, topics: list[str], data: str) -> dict[str, Any]:
        """Decode indexed topics + data into model fields."""
        raise NotImplementedError

    @classmethod
    def from_log(cls, log: Mapping[str, Any]) -> Self:
        """Decode a raw JSON-RPC log entry.

        Raises:
            EventDecodeError: wrong topic count or malformed payload
        """
        topics = list(log.get("topics") or [])
        if len(topics) != cls.indexed_count + 1:
            raise EventDecodeError(
                f"{cls.__name__}: expected {cls.indexed_count + 1} topics, got {len(topics)}",
                context={"address": log.get("address"), "block": log.get("blockNumber")},
            )
        fields = cls.decode_fields(topics[1:], log.get("data") or "0x")
        return cls(
            address=normalize_address(str(log.get("address", ""))),
            block_number=_to_int(log.get("blockNumber")),
            log_index=_to_int(log.get("logIndex", 0)),
            **fields,
        )


class ContractDeployed(ChainEvent):
    """``ContractDeployed(address indexed router, address indexed deployer, uint256 timestamp)``."""

    signature: ClassVar[str] = "ContractDeployed(address,address,uint256)"
    indexed_count: ClassVar[int] = 2

    router: str
    deployer: str
    timestamp: int

    @classmethod
    def decode_fields(cls, topics: list[str], data: str) -> dict[str, Any]:
        (timestamp,) = decode_values(["uint256"], data)
        return {
            "router": decode_address(topics[0]),
            "deployer": decode_address(topics[1]),
            "timestamp": int(timestamp),
        }

    @property
    def deployed_address(self) -> str:
        return self.router


class ProxyCreated(ChainEvent):
    """``ProxyCreated(address indexed proxy, bool upgradeable, address implementation, bytes trailingData)``."""

    signature: ClassVar[str] = "ProxyCreated(address,bool,address,bytes)"
    indexed_count: ClassVar[int] = 1

    proxy: str
    upgradeable: bool
    implementation: str
    trailing_data: str = "0x"

    @classmethod
    def decode_fields(cls, topics: list[str], data: str) -> dict[str, Any]:
        upgradeable, implementation, trailing = decode_values(["bool", "address", "bytes"], data)
        return {
            "proxy": decode_address(topics[0]),
            "upgradeable": bool(upgradeable),
            "implementation": normalize_address(implementation),
            "trailing_data": encode_hex(trailing),
        }

    @property
    def deployed_address(self) -> str:
        return self.proxy


class ConfigSet(ChainEvent):
    """``ConfigSet(address indexed asset0, address indexed asset1, address indexed oracle)``."""

    signature: ClassVar[str] = "ConfigSet(address,address,address)"
    indexed_count: ClassVar[int] = 3

    asset0: str
    asset1: str
    oracle: str

    @classmethod
    def decode_fields(cls, topics: list[str], data: str) -> dict[str, Any]:
        return {
            "asset0": decode_address(topics[0]),
            "asset1": decode_address(topics[1]),
            "oracle": decode_address(topics[2]),
        }

    @property
    def pair_key(self) -> str:
        return f"{self.asset0}-{self.asset1}"


class ResolvedVaultSet(ChainEvent):
    """``ResolvedVaultSet(address indexed vault, address indexed asset)``."""

    signature: ClassVar[str] = "ResolvedVaultSet(address,address)"
    indexed_count: ClassVar[int] = 2

    vault: str
    asset: str

    @classmethod
    def decode_fields(cls, topics: list[str], data: str) -> dict[str, Any]:
        return {
            "vault": decode_address(topics[0]),
            "asset": decode_address(topics[1]),
        }


EVENT_TYPES: tuple[type[ChainEvent], ...] = (
    ContractDeployed,
    ProxyCreated,
    ConfigSet,
    ResolvedVaultSet,
)

_EVENTS_BY_TOPIC: dict[str, type[ChainEvent]] = {cls.topic0(): cls for cls in EVENT_TYPES}


@dataclass(frozen=True)
class EventFilter:
    """Log filter: one emitting contract, one or more event types (OR-ed on topic0)."""

    address: str
    event_types: tuple[type[ChainEvent], ...]

    @property
    def topics(self) -> list[list[str]]:
        return [[cls.topic0() for cls in self.event_types]]

    def describe(self) -> str:
        names = ",".join(cls.__name__ for cls in self.event_types)
        return f"{self.address}:{names}"


def decode_log(log: Mapping[str, Any]) -> ChainEvent:
    """Dispatch a raw log to its typed record by topic0.

    Raises:
        EventDecodeError: unknown topic0 or malformed log
    """
    topics = log.get("topics") or []
    if not topics:
        raise EventDecodeError("Log has no topics", context={"address": log.get("address")})
    event_cls = _EVENTS_BY_TOPIC.get(str(topics[0]).lower())
    if event_cls is None:
        raise EventDecodeError(
            "Unknown event topic",
            context={"topic0": topics[0], "address": log.get("address")},
        )
    return event_cls.from_log(log)


def _to_int(value: object) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith("0x") else int(value)
        except ValueError as e:
            raise EventDecodeError(f"Invalid quantity: {value}") from e
    raise EventDecodeError(f"Invalid quantity: {value!r}")
