"""Context binding utilities for structured logging.

Sync runs are strictly sequential, but the run id, source and entity are
still carried in contextvars so that nested helpers log with the same
context as the processor that called them. Values are scoped with
``sync_context()`` and restored when the block exits.

Rules Applied:
    - #15 Logging Standards: Context binding with logger.bind()
    - #10 Python Standards: contextvars for async safety
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Iterator

    from loguru import Logger

current_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)
current_source: ContextVar[str | None] = ContextVar("source", default=None)
current_entity: ContextVar[str | None] = ContextVar("entity", default=None)


def generate_run_id() -> str:
    """Generate a short unique run identifier (e.g., ``run_1a2b3c4d``)."""
    return f"run_{uuid.uuid4().hex[:8]}"


@contextmanager
def sync_context(
    *,
    run_id: str | None = None,
    source: str | None = None,
    entity: str | None = None,
) -> Iterator[None]:
    """Scope sync context to a block.

    Entering a source scope starts with no entity, so pass-level lines
    are never attributed to the last entity of a previous pass.

    Example:
        >>> with sync_context(source="vault"):
        ...     with sync_context(entity="0xabc..."):
        ...         get_sync_logger().info("Analyzing")
    """
    tokens: list[tuple[ContextVar[str | None], Token[str | None]]] = []
    if run_id is not None:
        tokens.append((current_run_id, current_run_id.set(run_id)))
    if source is not None:
        tokens.append((current_source, current_source.set(source)))
        tokens.append((current_entity, current_entity.set(entity)))
    elif entity is not None:
        tokens.append((current_entity, current_entity.set(entity)))
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def get_sync_logger(
    *,
    run_id: str | None = None,
    source: str | None = None,
    entity: str | None = None,
    **extra: str,
) -> Logger:
    """Get a logger with sync context bound.

    Values passed here override the enclosing ``sync_context()`` for this
    logger only; they are not stored.

    Args:
        run_id: Identifier of the current sync run
        source: Discovery source key (e.g., "router", "vault")
        entity: Entity address being processed
        **extra: Additional context key-value pairs

    Returns:
        Logger instance with context bound
    """
    ctx = get_current_context()
    for key, value in (("run_id", run_id), ("source", source), ("entity", entity)):
        if value is not None:
            ctx[key] = value

    bound: dict[str, str] = {key: value for key, value in ctx.items() if value}
    bound.update(extra)
    return logger.bind(**bound)


def get_current_context() -> dict[str, str | None]:
    """Return the context values currently set in this task."""
    return {
        "run_id": current_run_id.get(),
        "source": current_source.get(),
        "entity": current_entity.get(),
    }
