"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import Optional

from token_server.lifecycle.state import ServerLifecycle
from token_server.pipeline.dispatcher import DispatchContext


@dataclass(frozen=True)
class WorkerContext:
    """Dependencies shared across handler threads."""

    dispatch: DispatchContext
    lifecycle: Optional[ServerLifecycle] = None
    max_body_bytes: Optional[int] = None
