"""
Agent runtime contract and an environment-backed runtime for Lambda.

The host runtime supplies settings, a text-completion primitive and a
service registry. `LambdaRuntime` is the stand-alone implementation used by
the Lambda entrypoint: env settings plus Bedrock Claude for completions.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from . import llm
from .config import Settings, load_settings
from .logs import log_event

logger = logging.getLogger(__name__)

Callback = Callable[[str], Awaitable[None]]


class AgentRuntime(Protocol):
    def get_setting(self, key: str) -> Any: ...

    async def use_model(self, prompt: str) -> str | None: ...

    def get_service(self, name: str) -> Any: ...


class LambdaRuntime:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()
        self._services: dict[str, Any] = {}

    def get_setting(self, key: str) -> str | None:
        return os.getenv(key)

    def register_service(self, name: str, service: Any) -> None:
        self._services[name] = service

    def get_service(self, name: str) -> Any:
        return self._services.get(name)

    async def use_model(self, prompt: str) -> str | None:
        """Return the completion text, or None once every attempt failed."""
        model_id = self.settings.llm_model
        for attempt in range(max(1, self.settings.llm_max_retries)):
            try:
                t0 = time.time()
                out = await asyncio.to_thread(llm.complete, model_id, prompt)
                log_event(
                    logger,
                    "llm_ok",
                    model=model_id,
                    ms=int((time.time() - t0) * 1000),
                    prompt_chars=len(prompt),
                    out_chars=len(out or ""),
                )
                return out
            except Exception as e:
                log_event(
                    logger, "llm_retry", logging.WARNING, model=model_id, attempt=attempt + 1, error=str(e)
                )
        log_event(logger, "llm_failed", logging.WARNING, model=model_id)
        return None
