"""
Model invocation for routed tasks.

Supports:
- Local containerized models over an OpenAI-compatible HTTP endpoint (httpx)
- Anthropic (Claude) and OpenAI (GPT) through their SDKs
- Perplexity through the OpenAI SDK with Perplexity's base URL

Every failure surfaces as an InvocationError carrying a stable ErrorCode.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

import anthropic
import httpx
import openai

from .model_registry import ModelInfo, Provider, is_local_model, resolve_model
from .performance import Outcome, PerformanceRecorder
from .types import CognitiveState, RoutingDecision, StewardError

logger = logging.getLogger(__name__)

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"


class ErrorCode(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    HTTP_STATUS = "http_status"
    AUTH_REQUIRED = "auth_required"
    PARSE_ERROR = "parse_error"


class InvocationError(StewardError):
    """A model backend failed to produce a response."""

    def __init__(
        self,
        code: ErrorCode,
        model: str,
        message: str,
        status_code: int | None = None,
    ):
        self.code = code
        self.model = model
        self.status_code = status_code
        super().__init__(f"{model}: {code.value}: {message}")


class AllModelsFailedError(StewardError):
    """Every model in a decision's chain failed."""

    def __init__(self, errors: list[InvocationError]):
        self.errors = errors
        models = ", ".join(e.model for e in errors)
        super().__init__(f"All models failed: {models}")


@dataclass
class ModelResponse:
    """Response from a model backend."""

    content: str
    model: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def tokens(self) -> int | None:
        return self.metadata.get("total_tokens")


class ModelInvoker(Protocol):
    async def invoke(
        self, model: str, prompt: str, options: Mapping[str, Any] | None = None
    ) -> ModelResponse: ...


class LocalModelClient:
    """Client for local models served over an OpenAI-compatible endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:12434/engines/v1",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    async def invoke(
        self, model: str, prompt: str, options: Mapping[str, Any] | None = None
    ) -> ModelResponse:
        info = resolve_model(model)
        options = dict(options or {})
        payload: dict[str, Any] = {
            "model": info.api_model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": options.pop("max_tokens", 1024),
            "temperature": options.pop("temperature", 0.7),
            **options,
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post("/chat/completions", json=payload)
        except httpx.TimeoutException as e:
            raise InvocationError(ErrorCode.TIMEOUT, model, str(e) or "Request timeout") from e
        except httpx.ConnectError as e:
            raise InvocationError(
                ErrorCode.CONNECTION_REFUSED, model, str(e) or "Connection refused"
            ) from e
        except httpx.HTTPError as e:
            # Dropped connections, protocol and transport errors
            raise InvocationError(
                ErrorCode.CONNECTION_REFUSED, model, str(e) or type(e).__name__
            ) from e

        if response.status_code in (401, 403):
            raise InvocationError(
                ErrorCode.AUTH_REQUIRED, model, "Not authenticated", response.status_code
            )
        if not response.is_success:
            raise InvocationError(
                ErrorCode.HTTP_STATUS,
                model,
                f"HTTP {response.status_code}: {response.text[:200]}",
                response.status_code,
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise InvocationError(ErrorCode.PARSE_ERROR, model, f"Unexpected response: {e}") from e

        usage = data.get("usage") or {}
        return ModelResponse(
            content=content,
            model=model,
            metadata={
                "provider": Provider.LOCAL_DOCKER.value,
                "api_model": info.api_model,
                "total_tokens": usage.get("total_tokens"),
            },
        )


class CloudModelClient:
    """
    Client for cloud models.

    SDK clients are created lazily from environment API keys; tests may
    inject prebuilt clients per provider.
    """

    def __init__(self, clients: Mapping[Provider, Any] | None = None, timeout: float = 60.0):
        self.timeout = timeout
        self._clients: dict[Provider, Any] = dict(clients or {})

    def _client_for(self, info: ModelInfo) -> Any:
        if info.provider in self._clients:
            return self._clients[info.provider]

        env_var = {
            Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
            Provider.OPENAI: "OPENAI_API_KEY",
            Provider.PERPLEXITY: "PERPLEXITY_API_KEY",
        }.get(info.provider)
        api_key = os.environ.get(env_var) if env_var else None
        if not api_key:
            raise InvocationError(
                ErrorCode.AUTH_REQUIRED, info.name, f"Set {env_var} to use {info.provider.value}"
            )

        if info.provider is Provider.ANTHROPIC:
            client: Any = anthropic.AsyncAnthropic(api_key=api_key, timeout=self.timeout)
        elif info.provider is Provider.PERPLEXITY:
            client = openai.AsyncOpenAI(
                api_key=api_key, base_url=PERPLEXITY_BASE_URL, timeout=self.timeout
            )
        else:
            client = openai.AsyncOpenAI(api_key=api_key, timeout=self.timeout)

        self._clients[info.provider] = client
        return client

    async def invoke(
        self, model: str, prompt: str, options: Mapping[str, Any] | None = None
    ) -> ModelResponse:
        info = resolve_model(model)
        client = self._client_for(info)
        options = dict(options or {})
        max_tokens = options.pop("max_tokens", 1024)
        temperature = options.pop("temperature", 0.7)
        messages = [{"role": "user", "content": prompt}]

        try:
            if info.provider is Provider.ANTHROPIC:
                response = await client.messages.create(
                    model=info.api_model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    messages=messages,
                    **options,
                )
                content = "".join(
                    block.text for block in response.content if block.type == "text"
                )
                tokens = response.usage.input_tokens + response.usage.output_tokens
            else:
                response = await client.chat.completions.create(
                    model=info.api_model,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    messages=messages,
                    **options,
                )
                content = response.choices[0].message.content or ""
                tokens = response.usage.total_tokens if response.usage else None
        except (anthropic.APITimeoutError, openai.APITimeoutError) as e:
            raise InvocationError(ErrorCode.TIMEOUT, model, str(e)) from e
        except (anthropic.APIConnectionError, openai.APIConnectionError) as e:
            raise InvocationError(ErrorCode.CONNECTION_REFUSED, model, str(e)) from e
        except (
            anthropic.AuthenticationError,
            anthropic.PermissionDeniedError,
            openai.AuthenticationError,
            openai.PermissionDeniedError,
        ) as e:
            raise InvocationError(ErrorCode.AUTH_REQUIRED, model, str(e), e.status_code) from e
        except (anthropic.APIStatusError, openai.APIStatusError) as e:
            raise InvocationError(ErrorCode.HTTP_STATUS, model, str(e), e.status_code) from e
        except (anthropic.APIResponseValidationError, openai.APIResponseValidationError) as e:
            raise InvocationError(ErrorCode.PARSE_ERROR, model, str(e), e.status_code) from e
        except (anthropic.APIError, openai.APIError) as e:
            raise InvocationError(
                ErrorCode.HTTP_STATUS, model, str(e), getattr(e, "status_code", None)
            ) from e
        except (AttributeError, IndexError, TypeError) as e:
            raise InvocationError(ErrorCode.PARSE_ERROR, model, f"Unexpected response: {e}") from e

        return ModelResponse(
            content=content,
            model=model,
            metadata={
                "provider": info.provider.value,
                "api_model": info.api_model,
                "total_tokens": tokens,
            },
        )


class ModelDispatcher:
    """Send each model to the local or cloud client."""

    def __init__(
        self,
        local: ModelInvoker | None = None,
        cloud: ModelInvoker | None = None,
        registry: Mapping[str, ModelInfo] | None = None,
    ):
        self.local = local or LocalModelClient()
        self.cloud = cloud or CloudModelClient()
        self.registry = registry

    async def invoke(
        self, model: str, prompt: str, options: Mapping[str, Any] | None = None
    ) -> ModelResponse:
        client = self.local if is_local_model(model, self.registry) else self.cloud
        return await client.invoke(model, prompt, options)


class FallbackExecutor:
    """Execute a routed task with automatic fallback on failure."""

    def __init__(self, invoker: ModelInvoker, recorder: PerformanceRecorder | None = None):
        self.invoker = invoker
        self.recorder = recorder

    async def execute(
        self,
        decision: RoutingDecision,
        prompt: str,
        options: Mapping[str, Any] | None = None,
        task_text: str = "",
        cognitive_state: CognitiveState | None = None,
    ) -> tuple[ModelResponse, str]:
        """
        Try the primary model, then each fallback in order.

        Returns:
            (response, model_used) tuple

        Raises:
            AllModelsFailedError: If every model in the chain fails
        """
        errors: list[InvocationError] = []

        for attempt, model in enumerate(decision.all_models):
            start = time.perf_counter()
            try:
                response = await self.invoker.invoke(model, prompt, options)
            except InvocationError as e:
                latency = (time.perf_counter() - start) * 1000
                logger.warning(f"Model {model} failed ({e.code.value}), trying next fallback")
                errors.append(e)
                self._record(
                    decision,
                    Outcome(
                        success=False,
                        response_time_ms=latency,
                        error_kind=e.code.value,
                        model_used=model,
                    ),
                    task_text,
                    cognitive_state,
                    include_decision=attempt == 0,
                )
                continue

            latency = (time.perf_counter() - start) * 1000
            self._record(
                decision,
                Outcome(
                    success=True,
                    response_time_ms=latency,
                    tokens=response.tokens,
                    model_used=model,
                ),
                task_text,
                cognitive_state,
                include_decision=attempt == 0,
            )
            return response, model

        logger.error(f"All {len(errors)} models failed for {decision.metadata.task_type.value}")
        raise AllModelsFailedError(errors)

    def _record(
        self,
        decision: RoutingDecision,
        outcome: Outcome,
        task_text: str,
        cognitive_state: CognitiveState | None,
        include_decision: bool,
    ) -> None:
        if self.recorder is None:
            return
        self.recorder.record(
            decision,
            outcome,
            task_text=task_text,
            cognitive_state=cognitive_state,
            include_decision=include_decision,
        )
