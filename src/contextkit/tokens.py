"""Token counters and advisory budget estimation for the final payload."""

from __future__ import annotations

import json
import logging
import math
import threading
from typing import Any, Callable, Dict, Mapping, Protocol, Sequence

import tiktoken

from .types import BudgetEstimate, Message

__all__ = [
    "TokenCounterProtocol",
    "ApproxByteCounter",
    "TiktokenCounter",
    "TokenCounterRegistry",
    "estimate_text_tokens",
    "estimate_message_tokens",
    "estimate_budget",
]

LOGGER = logging.getLogger(__name__)
_DEFAULT_BYTES_PER_TOKEN = 4
_MESSAGE_OVERHEAD = 4
# Flat charge for an image or video part; providers bill these separately.
_MEDIA_PART_TOKENS = 85
# Minimum headroom to leave for prompt construction overhead
_PROMPT_HEADROOM = 6_000


class TokenCounterProtocol(Protocol):
    """Protocol describing tokenizer implementations."""

    model_name: str | None

    def count(self, text: str) -> int:
        """Return the precise token count for *text*."""
        ...

    def estimate(self, text: str) -> int:
        """Return a deterministic fallback estimate when precise counts fail."""
        ...


class ApproxByteCounter:
    """Deterministic fallback counter that estimates tokens via byte length."""

    def __init__(self, *, model_name: str | None = None, charset: str = "utf-8", bytes_per_token: int = _DEFAULT_BYTES_PER_TOKEN) -> None:
        self.model_name = model_name
        self._charset = charset
        self._bytes_per_token = max(1, int(bytes_per_token))

    def count(self, text: str) -> int:
        return self.estimate(text)

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        data = text.encode(self._charset, errors="ignore")
        return max(1, math.ceil(len(data) / self._bytes_per_token))


class TiktokenCounter:
    """Token counter backed by OpenAI's tiktoken package."""

    def __init__(self, model_name: str, *, encoding_name: str | None = None) -> None:
        if not model_name:
            raise ValueError("model_name is required for TiktokenCounter")
        self.model_name = model_name
        self._encoding_name = encoding_name
        self._encoding: Any = None
        self._fallback = ApproxByteCounter(model_name=model_name)

    def count(self, text: str) -> int:
        if not text:
            return 0
        try:
            return len(self._load_encoding().encode(text))
        except Exception:
            LOGGER.debug("tiktoken encode failed; falling back to approximation", exc_info=True)
            return self._fallback.estimate(text)

    def estimate(self, text: str) -> int:
        return self._fallback.estimate(text)

    def _load_encoding(self) -> Any:
        # Encodings are fetched lazily; the first call may hit the network.
        if self._encoding is None:
            if self._encoding_name:
                self._encoding = tiktoken.get_encoding(self._encoding_name)
            else:
                try:
                    self._encoding = tiktoken.encoding_for_model(self.model_name)
                except KeyError:
                    LOGGER.debug("Falling back to cl100k_base encoding for model %s", self.model_name)
                    self._encoding = tiktoken.get_encoding("cl100k_base")
        return self._encoding


class TokenCounterRegistry:
    """Picks the counter used for a model's budget estimate.

    Models are matched case-insensitively. A model without a registered
    counter gets one from ``factory`` (cached for later requests) when a
    factory is set, and the shared fallback otherwise.

    Example:
        counters = TokenCounterRegistry(factory=TiktokenCounter)
        engine = ContextEngine(build_pipeline(), token_counter=counters)
    """

    def __init__(
        self,
        counters: Mapping[str, TokenCounterProtocol] | None = None,
        *,
        factory: Callable[[str], TokenCounterProtocol] | None = None,
        fallback: TokenCounterProtocol | None = None,
    ) -> None:
        self._factory = factory
        self._fallback = fallback or ApproxByteCounter()
        self._counters: Dict[str, TokenCounterProtocol] = {}
        self._lock = threading.Lock()
        for model_name, counter in (counters or {}).items():
            self.register(model_name, counter)

    def register(self, model_name: str, counter: TokenCounterProtocol) -> None:
        key = _model_key(model_name)
        if not key:
            raise ValueError("model_name is required for token counter registration")
        with self._lock:
            self._counters[key] = counter

    def unregister(self, model_name: str) -> None:
        with self._lock:
            self._counters.pop(_model_key(model_name), None)

    def has(self, model_name: str | None) -> bool:
        key = _model_key(model_name)
        with self._lock:
            return bool(key) and key in self._counters

    def counter_for(self, model_name: str | None) -> TokenCounterProtocol:
        """Return the counter for ``model_name``, building one if needed."""
        key = _model_key(model_name)
        if not key:
            return self._fallback
        with self._lock:
            counter = self._counters.get(key)
            if counter is None and self._factory is not None:
                try:
                    counter = self._factory(str(model_name).strip())
                except Exception:
                    LOGGER.warning("Token counter factory failed for %s; using fallback", model_name, exc_info=True)
                    return self._fallback
                self._counters[key] = counter
        return counter or self._fallback


def _model_key(model_name: str | None) -> str:
    return (model_name or "").strip().lower()


# -----------------------------------------------------------------------------
# Estimation
# -----------------------------------------------------------------------------


def estimate_text_tokens(text: str, *, counter: TokenCounterProtocol | None = None) -> int:
    """Estimate token count for raw text.

    Uses the provided counter if available, otherwise falls back to a
    byte-based heuristic (4 bytes ~ 1 token).
    """
    if not text:
        return 0
    active = counter or ApproxByteCounter()
    try:
        return int(active.count(text))
    except Exception:
        LOGGER.debug("Token counter failed; using heuristic", exc_info=True)
        return active.estimate(text)


def estimate_message_tokens(
    message: Message | Mapping[str, Any],
    *,
    counter: TokenCounterProtocol | None = None,
) -> int:
    """Estimate token count for a single message, wire dict or Message.

    Includes overhead for role and message boundary tokens, the serialized
    tool calls, and a flat charge per media content part.
    """
    if isinstance(message, Message):
        payload: Mapping[str, Any] = message.to_chat_param()
    else:
        payload = message

    tokens = _MESSAGE_OVERHEAD if payload.get("role") else 0
    content = payload.get("content") or ""
    if isinstance(content, str):
        tokens += estimate_text_tokens(content, counter=counter)
    else:
        for part in content:
            if part.get("type") == "text":
                tokens += estimate_text_tokens(str(part.get("text", "")), counter=counter)
            else:
                tokens += _MEDIA_PART_TOKENS

    tool_calls = payload.get("tool_calls")
    if tool_calls:
        tokens += estimate_text_tokens(json.dumps(list(tool_calls), sort_keys=True), counter=counter)
    return tokens


def estimate_budget(
    messages: Sequence[Message | Mapping[str, Any]],
    *,
    context_limit: int,
    response_reserve: int = 0,
    tools: Sequence[Mapping[str, Any]] | None = None,
    counter: TokenCounterProtocol | None = None,
) -> BudgetEstimate:
    """Estimate how the prepared payload fits into the context window."""
    prompt_tokens = sum(estimate_message_tokens(m, counter=counter) for m in messages)
    if tools:
        prompt_tokens += estimate_text_tokens(json.dumps(list(tools), sort_keys=True), counter=counter)

    limit = max(0, int(context_limit))
    completion_budget = max(0, min(response_reserve, max(0, limit - _PROMPT_HEADROOM)))
    headroom = limit - prompt_tokens - completion_budget

    if headroom >= 0:
        verdict, reason = "ok", "within-budget"
    elif headroom >= -_PROMPT_HEADROOM:
        verdict, reason = "needs_summary", "exceeds-budget"
    else:
        verdict, reason = "reject", "exceeds-emergency"

    return BudgetEstimate(
        prompt_tokens=prompt_tokens,
        completion_budget=completion_budget,
        total_budget=limit,
        headroom=headroom,
        verdict=verdict,  # type: ignore[arg-type]
        reason=reason,
    )
