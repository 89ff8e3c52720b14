"""Model capability lookups used to gate tools and attachments."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

__all__ = ["CapabilityChecker", "ModelCard", "ModelCapabilities"]


CapabilityChecker = Callable[[str, str], bool]


@dataclass(slots=True, frozen=True)
class ModelCard:
    """Abilities of one model as reported by its provider.

    Attributes:
        id: Model identifier.
        provider: Provider identifier; empty matches any provider.
        function_call: Whether the model accepts tool definitions.
        vision: Whether the model accepts image content parts.
        video: Whether the model accepts video content parts.
        context_window_tokens: Context window size, when known.
    """

    id: str
    provider: str = ""
    function_call: bool = False
    vision: bool = False
    video: bool = False
    context_window_tokens: int | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ModelCard:
        """Build a card from a provider model listing entry.

        Abilities may be given flat (``functionCall``) or nested under
        ``abilities``.
        """
        abilities = data.get("abilities") or {}

        def flag(*keys: str) -> bool:
            for key in keys:
                if key in data:
                    return bool(data[key])
                if key in abilities:
                    return bool(abilities[key])
            return False

        window = data.get("contextWindowTokens", data.get("context_window_tokens"))
        return cls(
            id=str(data["id"]),
            provider=str(data.get("providerId") or data.get("provider") or ""),
            function_call=flag("functionCall", "function_call"),
            vision=flag("vision"),
            video=flag("video"),
            context_window_tokens=int(window) if window else None,
        )


class ModelCapabilities:
    """Capability table answering the three checker questions.

    Lookups are case-insensitive. A card registered without a provider
    applies to every provider serving that model id. Unknown models report no
    capabilities, so their content degrades instead of failing at the
    provider.
    """

    def __init__(self, cards: Iterable[ModelCard | Mapping[str, Any]] = ()) -> None:
        self._cards: dict[tuple[str, str], ModelCard] = {}
        for card in cards:
            self.register(card)

    @classmethod
    def from_file(cls, path: str | Path) -> ModelCapabilities:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(raw)

    def register(self, card: ModelCard | Mapping[str, Any]) -> None:
        item = card if isinstance(card, ModelCard) else ModelCard.from_mapping(card)
        self._cards[(item.provider.lower(), item.id.lower())] = item

    def card(self, model: str, provider: str) -> ModelCard | None:
        key_model = (model or "").lower()
        return self._cards.get(((provider or "").lower(), key_model)) or self._cards.get(
            ("", key_model)
        )

    def supports_function_calling(self, model: str, provider: str) -> bool:
        card = self.card(model, provider)
        return bool(card and card.function_call)

    def supports_vision(self, model: str, provider: str) -> bool:
        card = self.card(model, provider)
        return bool(card and card.vision)

    def supports_video(self, model: str, provider: str) -> bool:
        card = self.card(model, provider)
        return bool(card and card.video)

    def context_window(self, model: str, provider: str) -> int | None:
        card = self.card(model, provider)
        return card.context_window_tokens if card else None

    def __len__(self) -> int:
        return len(self._cards)
