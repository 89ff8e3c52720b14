"""Placeholder variable generators.

Message text may contain ``{{name}}`` placeholders. Each registered name maps
to a generator producing the replacement text; a generator either takes no
arguments or receives the current :class:`~contextkit.types.ConversationState`.
"""

from __future__ import annotations

import inspect
import random
import re
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Iterable, Mapping, Union

if TYPE_CHECKING:
    from .types import ConversationState

__all__ = [
    "PLACEHOLDER_PATTERN",
    "VariableGenerator",
    "VariableRegistry",
    "default_variable_registry",
]


PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

VariableGenerator = Union[Callable[[], str], Callable[["ConversationState"], str]]
Clock = Callable[[], datetime]


def _local_now() -> datetime:
    return datetime.now().astimezone()


class VariableRegistry:
    """Mapping from placeholder name to replacement generator."""

    def __init__(self, generators: Mapping[str, VariableGenerator] | None = None) -> None:
        self._generators: dict[str, VariableGenerator] = {}
        self._wants_state: dict[str, bool] = {}
        for name, generator in (generators or {}).items():
            self.register(name, generator)

    def register(self, name: str, generator: VariableGenerator) -> None:
        self._generators[name] = generator
        self._wants_state[name] = _accepts_argument(generator)

    def unregister(self, name: str) -> None:
        self._generators.pop(name, None)
        self._wants_state.pop(name, None)

    def names(self) -> list[str]:
        return sorted(self._generators)

    def __contains__(self, name: object) -> bool:
        return name in self._generators

    def value(self, name: str, state: ConversationState | None = None) -> str:
        generator = self._generators[name]
        if self._wants_state[name]:
            return str(generator(state))  # type: ignore[call-arg]
        return str(generator())  # type: ignore[call-arg]

    def render(self, text: str, state: ConversationState | None = None) -> str:
        """Replace every registered placeholder in ``text``.

        Unknown placeholders are left untouched. Each name is generated once
        per call so repeated placeholders agree with each other.
        """
        if "{{" not in text:
            return text

        cache: dict[str, str] = {}

        def substitute(match: re.Match[str]) -> str:
            name = match.group(1)
            if name not in self._generators:
                return match.group(0)
            if name not in cache:
                cache[name] = self.value(name, state)
            return cache[name]

        return PLACEHOLDER_PATTERN.sub(substitute, text)

    def placeholders(self, text: str) -> list[str]:
        return [m.group(1) for m in PLACEHOLDER_PATTERN.finditer(text)]

    def copy(self) -> VariableRegistry:
        return VariableRegistry(dict(self._generators))

    def update(self, generators: Mapping[str, VariableGenerator] | Iterable[tuple[str, VariableGenerator]]) -> None:
        items = generators.items() if isinstance(generators, Mapping) else generators
        for name, generator in items:
            self.register(name, generator)


def _accepts_argument(generator: Callable[..., str]) -> bool:
    try:
        signature = inspect.signature(generator)
    except (TypeError, ValueError):  # pragma: no cover - builtins without signatures
        return False
    for parameter in signature.parameters.values():
        if parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD, parameter.VAR_POSITIONAL):
            return True
    return False


def default_variable_registry(
    *,
    clock: Clock = _local_now,
    username: str = "User",
    language: str = "en-US",
) -> VariableRegistry:
    """Return a registry with the built-in date, identity and model variables.

    ``{{uuid}}`` and ``{{random}}`` yield a fresh value on every expansion,
    and the date and time variables follow ``clock``. A prompt that uses any
    of them is therefore not reproducible across runs; pass a fixed ``clock``
    and unregister ``uuid``/``random`` when byte-identical output is needed.
    """

    def _state_field(attribute: str) -> Callable[[ConversationState | None], str]:
        def generator(state: ConversationState | None) -> str:
            return str(getattr(state, attribute, "") or "") if state is not None else ""

        return generator

    return VariableRegistry(
        {
            "date": lambda: clock().strftime("%Y-%m-%d"),
            "time": lambda: clock().strftime("%H:%M:%S"),
            "datetime": lambda: clock().strftime("%Y-%m-%d %H:%M:%S"),
            "iso": lambda: clock().isoformat(),
            "timestamp": lambda: str(int(clock().timestamp() * 1000)),
            "year": lambda: str(clock().year),
            "month": lambda: f"{clock().month:02d}",
            "day": lambda: f"{clock().day:02d}",
            "weekday": lambda: clock().strftime("%A"),
            "timezone": lambda: clock().tzname() or "UTC",
            "uuid": lambda: str(uuid.uuid4()),
            "random": lambda: str(random.randint(100_000, 999_999)),
            "username": lambda: username,
            "language": lambda: language,
            "model": _state_field("model"),
            "provider": _state_field("provider"),
        }
    )
