"""Post-modifiers applied to captured command output."""

from __future__ import annotations

from enum import IntEnum
from typing import Iterable, Protocol

from .errors import ModifierChainError, ModifierError, UnknownTrimOption

__all__ = [
    "PostModifier",
    "TrimOption",
    "TrimModifier",
    "apply_modifiers",
    "trim_both",
    "trim_left",
    "trim_right",
]


class PostModifier(Protocol):
    """Pure text transformation; failures raise ModifierError."""

    def process(self, content: str) -> str: ...


class TrimOption(IntEnum):
    """Which end(s) of the text a TrimModifier strips."""

    RIGHT = 0
    LEFT = 1
    BOTH = 2


class TrimModifier:
    """Strips characters belonging to ``chars`` from one or both ends.

    ``chars`` is a set of characters, not a pattern. The option is checked
    when ``process`` runs, so an out-of-range value only fails at use.
    """

    def __init__(self, option: TrimOption | int, chars: str) -> None:
        self.option = option
        self.chars = chars

    def process(self, content: str) -> str:
        if self.option == TrimOption.RIGHT:
            return content.rstrip(self.chars)
        if self.option == TrimOption.LEFT:
            return content.lstrip(self.chars)
        if self.option == TrimOption.BOTH:
            return content.strip(self.chars)
        raise UnknownTrimOption(self.option)

    def __repr__(self) -> str:
        try:
            option = TrimOption(self.option).name
        except ValueError:
            option = repr(self.option)
        return f"TrimModifier({option}, {self.chars!r})"


def trim_right(chars: str) -> TrimModifier:
    return TrimModifier(TrimOption.RIGHT, chars)


def trim_left(chars: str) -> TrimModifier:
    return TrimModifier(TrimOption.LEFT, chars)


def trim_both(chars: str) -> TrimModifier:
    return TrimModifier(TrimOption.BOTH, chars)


def apply_modifiers(content: str, modifiers: Iterable[PostModifier]) -> str:
    """Fold ``content`` through ``modifiers`` left to right.

    Args:
        content: Initial text
        modifiers: Modifiers in application order

    Returns:
        Output of the last modifier (``content`` itself for an empty chain)

    Raises:
        ModifierChainError: On the first failing modifier. ``partial`` holds the
            value that modifier received; its error is chained as ``__cause__``.
    """
    result = content
    for index, modifier in enumerate(modifiers):
        try:
            result = modifier.process(result)
        except ModifierError as e:
            raise ModifierChainError(result, index, modifier) from e
    return result
