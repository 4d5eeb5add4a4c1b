"""Interactive collaborators: point / string / keyword / number prompts and a message sink.

Every prompt returns None when the user cancels.
"""

import logging
from collections import deque
from typing import Iterable, Protocol

import click

from .models import Point

logger = logging.getLogger(__name__)


class Prompter(Protocol):
    def get_point(self, message: str) -> Point | None: ...

    def get_string(self, message: str, default: str | None = None) -> str | None: ...

    def get_keyword(self, message: str, keywords: list[str], default: str | None = None) -> str | None: ...

    def get_double(self, message: str, default: float | None = None) -> float | None: ...

    def message(self, text: str) -> None: ...


class ScriptedPrompter:
    """Answers prompts from queued values; falls back to the prompt default."""

    def __init__(
        self,
        points: Iterable[Point] = (),
        strings: Iterable[str] = (),
        keywords: Iterable[str] = (),
        doubles: Iterable[float] = (),
    ):
        self._points = deque(points)
        self._strings = deque(strings)
        self._keywords = deque(keywords)
        self._doubles = deque(doubles)
        self.messages: list[str] = []

    def get_point(self, message: str) -> Point | None:
        return self._points.popleft() if self._points else None

    def get_string(self, message: str, default: str | None = None) -> str | None:
        return self._strings.popleft() if self._strings else default

    def get_keyword(self, message: str, keywords: list[str], default: str | None = None) -> str | None:
        if not self._keywords:
            return default
        answer = self._keywords.popleft()
        for kw in keywords:
            if kw.casefold() == answer.casefold():
                return kw
        return None

    def get_double(self, message: str, default: float | None = None) -> float | None:
        return self._doubles.popleft() if self._doubles else default

    def message(self, text: str) -> None:
        self.messages.append(text)
        logger.info(text)


class ConsolePrompter:
    """Terminal prompts through click.

    With assume_yes, keyword prompts take their default without asking;
    point, string and number prompts still ask.
    """

    def __init__(self, assume_yes: bool = False):
        self.assume_yes = assume_yes

    def get_point(self, message: str) -> Point | None:
        raw = click.prompt(f"{message} (x,y)", default="", show_default=False)
        if not raw.strip():
            return None
        try:
            x, y = (float(part) for part in raw.replace(" ", "").split(","))
        except ValueError:
            click.echo(f"Not a point: {raw!r}")
            return None
        return Point(x=x, y=y)

    def get_string(self, message: str, default: str | None = None) -> str | None:
        return click.prompt(message, default=default, show_default=bool(default))

    def get_keyword(self, message: str, keywords: list[str], default: str | None = None) -> str | None:
        if self.assume_yes and default is not None:
            click.echo(f"{message} {default}")
            return default
        return click.prompt(
            message,
            type=click.Choice(keywords, case_sensitive=False),
            default=default,
        )

    def get_double(self, message: str, default: float | None = None) -> float | None:
        return click.prompt(message, type=float, default=default)

    def message(self, text: str) -> None:
        click.echo(text)
