"""A class whose members take class objects."""

from __future__ import annotations

from sample_app.shapes import Shape


class Registry:
    def __init__(self) -> None:
        self.kinds: list[type] = []

    def register(self, kind: type) -> None:
        self.kinds.append(kind)

    def register_shape(self, kind: type[Shape]) -> None:
        self.kinds.append(kind)

    def size(self) -> int:
        return len(self.kinds)
