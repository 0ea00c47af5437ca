"""Abstract types, enums and factories."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum


class Color(Enum):
    RED = "red"
    GREEN = "green"


class Shape(ABC):
    @abstractmethod
    def area(self) -> float:
        ...


class Circle(Shape):
    def __init__(self, radius: float) -> None:
        self.radius = radius

    def area(self) -> float:
        return 3.14159 * self.radius ** 2


class Square(Shape):
    def __init__(self, side: float) -> None:
        self.side = side

    def area(self) -> float:
        return self.side ** 2


class Point:
    def __init__(self, x: int, y: int) -> None:
        self.x = x
        self.y = y

    @classmethod
    def origin(cls) -> Point:
        return cls(0, 0)


class Canvas:
    def __init__(self, color: Color = Color.RED) -> None:
        self.color = color
        self.shapes: list[Shape] = []

    def add(self, shape: Shape) -> int:
        self.shapes.append(shape)
        return len(self.shapes)

    def paint(self, shape: Shape, color: Color) -> str:
        return f"{type(shape).__name__}:{color.value}"

    def count(self) -> int:
        return len(self.shapes)


class Plugin(ABC):
    @abstractmethod
    def run(self) -> None:
        ...


class Host:
    def install(self, plugin: Plugin) -> None:
        plugin.run()


class _Sketch:
    def draw(self) -> None:
        pass
