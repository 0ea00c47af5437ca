"""Plain arithmetic members."""

from __future__ import annotations

from collections.abc import Mapping


class Calculator:
    def f(self, x: int, y: str) -> str:
        return f"{x}{y}"

    def divide(self, a: int, b: int) -> float:
        return a / b

    def describe(self, value: int | str) -> str:
        return repr(value)


class Inventory:
    def __init__(self, items: list[str], counts: Mapping[str, int]) -> None:
        self.items = items
        self.counts = counts

    def total(self) -> int:
        return sum(self.counts.values())


class Ticket:
    issued = 0

    @staticmethod
    def issue() -> int:
        Ticket.issued += 1
        return Ticket.issued
