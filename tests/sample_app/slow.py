"""Members that take too long."""

import time


class Sleeper:
    def hang(self) -> None:
        time.sleep(60)

    def nap(self) -> int:
        return 0

    def ask(self) -> str:
        return input("name? ")
