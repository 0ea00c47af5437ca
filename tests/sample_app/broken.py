"""A module that fails while importing."""

raise RuntimeError("module refuses to import")


class Broken:
    def ping(self) -> int:
        return 1
