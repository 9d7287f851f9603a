UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB")


def format_bytes(count: int) -> str:
    """
    Render a byte count with binary (1024) steps and two decimals, using the
    largest unit whose value is still >= 1 once rounded: 2048 -> "2.00 KiB",
    1048575 -> "1.00 MiB".
    """
    size = float(count)
    unit = UNITS[0]
    for next_unit in UNITS[1:]:
        if round(size, 2) < 1024.0:
            break
        size /= 1024.0
        unit = next_unit
    return f"{size:.2f} {unit}"


class DiskUsage:
    """Running total of bytes written into a mirror. It only ever grows."""
    __slots__ = ("_bytes",)

    def __init__(self, initial: int = 0):
        if initial < 0:
            raise ValueError("Disk usage cannot be negative")
        self._bytes = initial

    @property
    def bytes(self) -> int:
        return self._bytes

    def add(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"Cannot add a negative byte count ({count}) to disk usage")
        self._bytes += count

    def __iadd__(self, count: int) -> "DiskUsage":
        self.add(count)
        return self

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DiskUsage):
            return self._bytes == other._bytes
        if isinstance(other, int):
            return self._bytes == other
        return NotImplemented

    def __int__(self) -> int:
        return self._bytes

    def __str__(self) -> str:
        return format_bytes(self._bytes)

    def __repr__(self) -> str:
        return f"DiskUsage({self._bytes})"
