"""Split an input byte stream into fixed-size chunks."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator

__all__ = ("iter_chunks",)


async def iter_chunks(data: bytes | AsyncIterable[bytes], part_size: int) -> AsyncIterator[bytes]:
    """Re-block input into chunks of exactly ``part_size`` bytes.

    Every chunk except the last has length ``part_size``; the last one may be
    shorter. Empty input yields nothing.

    Args:
        data: Whole payload or an async byte stream with arbitrary chunking
        part_size: Size of each yielded chunk in bytes

    Yields:
        Chunks of the input, in order
    """
    if part_size <= 0:
        raise ValueError(f"part_size must be positive, got {part_size}")

    if isinstance(data, (bytes, bytearray, memoryview)):
        view = bytes(data)
        for offset in range(0, len(view), part_size):
            yield view[offset : offset + part_size]
        return

    buffer = bytearray()
    async for piece in data:
        buffer.extend(piece)
        while len(buffer) >= part_size:
            yield bytes(buffer[:part_size])
            del buffer[:part_size]

    if buffer:
        yield bytes(buffer)
