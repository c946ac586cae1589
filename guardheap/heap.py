"""A deterministic guarded heap that detects leaks and buffer overruns."""

from __future__ import annotations

_END = b"END\x00"
_VALID_WIDTHS = (16, 32, 64)


class MemoryCheckFailure(AssertionError):
    """A leak or buffer overrun was detected."""


class GuardedHeap:
    """Stack-like allocator over a fixed byte array.

    Every block is preceded by a guard (its size and a zeroed word) and
    followed by the marker ``END``. Memory is only given back when the most
    recently allocated block is released; blocks freed out of LIFO order are
    stranded. Addresses are integer offsets into the heap; ``None`` stands
    for a null pointer.
    """

    def __init__(self, heap_size: int = 256, pointer_width: int = 32) -> None:
        if heap_size < 0:
            raise ValueError("heap_size must not be negative")
        if pointer_width not in _VALID_WIDTHS:
            raise ValueError(f"pointer_width must be one of {_VALID_WIDTHS}")
        self.heap_size = heap_size
        self.pointer_width = pointer_width
        self._word = pointer_width // 8
        self._guard_size = 2 * self._word
        self._memory = bytearray(heap_size)
        self._top = 0
        self._count = 0
        self._countdown: int | None = None
        self._live: set[int] = set()

    @classmethod
    def from_config(cls, config) -> "GuardedHeap":
        """Create a heap sized and aligned from a ``UnityConfig``."""
        return cls(config.internal_heap_size_bytes, config.pointer_width)

    def __enter__(self) -> "GuardedHeap":
        self.start_test()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.end_test()
        else:
            self._countdown = None
        return False

    def start_test(self) -> None:
        """Reset the allocation count and disable forced failures."""
        self._count = 0
        self._countdown = None

    def end_test(self) -> None:
        """Disable forced failures and fail if any block is still allocated."""
        self._countdown = None
        if self._count != 0:
            raise MemoryCheckFailure("This test leaks!")

    def fail_after(self, countdown: int) -> None:
        """Let ``countdown`` more allocations succeed, then fail; negative disables."""
        self._countdown = None if countdown < 0 else countdown

    def outstanding(self) -> int:
        """Number of blocks allocated and not yet released."""
        return self._count

    def _round_up(self, size: int) -> int:
        align = self._word
        return -(-size // align) * align

    def malloc(self, size: int) -> int | None:
        """Allocate ``size`` bytes; return the address or ``None`` on failure."""
        if size < 0:
            raise ValueError("size must not be negative")
        total = self._guard_size + self._round_up(size + len(_END))
        if self._countdown is not None:
            if self._countdown == 0:
                return None
            self._countdown -= 1
        if size == 0:
            return None
        if self._top + total > self.heap_size:
            return None
        start = self._top
        self._top += total
        self._count += 1
        address = start + self._guard_size
        self._memory[start:start + self._word] = size.to_bytes(self._word, "little")
        self._memory[start + self._word:address] = bytes(self._word)
        self._memory[address + size:address + size + len(_END)] = _END
        self._live.add(address)
        return address

    def calloc(self, num: int, size: int) -> int | None:
        """Allocate ``num * size`` zeroed bytes."""
        if num < 0 or size < 0:
            raise ValueError("num and size must not be negative")
        total = num * size
        address = self.malloc(total)
        if address is None:
            return None
        self._memory[address:address + total] = bytes(total)
        return address

    def _check_live(self, address: int) -> None:
        if address not in self._live:
            raise ValueError(f"address {address} was not allocated by this heap")

    def _block_size(self, address: int) -> int:
        start = address - self._guard_size
        return int.from_bytes(self._memory[start:start + self._word], "little")

    def _is_overrun(self, address: int) -> bool:
        start = address - self._guard_size
        guard_space = int.from_bytes(self._memory[start + self._word:address], "little")
        size = self._block_size(address)
        marker = bytes(self._memory[address + size:address + size + len(_END)])
        return guard_space != 0 or marker != _END

    def _release(self, address: int) -> None:
        block = self._round_up(self._block_size(address) + len(_END))
        self._count -= 1
        self._live.discard(address)
        if address == self._top - block:
            self._top -= self._guard_size + block

    def free(self, address: int | None) -> None:
        """Release a block; raise ``MemoryCheckFailure`` if it was overrun."""
        if address is None:
            return
        self._check_live(address)
        overrun = self._is_overrun(address)
        self._release(address)
        if overrun:
            raise MemoryCheckFailure("Buffer overrun detected during free()")

    def realloc(self, address: int | None, size: int) -> int | None:
        """Resize a block, keeping its contents; ``None`` on failure.

        On failure the old block stays allocated. A size of zero frees the
        block and returns ``None``.
        """
        if address is None:
            return self.malloc(size)
        if size < 0:
            raise ValueError("size must not be negative")
        self._check_live(address)
        if self._is_overrun(address):
            self._release(address)
            raise MemoryCheckFailure("Buffer overrun detected during realloc()")
        if size == 0:
            self._release(address)
            return None
        old_size = self._block_size(address)
        if old_size >= size:
            return address
        old_total = self._round_up(old_size + len(_END))
        grows_in_place = (
            address == self._top - old_total
            and self._top - old_total + self._round_up(size + len(_END)) <= self.heap_size
        )
        if grows_in_place:
            self._release(address)
            return self.malloc(size)
        new_address = self.malloc(size)
        if new_address is None:
            return None
        self._memory[new_address:new_address + old_size] = self._memory[address:address + old_size]
        self._release(address)
        return new_address

    def _check_range(self, address: int, length: int) -> None:
        if length < 0:
            raise ValueError("length must not be negative")
        if address < 0 or address + length > self.heap_size:
            raise IndexError(f"access of {length} bytes at {address} is outside the heap")

    def read(self, address: int, length: int) -> bytes:
        """Return ``length`` raw bytes of the heap starting at ``address``."""
        self._check_range(address, length)
        return bytes(self._memory[address:address + length])

    def write(self, address: int, data: bytes) -> None:
        """Write raw bytes into the heap at ``address``, guards included."""
        self._check_range(address, len(data))
        self._memory[address:address + len(data)] = data