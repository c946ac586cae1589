# guardheap

`guardheap` gives you a simulated, fixed-size heap for exercising code that
manages memory by hand. It is meant to be used inside tests:

- every block carries a guard header (its size and a zeroed word) and an
  `END` marker after its last byte, so writes past the end of a block, or into
  the guard, are reported when the block is freed or reallocated;
- the number of outstanding blocks is tracked, and ending a test with blocks
  still allocated is reported as a leak;
- allocation can be made to fail after a chosen number of successful calls, so
  out-of-memory paths can be tested.

Blocks come from one byte array and are handed out from its end. Only the most
recently allocated block gives its space back when freed, so memory freed out
of LIFO order stays stranded, as it would on a small target with no system
allocator. Block sizes are rounded up to the pointer width in bytes.

## Installing

```
pip install guardheap
```

## Using the heap

```python
from guardheap.heap import GuardedHeap, MemoryCheckFailure

heap = GuardedHeap(heap_size=256, pointer_width=64)
heap.start_test()

block = heap.malloc(10)
heap.write(block, b"123456789\0")
bigger = heap.realloc(block, 15)
assert heap.read(bigger, 10) == b"123456789\0"
heap.free(bigger)

heap.end_test()            # raises MemoryCheckFailure if anything leaked
```

`pointer_width` must be 16, 32 or 64. The heap can also be used as a context
manager: entering calls `start_test()`, and leaving without an exception calls
`end_test()`.

```python
with GuardedHeap() as heap:
    heap.free(heap.malloc(4))
```

`malloc`, `calloc` and `realloc` return an integer address (an offset into the
heap), or `None` when the request cannot be met. A size of zero also gives
`None`. `calloc` zero-fills the block. `realloc` keeps the contents; shrinking
or keeping the size returns the same address, the most recent block grows in
place when there is room, and a size of zero frees the block. When `realloc`
fails, the old block stays allocated. `free(None)` does nothing; freeing or
reallocating an address the heap did not hand out raises `ValueError`.

`read(address, length)` and `write(address, data)` give raw access to the
heap bytes, guards included; accesses outside the heap raise `IndexError`.
`outstanding()` reports how many blocks are currently allocated.

Forcing failures:

```python
heap.start_test()
heap.fail_after(1)
first = heap.malloc(10)    # succeeds
second = heap.malloc(10)   # None
heap.free(first)
```

A negative count turns forced failures off; `start_test()` and `end_test()`
also turn them off.

Detecting overruns:

```python
block = heap.malloc(10)
heap.write(block + 10, b"\xff")   # one byte past the end
try:
    heap.free(block)
except MemoryCheckFailure as failure:
    print(failure)                # Buffer overrun detected during free()
```

The block is released even when the overrun is reported.
`MemoryCheckFailure` is a subclass of `AssertionError`.

## Configuration from a header

Settings can be read from a C configuration header of `#define` lines:

```python
from guardheap.config import UnityConfig
from guardheap.heap import GuardedHeap

with open("unity_config.h") as header:
    config = UnityConfig.from_header(header.read())
heap = GuardedHeap.from_config(config)
```

`GuardedHeap.from_config` takes the heap size from
`UNITY_INTERNAL_HEAP_SIZE_BYTES` (default 256) and the alignment from
`UNITY_POINTER_WIDTH` (default 32). `UnityConfig.from_defines(mapping)` builds
the same configuration from a mapping of define names to values.

`UnityConfig` also answers whether 64-bit support, float and double support
are enabled under the given defines (`include_64()`, `float_enabled()`,
`double_enabled()`) and what alignment the heap uses (`malloc_alignment()`).
`parse_defines(text)` returns the raw name-to-value mapping of a header's
active `#define` lines, ignoring commented-out ones. Malformed or out-of-range
settings raise `ConfigError`.

## What it does not do

`guardheap` only simulates a heap inside Python: it does not intercept the
memory allocation of real programs or of Python itself. Headers are read line
by line for `#define`s; conditionals such as `#ifdef` and `#include` are not
evaluated. There is no command-line tool.