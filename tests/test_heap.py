import re

import pytest

from guardheap.config import UnityConfig
from guardheap.heap import GuardedHeap, MemoryCheckFailure

HEAP_SIZE = 256


@pytest.fixture(params=[32, 64])
def heap(request):
    h = GuardedHeap(HEAP_SIZE, request.param)
    h.start_test()
    return h


def assert_all_free_lifo(heap, first):
    ptr = heap.malloc(10)
    heap.free(ptr)
    assert ptr == first, "Memory was stranded, free in LIFO order"


def test_force_malloc_fail(heap):
    heap.fail_after(1)
    m = heap.malloc(10)
    assert m is not None and m >= 0
    assert heap.malloc(10) is None
    heap.free(m)
    heap.end_test()
    assert heap.outstanding() == 0


def test_realloc_smaller_is_unchanged(heap):
    m1 = heap.malloc(10)
    m2 = heap.realloc(m1, 5)
    assert m1 is not None
    assert m2 == m1
    heap.free(m2)
    assert heap.outstanding() == 0


def test_realloc_same_is_unchanged(heap):
    m1 = heap.malloc(10)
    m2 = heap.realloc(m1, 10)
    assert m1 is not None
    assert m2 == m1
    heap.free(m2)
    assert heap.outstanding() == 0


def test_realloc_larger_needed(heap):
    m1 = heap.malloc(10)
    heap.write(m1, b"123456789\x00")
    m2 = heap.realloc(m1, 15)
    assert heap.read(m2, 10) == b"123456789\x00"
    heap.free(m2)
    assert heap.outstanding() == 0


def test_realloc_null_pointer_is_like_malloc(heap):
    m = heap.realloc(None, 15)
    assert isinstance(m, int)
    assert heap.outstanding() == 1
    heap.free(m)
    assert heap.outstanding() == 0


def test_realloc_size_zero_frees_mem_and_returns_null(heap):
    m1 = heap.malloc(10)
    assert heap.realloc(m1, 0) is None
    assert heap.outstanding() == 0


def test_calloc_fills_with_zero(heap):
    dirty = heap.malloc(3)
    heap.write(dirty, b"\xff\xff\xff")
    heap.free(dirty)
    m = heap.calloc(3, 1)
    assert m == dirty
    assert heap.read(m, 3) == b"\x00\x00\x00"
    heap.free(m)


def test_free_null_safety(heap):
    assert heap.free(None) is None
    assert heap.outstanding() == 0


def test_detects_leak(heap):
    m = heap.malloc(10)
    assert m is not None
    with pytest.raises(MemoryCheckFailure, match="This test leaks!"):
        heap.end_test()
    heap.free(m)
    assert heap.outstanding() == 0


def test_buffer_overrun_found_during_free(heap):
    m = heap.malloc(10)
    heap.write(m + 10, b"\xff")
    with pytest.raises(MemoryCheckFailure, match=re.escape("Buffer overrun detected during free()")):
        heap.free(m)
    assert heap.outstanding() == 0


def test_buffer_overrun_found_during_realloc(heap):
    m = heap.malloc(10)
    heap.write(m + 10, b"\xff")
    with pytest.raises(MemoryCheckFailure, match=re.escape("Buffer overrun detected during realloc()")):
        heap.realloc(m, 100)
    assert heap.outstanding() == 0


def test_buffer_guard_write_found_during_free(heap):
    m = heap.malloc(10)
    heap.write(m - 1, b"\x00")  # a zero write cannot be detected
    heap.write(m - 2, b"\x01")
    with pytest.raises(MemoryCheckFailure, match=re.escape("Buffer overrun detected during free()")):
        heap.free(m)
    assert heap.outstanding() == 0


def test_buffer_guard_write_found_during_realloc(heap):
    m = heap.malloc(10)
    heap.write(m - 1, b"\x0a")
    with pytest.raises(MemoryCheckFailure, match=re.escape("Buffer overrun detected during realloc()")):
        heap.realloc(m, 100)
    assert heap.outstanding() == 0


def test_malloc_past_buffer_fails(heap):
    m = heap.malloc(HEAP_SIZE // 2 + 1)
    n = heap.malloc(HEAP_SIZE // 2)
    heap.free(m)
    assert m is not None
    assert n is None
    assert_all_free_lifo(heap, m)


def test_calloc_past_buffer_fails(heap):
    m = heap.calloc(1, HEAP_SIZE // 2 + 1)
    n = heap.calloc(1, HEAP_SIZE // 2)
    heap.free(m)
    assert m is not None
    assert n is None
    assert_all_free_lifo(heap, m)


def test_malloc_then_realloc_grows_memory_in_place(heap):
    m = heap.malloc(HEAP_SIZE // 2 + 1)
    n = heap.realloc(m, HEAP_SIZE // 2 + 9)
    heap.free(n)
    assert m is not None
    assert m == n
    assert_all_free_lifo(heap, m)


def test_realloc_fail_does_not_free_mem(heap):
    m = heap.malloc(HEAP_SIZE // 2)
    n1 = heap.malloc(10)
    out_of_mem = heap.realloc(n1, HEAP_SIZE // 2 + 1)
    n2 = heap.malloc(10)

    heap.free(n2)
    if out_of_mem is None:
        heap.free(n1)
    heap.free(m)

    assert m is not None
    assert out_of_mem is None
    assert n2 != n1
    assert_all_free_lifo(heap, m)


def test_freeing_out_of_order_strands_memory():
    heap = GuardedHeap(HEAP_SIZE, 32)
    a = heap.malloc(10)
    b = heap.malloc(10)
    heap.free(a)
    c = heap.malloc(10)
    assert c > b
    heap.free(c)
    heap.free(b)
    assert heap.outstanding() == 0


def test_free_unknown_address_raises(heap):
    with pytest.raises(ValueError):
        heap.free(12345)


def test_access_outside_heap_raises(heap):
    with pytest.raises(IndexError):
        heap.read(HEAP_SIZE - 2, 4)
    with pytest.raises(IndexError):
        heap.write(-1, b"x")


def test_negative_countdown_never_fails(heap):
    heap.fail_after(-1)
    blocks = [heap.malloc(1) for _ in range(3)]
    assert all(isinstance(b, int) for b in blocks)
    for b in reversed(blocks):
        heap.free(b)
    assert heap.outstanding() == 0


def test_start_test_resets_forced_failure(heap):
    heap.fail_after(0)
    assert heap.malloc(10) is None
    heap.start_test()
    m = heap.malloc(10)
    assert isinstance(m, int)
    heap.free(m)


def test_context_manager_reports_leak():
    heap = GuardedHeap(HEAP_SIZE, 32)
    with pytest.raises(MemoryCheckFailure, match="This test leaks!"):
        with heap:
            heap.malloc(10)


def test_from_config_uses_heap_size():
    config = UnityConfig(internal_heap_size_bytes=64, pointer_width=64)
    heap = GuardedHeap.from_config(config)
    assert heap.heap_size == 64
    assert heap.pointer_width == 64
    assert heap.malloc(60) is None
    m = heap.malloc(10)
    assert isinstance(m, int)
    heap.free(m)
    assert heap.outstanding() == 0


def test_invalid_construction_raises():
    with pytest.raises(ValueError):
        GuardedHeap(-1, 32)
    with pytest.raises(ValueError):
        GuardedHeap(256, 24)