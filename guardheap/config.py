"""Build-time configuration options read from C-style ``#define`` headers."""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Mapping

_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_LINE_COMMENT = re.compile(r"//[^\n]*")
_DEFINE = re.compile(r"^\s*#\s*define\s+([A-Za-z_]\w*)(\([^)]*\))?(.*)$")

_VALID_WIDTHS = (16, 32, 64)

_FLAGS = {
    "force_64": "UNITY_INCLUDE_64",
    "exclude_float": "UNITY_EXCLUDE_FLOAT",
    "include_double": "UNITY_INCLUDE_DOUBLE",
    "exclude_double": "UNITY_EXCLUDE_DOUBLE",
    "exclude_float_print": "UNITY_EXCLUDE_FLOAT_PRINT",
    "exclude_limits_h": "UNITY_EXCLUDE_LIMITS_H",
    "exclude_stdint_h": "UNITY_EXCLUDE_STDINT_H",
    "exclude_stddef_h": "UNITY_EXCLUDE_STDDEF_H",
    "exclude_stdlib_malloc": "UNITY_EXCLUDE_STDLIB_MALLOC",
    "include_print_formatted": "UNITY_INCLUDE_PRINT_FORMATTED",
    "include_exec_time": "UNITY_INCLUDE_EXEC_TIME",
}

_INTS = {
    "int_width": "UNITY_INT_WIDTH",
    "long_width": "UNITY_LONG_WIDTH",
    "pointer_width": "UNITY_POINTER_WIDTH",
    "internal_heap_size_bytes": "UNITY_INTERNAL_HEAP_SIZE_BYTES",
}

_FLOATS = {
    "float_precision": "UNITY_FLOAT_PRECISION",
    "double_precision": "UNITY_DOUBLE_PRECISION",
}

_STRINGS = {
    "float_type": "UNITY_FLOAT_TYPE",
    "double_type": "UNITY_DOUBLE_TYPE",
    "output_char": "UNITY_OUTPUT_CHAR",
    "output_flush": "UNITY_OUTPUT_FLUSH",
    "output_start": "UNITY_OUTPUT_START",
    "output_complete": "UNITY_OUTPUT_COMPLETE",
    "ptr_attribute": "UNITY_PTR_ATTRIBUTE",
}


class ConfigError(ValueError):
    """A configuration value is missing, malformed or out of range."""


def _strip_comments(text: str) -> str:
    def keep_lines(match: re.Match) -> str:
        newlines = match.group(0).count("\n")
        return "\n" * newlines if newlines else " "

    text = _BLOCK_COMMENT.sub(keep_lines, text)
    return _LINE_COMMENT.sub("", text)


def parse_defines(text: str) -> dict[str, str]:
    """Return the active ``#define`` names of a header mapped to their values.

    Commented-out definitions are ignored. A plain flag maps to ``""``; a
    function-like macro maps to its body.
    """
    text = text.replace("\\\r\n", " ").replace("\\\n", " ")
    defines: dict[str, str] = {}
    for line in _strip_comments(text).splitlines():
        match = _DEFINE.match(line)
        if match:
            defines[match.group(1)] = match.group(3).strip()
    return defines


def _unwrap(value: str) -> str:
    value = value.strip()
    while value.startswith("(") and value.endswith(")"):
        value = value[1:-1].strip()
    return value


def _parse_int(name: str, value: str) -> int:
    text = _unwrap(value).rstrip("uUlL")
    try:
        return int(text, 0)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _parse_float(name: str, value: str) -> float:
    text = _unwrap(value).rstrip("fFlL")
    try:
        return float(text)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}") from None


@dataclass(frozen=True)
class UnityConfig:
    """Resolved configuration options with their documented defaults."""

    int_width: int = 32
    long_width: int = 32
    pointer_width: int = 32
    force_64: bool = False
    exclude_float: bool = False
    include_double: bool = False
    exclude_double: bool = False
    exclude_float_print: bool = False
    float_precision: float = 0.00001
    double_precision: float = 1e-12
    float_type: str = "float"
    double_type: str = "double"
    exclude_limits_h: bool = False
    exclude_stdint_h: bool = False
    exclude_stddef_h: bool = False
    exclude_stdlib_malloc: bool = False
    internal_heap_size_bytes: int = 256
    include_print_formatted: bool = False
    include_exec_time: bool = False
    output_char: str | None = None
    output_flush: str | None = None
    output_start: str | None = None
    output_complete: str | None = None
    ptr_attribute: str = ""

    def __post_init__(self) -> None:
        for name in ("int_width", "long_width", "pointer_width"):
            width = getattr(self, name)
            if width not in _VALID_WIDTHS:
                raise ConfigError(f"invalid {name} {width}: expected one of {_VALID_WIDTHS}")
        if self.internal_heap_size_bytes < 0:
            raise ConfigError("internal_heap_size_bytes must not be negative")

    @classmethod
    def from_defines(cls, defines: Mapping[str, str]) -> "UnityConfig":
        """Build a configuration from a mapping of define names to values."""
        options: dict[str, object] = {}
        for attr, macro in _FLAGS.items():
            if macro in defines:
                options[attr] = True
        for attr, macro in _INTS.items():
            if macro in defines:
                options[attr] = _parse_int(macro, defines[macro])
        for attr, macro in _FLOATS.items():
            if macro in defines:
                options[attr] = _parse_float(macro, defines[macro])
        for attr, macro in _STRINGS.items():
            if macro in defines:
                value = defines[macro].strip()
                if not value and attr != "ptr_attribute":
                    raise ConfigError(f"{macro} needs a value")
                options[attr] = value
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in options.items() if k in known})

    @classmethod
    def from_header(cls, text: str) -> "UnityConfig":
        """Build a configuration from the text of a configuration header."""
        return cls.from_defines(parse_defines(text))

    def include_64(self) -> bool:
        """Whether 64-bit integer support is enabled."""
        return self.force_64 or max(self.int_width, self.long_width, self.pointer_width) > 32

    def float_enabled(self) -> bool:
        """Whether single-precision assertions are available."""
        return not self.exclude_float

    def double_enabled(self) -> bool:
        """Whether double-precision assertions are available (off by default)."""
        return self.include_double and not self.exclude_double

    def malloc_alignment(self) -> int:
        """Byte alignment used by the guarded allocator."""
        return self.pointer_width // 8