"""Symbolic access paths: how a runtime value was obtained."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import FrozenSet, Iterable, Sequence, Tuple

from .module_resolution import ModuleNotFound, resolve_module


BUILT_IN = "BUILT_IN"
MODULE_NOT_FOUND = "MODULE_NOT_FOUND"


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """Source range with 1-based lines and 0-based columns."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @classmethod
    def from_tuple(cls, value: Tuple[int, int, int, int]) -> "SourceLocation":
        return cls(*value)

    def start(self) -> str:
        return f"{self.start_line}:{self.start_column}"

    def __str__(self) -> str:
        return f"{self.start_line}:{self.start_column}:{self.end_line}:{self.end_column}"

    def to_dict(self) -> dict:
        return {
            "start": {"line": self.start_line, "column": self.start_column},
            "end": {"line": self.end_line, "column": self.end_column},
        }


DUMMY_LOCATION = SourceLocation(0, 0, 0, 0)


class KeyedPath:
    """Value identified by its canonical string.

    The key is rendered once at construction and hashed once, so equality and
    hashing are cheap and two instances with the same rendering are
    interchangeable in every set and dict.
    """

    __slots__ = ("key", "_hash")

    def __init__(self, key: str) -> None:
        self.key = key
        self._hash = hash(key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyedPath):
            return NotImplemented
        return self._hash == other._hash and self.key == other.key

    def __hash__(self) -> int:
        return self._hash

    def __str__(self) -> str:
        return self.key

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r})"

    def pretty(self) -> str:
        return self.key


class AccessPath(KeyedPath):
    __slots__ = ()

    def root_element(self) -> "AccessPath":
        return self


class UnknownAccessPath(AccessPath):
    __slots__ = ()

    def __init__(self) -> None:
        super().__init__("U")


UNKNOWN = UnknownAccessPath()


class ImportAccessPath(AccessPath):
    """Result of loading a module; the file is resolved when the path is built."""

    __slots__ = ("import_path", "file_location", "location", "file_name")

    def __init__(
        self,
        import_path: str,
        file_location: str,
        location: SourceLocation = DUMMY_LOCATION,
        file_name: str | None = None,
    ) -> None:
        self.import_path = import_path
        self.file_location = file_location
        self.location = location
        self.file_name = file_name
        if file_location in (BUILT_IN, MODULE_NOT_FOUND):
            key = f"<{file_location}:{import_path}:{location}>"
        else:
            key = f"<{file_location}:{location}>"
        super().__init__(key)

    @classmethod
    def resolve(
        cls,
        import_path: str,
        base_dir: str,
        location: SourceLocation = DUMMY_LOCATION,
        file_name: str | None = None,
    ) -> "ImportAccessPath":
        try:
            file_location = resolve_module(import_path, base_dir)
        except ModuleNotFound:
            file_location = MODULE_NOT_FOUND
        return cls(import_path, file_location, location, file_name)

    @classmethod
    def for_module(cls, file: str) -> "ImportAccessPath":
        """The module's own import path, used as its top-level scope."""

        return cls(file, file, DUMMY_LOCATION, file)

    @property
    def is_builtin(self) -> bool:
        return self.file_location == BUILT_IN

    def pretty(self) -> str:
        if self.file_location in (BUILT_IN, MODULE_NOT_FOUND):
            return f"<{self.import_path}>"
        return f"<{os.path.basename(self.file_location)}>"


def global_object_path(name: str, location: SourceLocation, file_name: str | None) -> ImportAccessPath:
    return ImportAccessPath(GLOBAL_OBJECTS[name], BUILT_IN, location, file_name)


class PropAccessPath(AccessPath):
    __slots__ = ("receiver", "prop", "location", "file_name")

    def __init__(self, receiver: AccessPath, prop: str, location: SourceLocation, file_name: str) -> None:
        self.receiver = receiver
        self.prop = prop
        self.location = location
        self.file_name = file_name
        super().__init__(f"{file_name}:{location}:{receiver}.{prop}")

    def pretty(self) -> str:
        return f"{self.receiver.pretty()}.{self.prop}"

    def is_prop_read_on_module_sequence(self) -> bool:
        receiver = self.receiver
        while isinstance(receiver, PropAccessPath):
            receiver = receiver.receiver
        return isinstance(receiver, ImportAccessPath)

    def exports_summary_path(self) -> str:
        """Dotted member path below the module object, e.g. ``foo.bar``."""

        if isinstance(self.receiver, ImportAccessPath):
            return self.prop
        if isinstance(self.receiver, PropAccessPath):
            return f"{self.receiver.exports_summary_path()}.{self.prop}"
        raise ValueError(f"{self} is not a property read on a module")

    def root_element(self) -> AccessPath:
        return self.receiver.root_element()


def args_string(args: Sequence[Iterable[AccessPath]]) -> str:
    return ";".join(", ".join(sorted(str(path) for path in arg)) for arg in args)


class CallAccessPath(AccessPath):
    __slots__ = ("callee", "args", "args_string", "location", "file_name", "unknown_arguments")

    def __init__(
        self,
        callee: AccessPath,
        args: Sequence[Iterable[AccessPath]],
        location: SourceLocation,
        file_name: str,
        unknown_arguments: bool = False,
    ) -> None:
        self.callee = callee
        self.args: Tuple[FrozenSet[AccessPath], ...] = tuple(frozenset(arg) for arg in args)
        self.args_string = args_string(self.args)
        self.location = location
        self.file_name = file_name
        self.unknown_arguments = unknown_arguments
        super().__init__(f"{callee}({self.args_string}):{file_name}:{location.start()}")

    def pretty(self) -> str:
        # spread or apply arguments
        if self.unknown_arguments:
            return f"{self.callee.pretty()}(...)"
        return f"{self.callee.pretty()}()"

    def root_element(self) -> AccessPath:
        return self.callee.root_element()


class ThisAccessPath(AccessPath):
    __slots__ = ()

    def __init__(self) -> None:
        super().__init__("this")


THIS = ThisAccessPath()


class ModuleMainPath(AccessPath):
    """The module object of a file, or of a named built-in."""

    __slots__ = ("file_location", "builtin_name")

    def __init__(self, file_location: str, builtin_name: str | None = None) -> None:
        self.file_location = file_location
        self.builtin_name = builtin_name
        super().__init__(f"<{builtin_name}>" if builtin_name else f"<{file_location}>")

    @property
    def is_builtin(self) -> bool:
        return self.file_location == BUILT_IN

    def pretty(self) -> str:
        if self.builtin_name:
            return f"<{self.builtin_name}>"
        return f"<{os.path.basename(self.file_location)}>"


class FunctionCreation(AccessPath):
    __slots__ = ("location", "file")

    def __init__(self, location: SourceLocation, file: str) -> None:
        self.location = location
        self.file = file
        super().__init__(f"FunctionCreation:{file}:{location.start()}")

    def pretty(self) -> str:
        return f"FunctionCreation:{os.path.basename(self.file)}:{self.location.start()}"


class ParameterAccessPath(AccessPath):
    __slots__ = ("function", "index")

    def __init__(self, function: FunctionCreation, index: int) -> None:
        self.function = function
        self.index = index
        super().__init__(f"{function}:arg{index}")

    def pretty(self) -> str:
        return f"{self.function.pretty()}:arg{self.index}"

    def root_element(self) -> AccessPath:
        return self.function


class ArgumentsAccessPath(AccessPath):
    __slots__ = ("function",)

    def __init__(self, function: FunctionCreation) -> None:
        self.function = function
        super().__init__(f"Arguments<{function}>")

    def root_element(self) -> AccessPath:
        return self.function


class StringLiteralAccessPath(AccessPath):
    __slots__ = ("value",)

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"'{value}'")

    def pretty(self) -> str:
        return self.value


class StringPrefixAccessPath(AccessPath):
    __slots__ = ("prefix",)

    def __init__(self, prefix: str) -> None:
        self.prefix = prefix
        super().__init__(f"PREFIX({prefix})")


class StringSuffixAccessPath(AccessPath):
    __slots__ = ("suffix",)

    def __init__(self, suffix: str) -> None:
        self.suffix = suffix
        super().__init__(f"SUFFIX({suffix})")


GLOBAL_OBJECTS = {
    name: name
    for name in (
        "Promise", "JSON", "console", "Symbol", "global", "Array", "Error", "TypeError",
        "RangeError", "System", "Map", "WeakMap", "Set", "RegExp", "Reflect", "Dict",
        "Object", "Function", "Number", "String", "Boolean", "navigator", "Date",
        "FormData", "DataView", "Buffer", "ArrayBuffer", "require", "exports", "isNaN",
        "isFinite", "parseFloat", "parseInt", "Math", "encodeURI", "encodeURIComponent",
        "decodeURI", "decodeURIComponent", "eval", "escape", "unescape", "EvalError",
        "ReferenceError", "SyntaxError", "URIError", "Uint8Array", "util", "stream",
        "child_process", "setInterval", "setImmediate", "queueMicrotask", "process",
        "Polyglot", "Int8Array", "Uint8ClampedArray", "Int16Array", "Uint16Array",
        "Int32Array", "Uint32Array", "Float32Array", "Float64Array", "BigInt64Array",
        "BigUint64Array", "BigInt", "WeakSet", "Proxy", "SharedArrayBuffer", "Atomics",
        "Intl", "Collator", "NumberFormat", "DateTimeFormat", "PluralRules", "ListFormat",
        "RelativeTimeFormat", "Segmenter", "DisplayNames", "Locale", "Java",
    )
}
GLOBAL_OBJECTS.update({"globalThis": "global", "window": "global"})
