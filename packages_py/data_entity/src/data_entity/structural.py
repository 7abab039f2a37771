"""
Structural comparison and merging of plain data.
"""
import dataclasses
from typing import Any, Mapping


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def structural_equal(a: Any, b: Any) -> bool:
    """
    Deep structural equality.

    Mappings compare by key set and values, lists and tuples compare
    element-wise in order (a list equals a tuple with the same items),
    dataclass instances compare field by field. Booleans are never equal
    to numbers.
    """
    if a is b:
        return True

    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b

    if dataclasses.is_dataclass(a) and not isinstance(a, type):
        if type(a) is not type(b):
            return False
        return all(
            structural_equal(getattr(a, f.name), getattr(b, f.name))
            for f in dataclasses.fields(a)
        )

    if isinstance(a, Mapping):
        if not isinstance(b, Mapping) or len(a) != len(b):
            return False
        for key, value in a.items():
            if key not in b or not structural_equal(value, b[key]):
                return False
        return True

    if _is_sequence(a):
        if not _is_sequence(b) or len(a) != len(b):
            return False
        return all(structural_equal(x, y) for x, y in zip(a, b))

    if isinstance(b, Mapping) or _is_sequence(b):
        return False

    return a == b


def deep_merge(target: Any, source: Any) -> Any:
    """
    Merge ``source`` over ``target`` without mutating either.

    Top-level fields of ``source`` replace those of ``target``; when both sides
    hold a mapping for the same field the mappings are merged recursively.
    A non-mapping ``source`` replaces ``target`` outright.
    """
    if not isinstance(target, Mapping) or not isinstance(source, Mapping):
        return source

    merged = dict(target)
    for key, value in source.items():
        if key in merged and isinstance(merged[key], Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
