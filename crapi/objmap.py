#
# Copyright (c) 2021 Incisive Technology Ltd
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.
"""
The generic object mapper

This module converts between typed values (dataclasses, official kubernetes
client models, plain containers) and object maps: nested dicts with string
keys, lists and scalars, the same shape a JSON or YAML document parses into.
It also provides dotted-path addressing into object maps. Navigation functions
raise NotFoundError when any segment of a path is absent; callers use that as
a 'nothing to do here' signal.
"""
import base64
import copy
import datetime
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import (Any, Dict, Iterator, List, Sequence, Tuple, Union, get_args,
                    get_origin)

from kubernetes.client import ApiClient

from crapi.errors import NotFoundError, TypeMismatchError
from crapi.meta import CRBase, get_hints, required_args, unwrap_optional

# the array-item wildcard used in mapping paths
ITEMS = "[]"

_api_client = None


def _k8s_api_client() -> ApiClient:
    global _api_client
    if _api_client is None:
        _api_client = ApiClient()
    return _api_client


def _is_k8s_model(value) -> bool:
    return hasattr(type(value), "openapi_types") and hasattr(type(value),
                                                             "attribute_map")


# path helpers

def as_path(xpath: str) -> List[str]:
    """
    Splits a dotted path into its segments

    A leading '.' is allowed and ignored, so '.data.key' and 'data.key' both
    produce ['data', 'key'].

    :param xpath: string path
    :return: list of path segments
    """
    path = xpath.split(".")
    if path and path[0] == "":
        path = path[1:]
    return path


def resolve_xpath(xpath: str) -> List[str]:
    if xpath.startswith("$."):
        return as_path(xpath[1:])
    return as_path(xpath)


def base(path: Sequence[str]) -> str:
    return path[-1] if path else ""


def dirpath(path: Sequence[str]) -> List[str]:
    return list(path[:-1])


# typed value -> object map

def _format_datetime(dt: datetime.datetime) -> str:
    s = dt.isoformat()
    if dt.tzinfo is not None and dt.utcoffset() == datetime.timedelta(0):
        s = s.replace("+00:00", "Z")
    return s


def _parse_datetime(s: str) -> datetime.datetime:
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"
    return datetime.datetime.fromisoformat(s)


def _to_value(value):
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return _to_value(value.value)
    if isinstance(value, datetime.datetime):
        return _format_datetime(value)
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if is_dataclass(value) and not isinstance(value, type):
        result = {}
        for f in fields(value):
            v = getattr(value, f.name)
            if v is None:
                continue
            result[f.name.strip("_")] = _to_value(v)
        return result
    if isinstance(value, dict):
        return {str(k): _to_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_value(i) for i in value]
    if _is_k8s_model(value):
        return _k8s_api_client().sanitize_for_serialization(value)
    raise TypeMismatchError(f"can't convert a {type(value).__name__} "
                            f"into an object map value")


def to_object_map(value) -> dict:
    """
    Turns a typed value into an object map

    Dataclass fields that are None are left out of the result; a trailing or
    leading '_' on a field name (used for Python keywords) is dropped from the
    key. Datetimes become RFC 3339 strings, bytes become base64 strings, and
    kubernetes client models are serialized with their camelCase keys.

    :param value: a dataclass instance, a dict, or a kubernetes client model
    :return: a new dict; the input is never shared with the result
    :raises TypeMismatchError: if value, or anything inside it, can't be
        converted, or if value doesn't convert to a dict
    """
    result = _to_value(value)
    if not isinstance(result, dict):
        raise TypeMismatchError(f"a {type(value).__name__} doesn't convert "
                                f"into an object map")
    return result


# object map -> typed value

def _find_key(obj_map: dict, name: str, lowered: Dict[str, str]):
    if name in obj_map:
        return name
    return lowered.get(name.lower())


def _coerce_fields(cls: type, obj_map: dict, path: List[str]) -> dict:
    if not isinstance(obj_map, dict):
        raise TypeMismatchError(f"{'.'.join(path) or 'value'}: expected an object "
                                f"for {cls.__name__} but got "
                                f"{type(obj_map).__name__}")
    hints = get_hints(cls)
    lowered = {k.lower(): k for k in obj_map}
    kw_args = {}
    for f in fields(cls):
        if not f.init:
            continue
        key = _find_key(obj_map, f.name.strip("_"), lowered)
        if key is None:
            continue
        kw_args[f.name] = _coerce(obj_map[key], hints[f.name], path + [key])
    return kw_args


def _from_map(cls: type, obj_map: dict, path: List[str]):
    kw_args = _coerce_fields(cls, obj_map, path)
    if issubclass(cls, CRBase):
        inst = cls.get_empty_instance()
        for k, v in kw_args.items():
            setattr(inst, k, v)
        return inst
    # required fields absent from the map start out empty
    args = required_args(cls)
    args.update(kw_args)
    try:
        return cls(**args)
    except TypeError as e:
        raise TypeMismatchError(f"{'.'.join(path) or 'value'}: can't create a "
                                f"{cls.__name__}: {e}") from e


def _mismatch(value, expected: str, path: List[str]) -> TypeMismatchError:
    return TypeMismatchError(f"{'.'.join(path) or 'value'}: expected {expected} "
                             f"but got {type(value).__name__} {value!r}")


def _coerce(value, ftype, path: List[str]):
    if value is None:
        return None
    ftype, _ = unwrap_optional(ftype)
    if ftype is Any or ftype is object:
        return copy.deepcopy(value)
    origin = get_origin(ftype)
    if origin is Union:
        for arg in get_args(ftype):
            try:
                return _coerce(value, arg, path)
            except TypeMismatchError:
                continue
        raise _mismatch(value, str(ftype), path)
    if origin in (list, List):
        if not isinstance(value, list):
            raise _mismatch(value, "a list", path)
        args = get_args(ftype)
        if not args:
            return copy.deepcopy(value)
        return [_coerce(v, args[0], path + [str(i)]) for i, v in enumerate(value)]
    if origin in (tuple, Tuple):
        if not isinstance(value, (list, tuple)):
            raise _mismatch(value, "a list", path)
        args = get_args(ftype)
        if not args:
            return tuple(copy.deepcopy(value))
        return tuple(_coerce(v, args[0], path + [str(i)]) for i, v in enumerate(value))
    if origin in (dict, Dict):
        if not isinstance(value, dict):
            raise _mismatch(value, "an object", path)
        args = get_args(ftype)
        if not args:
            return copy.deepcopy(value)
        return {k: _coerce(v, args[1], path + [k]) for k, v in value.items()}
    if not isinstance(ftype, type):
        raise _mismatch(value, str(ftype), path)
    if is_dataclass(ftype):
        return _from_map(ftype, value, path)
    if issubclass(ftype, Enum):
        try:
            return ftype(value)
        except ValueError as e:
            raise TypeMismatchError(f"{'.'.join(path)}: {e}") from e
    if ftype is datetime.datetime:
        if isinstance(value, datetime.datetime):
            return value
        if isinstance(value, str):
            try:
                return _parse_datetime(value)
            except ValueError as e:
                raise TypeMismatchError(f"{'.'.join(path)}: {e}") from e
        raise _mismatch(value, "a timestamp", path)
    if ftype is datetime.date:
        if isinstance(value, datetime.date):
            return value
        if isinstance(value, str):
            try:
                return datetime.date.fromisoformat(value)
            except ValueError as e:
                raise TypeMismatchError(f"{'.'.join(path)}: {e}") from e
        raise _mismatch(value, "a date", path)
    if ftype is bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except ValueError as e:
                raise TypeMismatchError(f"{'.'.join(path)}: {e}") from e
        raise _mismatch(value, "base64 data", path)
    if ftype is bool:
        if isinstance(value, bool):
            return value
        raise _mismatch(value, "a bool", path)
    if ftype is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        raise _mismatch(value, "an int", path)
    if ftype is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        raise _mismatch(value, "a float", path)
    if ftype is str:
        if isinstance(value, str):
            return value
        raise _mismatch(value, "a string", path)
    if isinstance(value, ftype):
        return value
    raise _mismatch(value, ftype.__name__, path)


def from_object_map(target, obj_map: dict):
    """
    Populates a typed value from an object map

    Keys are matched to dataclass fields by exact name first and then
    case-insensitively; keys without a matching field are ignored. Values are
    coerced to each field's declared type, recursing into nested dataclasses,
    lists and dicts.

    :param target: a dataclass (class or instance) or a dict. A class produces
        a new instance whose required fields missing from the map are left
        empty; an instance or dict is populated in place, touching only the
        fields present in the map.
    :param obj_map: the object map to read from
    :return: the populated value
    :raises TypeMismatchError: if a value can't be coerced to its field's type
    """
    if not isinstance(obj_map, dict):
        raise TypeMismatchError(f"expected an object map but got "
                                f"{type(obj_map).__name__}")
    if isinstance(target, type) and is_dataclass(target):
        return _from_map(target, obj_map, [])
    if is_dataclass(target):
        for name, value in _coerce_fields(type(target), obj_map, []).items():
            setattr(target, name, value)
        return target
    if isinstance(target, dict):
        copy_fields(target, obj_map)
        return target
    raise TypeMismatchError(f"can't populate a {type(target).__name__} "
                            f"from an object map")


def copy_fields(dst: dict, src: dict) -> dict:
    """
    Deep copies every top-level key of src into dst

    :return: dst
    """
    for k, v in src.items():
        dst[k] = copy.deepcopy(v)
    return dst


# navigation

def _step(current, segment, path: Sequence):
    if isinstance(current, dict):
        if segment not in current or current[segment] is None:
            raise NotFoundError(path, segment)
        return current[segment]
    if isinstance(current, list):
        try:
            idx = int(segment)
        except (TypeError, ValueError):
            raise TypeMismatchError(f"{list(path)}: segment {segment!r} can't "
                                    f"index a list")
        if idx < 0 or idx >= len(current):
            raise NotFoundError(path, segment)
        return current[idx]
    raise TypeMismatchError(f"{list(path)}: can't access {segment!r} inside a "
                            f"{type(current).__name__}")


def get_field(obj_map: dict, *path, expected: type = object):
    """
    Returns the value at path inside obj_map

    :param obj_map: the object map to navigate
    :param path: segments; strings for dict keys, ints (or int strings) for
        list indexes
    :param expected: optional type the value must be an instance of
    :return: the value found
    :raises NotFoundError: if any segment, including the last, is absent
    :raises TypeMismatchError: if the path runs into a scalar, or if the value
        found isn't of the expected type
    """
    current = obj_map
    for segment in path:
        current = _step(current, segment, path)
    if not isinstance(current, expected):
        raise TypeMismatchError(f"{list(path)}: expected {expected.__name__} but "
                                f"got {type(current).__name__}")
    return current


def get_field_object(obj_map: dict, *path) -> dict:
    return get_field(obj_map, *path, expected=dict)


def get_field_holder(obj_map: dict, *path) -> dict:
    """
    Returns the map that holds the last segment of path

    :raises NotFoundError: if the holder is absent, or the holder is present
        but doesn't contain the final key
    """
    holder = get_field_object(obj_map, *path[:-1])
    if path[-1] not in holder:
        raise NotFoundError(path, path[-1])
    return holder


def create_field(obj_map: dict, value, *path) -> None:
    """
    Sets value at path, creating intermediate maps as needed

    :raises TypeMismatchError: if an intermediate value exists and isn't a map
    """
    current = obj_map
    for segment in path[:-1]:
        nxt = current.get(segment)
        if nxt is None:
            nxt = current[segment] = {}
        elif not isinstance(nxt, dict):
            raise TypeMismatchError(f"{list(path)}: {segment!r} holds a "
                                    f"{type(nxt).__name__}, not an object")
        current = nxt
    current[path[-1]] = value


def get_or_create_field(obj_map: dict, default, *path):
    try:
        return get_field(obj_map, *path)
    except NotFoundError:
        create_field(obj_map, default, *path)
        return default


def iter_field_objects(obj_map: dict, path: Sequence[str],
                       ) -> Iterator[Tuple[List[str], Any]]:
    """
    Yields every value at path, fanning out over lists at '[]' segments

    Branches whose segments are absent are skipped silently. The concrete path
    yielded with each value has every '[]' replaced by the item's index.

    :param obj_map: the object map to navigate
    :param path: segments, possibly including '[]'
    :return: iterator of (concrete path, value) tuples
    :raises TypeMismatchError: if a '[]' segment meets something other than a
        list, or a key segment meets something other than a map
    """
    def _walk(current, idx: int, concrete: List[str]):
        if idx == len(path):
            yield concrete, current
            return
        segment = path[idx]
        if segment == ITEMS:
            if not isinstance(current, list):
                raise TypeMismatchError(f"{concrete}: expected a list but got "
                                        f"{type(current).__name__}")
            for i, item in enumerate(current):
                if item is not None:
                    yield from _walk(item, idx + 1, concrete + [str(i)])
            return
        try:
            nxt = _step(current, segment, concrete + [segment])
        except NotFoundError:
            return
        yield from _walk(nxt, idx + 1, concrete + [segment])

    yield from _walk(obj_map, 0, [])
