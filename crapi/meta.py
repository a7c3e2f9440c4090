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
The meta module contains the support to reflectively process typed objects

It defines CRBase, the dataclass base for custom resources and API
request/response models that crapi translates between, along with the cached
type-hint lookup that the object mapper uses for any dataclass.
"""
import copy
from dataclasses import dataclass, fields, is_dataclass, MISSING
from inspect import getmodule
from typing import Union, List, Dict, Tuple, get_type_hints, get_args, get_origin

NoneType = type(None)


# _cached_hints and _cached_args map a class to data computed by reflection;
# the results don't change over a program's execution and computing them
# for every conversion is costly.
_cached_hints = {}

_cached_args = {}


def get_hints(cls: type) -> dict:
    """
    Returns the resolved type hints for a dataclass, including inherited fields

    :param cls: a dataclass
    :return: dict of field name to resolved type
    """
    cached_hints = _cached_hints.get(cls, None)
    if cached_hints is not None:
        return cached_hints
    mro = cls.mro()
    mro.reverse()
    hints = {}
    globs = vars(getmodule(cls))
    for c in mro:
        if is_dataclass(c):
            hints.update(get_type_hints(c, globs))
    _cached_hints[cls] = hints
    return hints


def unwrap_optional(ftype) -> Tuple[object, bool]:
    """
    Peels an Optional off a type hint

    :param ftype: a type hint
    :return: tuple of the inner type and a bool that is True if the hint
        allowed None
    """
    if get_origin(ftype) is Union:
        type_args = [a for a in get_args(ftype) if a is not NoneType]
        optional = len(type_args) < len(get_args(ftype))
        if len(type_args) == 1:
            return type_args[0], optional
        return Union[tuple(type_args)], optional
    return ftype, False


def empty_value(ftype):
    """
    Returns the value a required field of type ftype starts out with

    Optional fields get None, collections are empty, nested dataclasses are
    built empty, and str, int, float, bool and bytes get their zero value.
    Anything else gets None.

    :param ftype: a type hint
    :return: an empty value of that type
    """
    inner, optional = unwrap_optional(ftype)
    if optional:
        return None
    origin = get_origin(inner)
    if origin in (list, List):
        return []
    if origin in (dict, Dict):
        return {}
    if origin in (tuple, Tuple):
        return ()
    if isinstance(inner, type):
        if issubclass(inner, CRBase):
            return inner.get_empty_instance()
        if is_dataclass(inner):
            return inner(**required_args(inner))
        if inner in (str, int, float, bool, bytes):
            return inner()
    return None


def required_args(cls: type) -> dict:
    """
    Returns keyword arguments that satisfy every required field of a dataclass

    :param cls: a dataclass
    :return: dict of field name to empty_value() for each init field that has
        no default
    """
    hints = get_hints(cls)
    return {f.name: empty_value(hints[f.name]) for f in fields(cls)
            if f.init and f.default is MISSING and f.default_factory is MISSING}


@dataclass
class CRBase(object):
    @classmethod
    def _get_hints(cls) -> dict:
        return get_hints(cls)

    @classmethod
    def get_empty_instance(cls):
        """
        Returns a properly initialized instance with Nones and empty collections

        Fields with defaults keep them; required fields get empty_value() of
        their type.

        :return: an instance of 'cls'
        """
        cached_args = _cached_args.get(cls, None)
        if cached_args is None:
            cached_args = _cached_args[cls] = required_args(cls)
        return cls(**cls._fresh_args(cached_args))

    @staticmethod
    def _fresh_args(kw_args: dict) -> dict:
        return {k: _dup_value(v) if isinstance(v, CRBase) else copy.deepcopy(v)
                for k, v in kw_args.items()}

    def to_dict(self) -> dict:
        """
        Returns the object map form of self; None-valued fields are left out
        """
        from crapi.objmap import to_object_map
        return to_object_map(self)

    @classmethod
    def from_dict(cls, adict: dict):
        """
        Create an instance of this class from a dict

        Keys are matched to fields case-insensitively and unknown keys are
        ignored.

        :param adict: a dict, typically the result of to_dict() or parsed YAML
        :return: a populated instance of cls
        :raises TypeMismatchError: if a value can't be coerced to its field's type
        """
        from crapi.objmap import from_object_map
        return from_object_map(cls, adict)

    def dup(self):
        """
        Returns a deep copy; nested CRBase values, lists and dicts are copied too
        """
        duplicate = type(self).get_empty_instance()
        for f in fields(self):
            setattr(duplicate, f.name, _dup_value(getattr(self, f.name)))
        return duplicate


def _dup_value(a):
    if isinstance(a, CRBase):
        return a.dup()
    elif isinstance(a, dict):
        return {k: _dup_value(v) for k, v in a.items()}
    elif isinstance(a, list):
        return [_dup_value(i) for i in a]
    return a
