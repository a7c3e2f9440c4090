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
Per-type behaviour for reference objects

This module centralizes what varies with the kind of object a reference points
to: how a value is encoded into the object and decoded back out of it, which
class to instantiate for a new object, and which references may fail to
expand without that being an error. Everything is keyed by the
group/version/resource string of the referenced type ('v1/secrets').

The registries are module level and meant to be filled at import time; a
ReferenceResolver takes a snapshot of them when it's created.
"""
import base64
import binascii
from dataclasses import is_dataclass
from typing import Any, Callable, Dict, Optional, Set

from crapi.errors import ReferenceResolutionError, TypeMismatchError, NotRegisteredError
from crapi.kube import Secret
from crapi.objmap import from_object_map, to_object_map

SECRETS_GVR = "v1/secrets"

EncodeDecodeFunc = Callable[[Any], Any]

_encoders: Dict[str, EncodeDecodeFunc] = {}
_decoders: Dict[str, EncodeDecodeFunc] = {}
_optional_expansions: Set[str] = set()
_kube_object_classes: Dict[str, type] = {}


def register_encoder(gvr: str):
    def _register(func: EncodeDecodeFunc) -> EncodeDecodeFunc:
        _encoders[gvr] = func
        return func
    return _register


def register_decoder(gvr: str):
    def _register(func: EncodeDecodeFunc) -> EncodeDecodeFunc:
        _decoders[gvr] = func
        return func
    return _register


def register_optional_expansion(property_name: str) -> None:
    """
    Marks a reference property whose expansion may quietly do nothing

    When no property selector of a new object can hold the value for such a
    property, expansion leaves the raw value in place instead of failing.

    :param property_name: the name of the reference field, such as 'groupRef'
    """
    _optional_expansions.add(property_name)


def register_kube_object_class(gvr: str, cls: type) -> type:
    """
    Register the dataclass to instantiate for new objects of a given resource

    :param gvr: group/version/resource string, for example
        'atlas.generated.mongodb.com/v1/groups'
    :param cls: a dataclass, normally a KubeObject subclass
    :return: cls
    """
    if not is_dataclass(cls):
        raise TypeError(f"{cls.__name__} must be a dataclass")
    _kube_object_classes[gvr] = cls
    return cls


@register_encoder(SECRETS_GVR)
def _secret_encode(value):
    if not isinstance(value, str):
        raise TypeMismatchError(f"expected a string for secret encoding, but got "
                                f"{type(value).__name__}")
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


@register_decoder(SECRETS_GVR)
def _secret_decode(value):
    if not isinstance(value, str):
        raise TypeMismatchError(f"expected a string for secret decoding, but got "
                                f"{type(value).__name__}")
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise TypeMismatchError(f"failed to decode secret value: {e}") from e


register_optional_expansion("groupRef")
register_kube_object_class(SECRETS_GVR, Secret)


class ReferenceResolver(object):
    def __init__(self, scheme=None):
        """
        :param scheme: optional Scheme; consulted for classes of resources that
            have no registered class
        """
        self.scheme = scheme
        self.encoders = dict(_encoders)
        self.decoders = dict(_decoders)
        self.optional_expansions = set(_optional_expansions)
        self.kube_object_classes = dict(_kube_object_classes)

    def encode(self, gvr: str, value):
        encode = self.encoders.get(gvr)
        return encode(value) if encode is not None else value

    def decode(self, gvr: str, value):
        decode = self.decoders.get(gvr)
        return decode(value) if decode is not None else value

    def is_optional_expansion(self, property_name: str) -> bool:
        return property_name in self.optional_expansions

    def class_for(self, kube_type) -> type:
        """
        Returns the dataclass to use for new objects of kube_type

        :param kube_type: a KubeType
        :return: a dataclass
        :raises ReferenceResolutionError: if neither the registry nor the
            scheme know a dataclass for the type
        """
        cls: Optional[type] = self.kube_object_classes.get(kube_type.gvr())
        if cls is None and self.scheme is not None:
            try:
                cls = self.scheme.class_for(kube_type.gvk())
            except NotRegisteredError:
                cls = None
        if cls is None or not is_dataclass(cls):
            raise ReferenceResolutionError(f"unsupported kube object for GVR "
                                           f"{kube_type.gvr()!r}")
        return cls

    def unstructured_object_for(self, kube_type) -> dict:
        cls = self.class_for(kube_type)
        empty = cls.get_empty_instance() if hasattr(cls, "get_empty_instance") else cls()
        return to_object_map(empty)

    def object_for(self, kube_type, obj_map: dict):
        return from_object_map(self.class_for(kube_type), obj_map)
