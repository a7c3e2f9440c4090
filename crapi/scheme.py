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
A registry of the classes that can stand for a Kubernetes group/version/kind
"""
from typing import Dict, List, Optional

from kubernetes.client import V1Secret

from crapi.errors import NotRegisteredError
from crapi.kube import GroupVersionKind, Secret, gvk_from, gvk_string


class Scheme(object):
    """
    Maps classes to GroupVersionKinds and back

    A class can be registered under more than one GVK and several classes can
    be registered for the same GVK; the first class registered for a GVK is
    the one that class_for() returns.
    """

    def __init__(self):
        self._kinds_by_class: Dict[type, List[GroupVersionKind]] = {}
        self._classes_by_kind: Dict[GroupVersionKind, type] = {}

    def add_known_type(self, cls: type, api_version: Optional[str] = None,
                       kind: Optional[str] = None) -> type:
        """
        Register a class under an apiVersion and kind

        If api_version or kind aren't supplied, the class attributes of the
        same name are used; this suits dataclasses whose apiVersion and kind
        fields have defaults.

        :param cls: the class to register
        :param api_version: optional string; for example 'v1' or
            'atlas.generated.mongodb.com/v1'
        :param kind: optional string; the kind of object cls models
        :return: cls, so that this can also be used in a decorator
        :raises NotRegisteredError: if the apiVersion or kind can't be determined
        """
        api_version = api_version or getattr(cls, "apiVersion", None)
        kind = kind or getattr(cls, "kind", None)
        if not isinstance(api_version, str) or not isinstance(kind, str):
            raise NotRegisteredError(f"can't determine apiVersion and kind of "
                                     f"{cls.__name__}")
        gvk = gvk_from(api_version, kind)
        kinds = self._kinds_by_class.setdefault(cls, [])
        if gvk not in kinds:
            kinds.append(gvk)
        self._classes_by_kind.setdefault(gvk, cls)
        return cls

    def object_kinds(self, obj) -> List[GroupVersionKind]:
        """
        Returns the GVKs registered for the type of obj

        :param obj: an instance of a registered class
        :return: non-empty list of GroupVersionKind
        :raises NotRegisteredError: if type(obj) was never registered
        """
        kinds = self._kinds_by_class.get(type(obj))
        if not kinds:
            raise NotRegisteredError(f"no kind is registered for the type "
                                     f"{type(obj).__name__}")
        return list(kinds)

    def class_for(self, gvk: GroupVersionKind) -> type:
        cls = self._classes_by_kind.get(gvk)
        if cls is None:
            raise NotRegisteredError(f"{gvk_string(gvk)} is not registered")
        return cls


def new_scheme() -> Scheme:
    """
    Create a Scheme that already knows the core types crapi works with

    :return: a Scheme with Secret registered, both as crapi's own dataclass and
        as the kubernetes client's V1Secret
    """
    scheme = Scheme()
    scheme.add_known_type(Secret)
    scheme.add_known_type(V1Secret, "v1", "Secret")
    return scheme
