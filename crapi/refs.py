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
Expansion and collapse of references

Expanding goes from API data to a custom resource: a raw value at a reference
slot is moved into another Kubernetes object (an existing one when its value
matches, else a new one) and replaced by a reference record. Collapsing goes
the other way: a reference record is solved against the known objects and the
value it points to is written back where the API expects it.

Both work on object maps and on a Kubeset, the per-call working set of
objects.
"""
import logging
from collections import namedtuple
from typing import Iterable, List, Optional, Sequence

from crapi.errors import (CrapiException, NoMatchingPropertySelectorError,
                          NotFoundError, NotRegisteredError, TranslationError,
                          TypeMismatchError)
from crapi.kube import GroupVersionKind, object_gvk, object_name, object_namespace
from crapi.mapping import REF_KEY, REF_NAME, KubeMapping, Mapping
from crapi.naming import prefixed_name
from crapi.objmap import (base, dirpath, get_field, get_field_holder,
                          iter_field_objects, create_field, resolve_xpath,
                          to_object_map)
from crapi.resolver import ReferenceResolver

_LOGGER = logging.getLogger(__name__)


KubeEntry = namedtuple("KubeEntry", ["obj", "obj_map", "name", "namespace", "gvk"])


class Kubeset(object):
    """
    The objects taking part in one translation

    Holds the main object being translated, the dependencies the caller
    supplied and any objects created while expanding references. A Kubeset
    is built for a single call and then discarded.
    """

    def __init__(self, main, deps: Iterable = (), scheme=None,
                 resolver: Optional[ReferenceResolver] = None,
                 main_map: Optional[dict] = None):
        """
        :param main: the object being translated; source of the namespace and
            of the name prefix for new objects
        :param deps: dependency objects; dataclasses, dicts or kubernetes
            client models
        :param scheme: optional Scheme used to find the kind of dependencies
            that don't carry apiVersion and kind
        :param resolver: optional ReferenceResolver; one is created from the
            scheme if not supplied
        :param main_map: optional object map form of main, if already computed
        """
        self.main = main
        main_map = main_map if main_map is not None else to_object_map(main)
        self.main_name = object_name(main_map) or ""
        self.main_namespace = object_namespace(main_map)
        self.scheme = scheme
        self.resolver = resolver if resolver is not None else ReferenceResolver(scheme)
        self.added: list = []
        self._entries: dict = {}
        for dep in deps:
            self._register(dep)

    def _kind_of(self, obj, obj_map: dict) -> Optional[GroupVersionKind]:
        gvk = object_gvk(obj_map)
        if gvk is not None or self.scheme is None:
            return gvk
        try:
            return self.scheme.object_kinds(obj)[0]
        except NotRegisteredError:
            return None

    def _register(self, obj) -> KubeEntry:
        obj_map = to_object_map(obj)
        entry = KubeEntry(obj, obj_map, object_name(obj_map) or "",
                          object_namespace(obj_map) or self.main_namespace,
                          self._kind_of(obj, obj_map))
        # objects of different kinds may share a name
        same_name = self._entries.setdefault((entry.namespace, entry.name), [])
        same_name[:] = [e for e in same_name if e.gvk != entry.gvk]
        same_name.append(entry)
        return entry

    def find_all(self, name: str) -> List[KubeEntry]:
        return list(self._entries.get((self.main_namespace, name), ()))

    def find(self, name: str,
             gvk: Optional[GroupVersionKind] = None) -> Optional[KubeEntry]:
        """
        Looks up an object by name in the main object's namespace

        :param name: the object's name
        :param gvk: optional GroupVersionKind the object must have
        :return: the first matching KubeEntry, or None
        """
        for entry in self.find_all(name):
            if gvk is None or entry.gvk == gvk:
                return entry
        return None

    def has(self, name: str, gvk: Optional[GroupVersionKind] = None) -> bool:
        return self.find(name, gvk) is not None

    def add(self, obj) -> KubeEntry:
        entry = self._register(obj)
        self.added.append(obj)
        return entry

    def entries(self) -> List[KubeEntry]:
        return [e for same_name in self._entries.values() for e in same_name]


def values_match(value, other) -> bool:
    """
    Compares a dependency's property value with a raw API value

    bytes are compared as their UTF-8 text so that either side can be a
    string; None never matches.
    """
    if value is None or other is None:
        return False
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="replace")
    if isinstance(other, (bytes, bytearray)):
        other = bytes(other).decode("utf-8", errors="replace")
    return value == other


def find_matching_dependency(kubeset: Kubeset, kube_mapping: KubeMapping,
                             value) -> Optional[KubeEntry]:
    """
    Finds a known object of the mapping's type that already holds value

    Only objects in the main object's namespace are considered, since a
    reference can't point anywhere else. Objects whose kind can't be
    determined, or whose properties can't be read, are skipped.

    :param kubeset: the Kubeset to search
    :param kube_mapping: the KubeMapping of the reference
    :param value: the raw API value
    :return: the matching KubeEntry or None
    """
    if not kube_mapping.properties:
        return None
    for entry in kubeset.entries():
        if entry.namespace != kubeset.main_namespace:
            continue
        if entry.gvk is None:
            _LOGGER.debug("skipping dependency %r of unknown kind", entry.name)
            continue
        if not kube_mapping.equal(entry.gvk):
            continue
        for prop in kube_mapping.properties:
            try:
                candidate = get_field(entry.obj_map, *resolve_xpath(prop))
            except (NotFoundError, TypeMismatchError):
                continue
            if values_match(candidate, value):
                return entry
    return None


def _name_path(concrete_dir: Sequence[str], target_path: Sequence[str],
               root: Sequence[str]) -> List[str]:
    path = list(concrete_dir[len(root):]) + list(target_path)
    if path and path[0] == "entry":
        path = path[1:]
    return path


def expand(mapping: Mapping, kubeset: Kubeset, obj_map: dict,
           root: Sequence[str] = ()) -> None:
    """
    Expands one mapping in obj_map

    Every raw value found at the mapping's collapsed path is replaced by a
    reference record in the mapping's slot. A path that isn't there is a no-op.

    When an object of the mapping's kind already carries the generated name,
    no new object is created, but the reference record is still written and
    the raw value removed, so that the custom resource looks the same as
    after the pass that created the object.

    :param mapping: the Mapping to expand
    :param kubeset: the Kubeset for this call; receives new objects
    :param obj_map: the custom resource as an object map, modified in place
    :param root: leading part of mapping paths left out of generated names
    :raises CrapiException: if a value can't be encoded or stored, or if a
        holder on the path has the wrong shape
    """
    kube_mapping = mapping.kube_mapping
    target_path = mapping.target_path()
    key = base(target_path)
    for concrete_dir, holder in iter_field_objects(obj_map, dirpath(mapping.path)):
        if not isinstance(holder, dict):
            raise TypeMismatchError(f"{'.'.join(concrete_dir)} holds a "
                                    f"{type(holder).__name__}, not an object")
        try:
            raw_holder = get_field_holder(holder, *target_path)
        except NotFoundError:
            continue
        raw_value = raw_holder[key]
        if raw_value is None:
            continue

        dep = find_matching_dependency(kubeset, kube_mapping, raw_value)
        if dep is not None:
            _LOGGER.debug("reusing %s for %s", dep.name, ".".join(concrete_dir + [key]))
            holder[mapping.property_name] = {REF_NAME: dep.name}
            del raw_holder[key]
            continue

        name = prefixed_name(kubeset.main_name,
                             *_name_path(concrete_dir, target_path, root))
        reference = {REF_NAME: name, REF_KEY: key}
        if kubeset.has(name, kube_mapping.gvk()):
            _LOGGER.debug("%s already exists, not creating it again", name)
            holder[mapping.property_name] = reference
            del raw_holder[key]
            continue

        resolver = kubeset.resolver
        value = kube_mapping.encode(resolver, raw_value)
        try:
            dep_obj = kube_mapping.set_at_property_selectors(
                resolver, key, value, name, kubeset.main_namespace)
        except (NoMatchingPropertySelectorError, TypeMismatchError):
            if resolver.is_optional_expansion(mapping.property_name):
                _LOGGER.debug("optional expansion of %s skipped",
                              mapping.property_name)
                continue
            raise
        _LOGGER.debug("created %s %s for %s", kube_mapping.gvr(), name,
                      ".".join(concrete_dir + [key]))
        holder[mapping.property_name] = reference
        del raw_holder[key]
        kubeset.add(dep_obj)


def collapse(mapping: Mapping, kubeset: Kubeset, obj_map: dict) -> None:
    """
    Collapses one mapping in obj_map

    Every non-empty reference record found at the mapping's path is solved
    and the value it points to is written at the API target path beside it.
    A path that isn't there is a no-op.

    :param mapping: the Mapping to collapse
    :param kubeset: the Kubeset holding the referenced objects
    :param obj_map: the custom resource as an object map, modified in place
    :raises CrapiException: if a reference can't be solved
    """
    target_path = mapping.target_path()
    for concrete_dir, holder in iter_field_objects(obj_map, dirpath(mapping.path)):
        if not isinstance(holder, dict):
            raise TypeMismatchError(f"{'.'.join(concrete_dir)} holds a "
                                    f"{type(holder).__name__}, not an object")
        reference = holder.get(mapping.property_name)
        if not isinstance(reference, dict) or not reference:
            continue
        key = reference.get(REF_KEY)
        if not isinstance(key, str) or not key:
            key = base(target_path)
        value = mapping.kube_mapping.fetch_referenced_value(kubeset, key, reference)
        create_field(holder, value, *target_path)


def expand_all(mappings: Iterable[Mapping], kubeset: Kubeset, obj_map: dict,
               root: Sequence[str] = ()) -> List:
    """
    Expands every mapping in obj_map

    :return: the objects created, in order of creation
    :raises TranslationError: wrapping the first failure, with the mapping's path
    """
    for mapping in mappings:
        try:
            expand(mapping, kubeset, obj_map, root)
        except CrapiException as e:
            raise TranslationError(mapping.path, mapping.property_name, e) from e
    return list(kubeset.added)


def collapse_all(mappings: Iterable[Mapping], kubeset: Kubeset,
                 obj_map: dict) -> dict:
    for mapping in mappings:
        try:
            collapse(mapping, kubeset, obj_map)
        except CrapiException as e:
            raise TranslationError(mapping.path, mapping.property_name, e) from e
    return obj_map
