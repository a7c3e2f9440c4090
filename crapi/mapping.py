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
Reference mappings and the schema walker that discovers them

A schema node that carries both the x-kubernetes-mapping and the
x-openapi-mapping extensions marks a reference slot in a custom resource: the
API value for that slot lives in another Kubernetes object (a Secret, or
another custom resource) and the custom resource only holds a reference record
``{name: ..., key: ...}`` to it.

Given a schema such as::

    notifications:
      type: array
      items:
        properties:
          datadogApiKeySecretRef:
            x-kubernetes-mapping:
              nameSelector: .name
              propertySelectors: ["$.data.#"]
              type: {kind: Secret, resource: secrets, version: v1}
            x-openapi-mapping:
              property: .datadogApiKey
              type: string

find_mappings() produces one Mapping whose path ends in
``notifications.[].datadogApiKeySecretRef``.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from crapi.errors import (CrapiException, NoMatchingPropertySelectorError,
                          NotFoundError, ReferenceResolutionError, SchemaError,
                          TypeMismatchError)
from crapi.kube import GroupVersionKind, gvk_string, set_object_identity
from crapi.naming import make_api_version
from crapi.objmap import (ITEMS, as_path, base, create_field, dirpath,
                          from_object_map, get_field, resolve_xpath, to_object_map)

_LOGGER = logging.getLogger(__name__)

X_KUBERNETES_MAPPING = "x-kubernetes-mapping"
X_OPENAPI_MAPPING = "x-openapi-mapping"
REF_NAME = "name"
REF_KEY = "key"
PROPERTY_SELECTOR_SUFFIX = ".#"


@dataclass(frozen=True)
class KubeType:
    kind: str = ""
    group: str = ""
    version: str = ""
    resource: str = ""

    def gvk(self) -> GroupVersionKind:
        return GroupVersionKind(self.group or "", self.version, self.kind)

    def gvr(self) -> str:
        """
        Returns the group/version/resource string used to key resolver registries

        :return: 'v1/secrets' for the core group, else
            'atlas.generated.mongodb.com/v1/groups' and the like
        """
        return f"{make_api_version(self.group, self.version)}/{self.resource}"


@dataclass(frozen=True)
class OpenAPIMapping:
    property: str = ""
    type: str = ""

    def target_path(self) -> List[str]:
        return resolve_xpath(self.property)


@dataclass(frozen=True)
class KubeMapping:
    """
    Describes the Kubernetes object a reference points to

    nameSelector locates the object's name inside a reference record,
    properties are paths inside the object whose values identify it (used to
    reuse an existing object and to read a value back), and propertySelectors
    are paths where a new object stores the value. A selector ending in '.#'
    has the '#' replaced by the reference key.
    """
    nameSelector: str = ""
    propertySelectors: Tuple[str, ...] = ()
    properties: Tuple[str, ...] = ()
    type: KubeType = KubeType()

    def gvk(self) -> GroupVersionKind:
        return self.type.gvk()

    def gvr(self) -> str:
        return self.type.gvr()

    def equal(self, gvk: GroupVersionKind) -> bool:
        return (self.type.group or "") == gvk.group and \
            self.type.version == gvk.version and self.type.kind == gvk.kind

    def encode(self, resolver, value):
        return resolver.encode(self.gvr(), value)

    def decode(self, resolver, value):
        return resolver.decode(self.gvr(), value)

    def selector_path(self, selector: str, key: str) -> List[str]:
        if selector.endswith(PROPERTY_SELECTOR_SUFFIX):
            selector = f"{selector[:-len(PROPERTY_SELECTOR_SUFFIX)]}.{key}"
        return resolve_xpath(selector)

    def set_at_property_selectors(self, resolver, key: str, value, name: str,
                                  namespace: str):
        """
        Creates a new object of this mapping's type holding value

        Each property selector is tried in turn; the first one where the value
        survives conversion into the typed object wins.

        :param resolver: a ReferenceResolver
        :param key: the reference key, substituted for a trailing '#'
        :param value: the already encoded value
        :param name: name for the new object
        :param namespace: namespace for the new object
        :return: the new typed object
        :raises NoMatchingPropertySelectorError: if no selector could hold the value
        """
        gvk = self.gvk()
        for selector in self.propertySelectors:
            path = self.selector_path(selector, key)
            obj_map = resolver.unstructured_object_for(self.type)
            set_object_identity(obj_map, gvk, name, namespace)
            create_field(obj_map, value, *path)
            obj = resolver.object_for(self.type, obj_map)
            try:
                stored = get_field(to_object_map(obj), *path)
            except NotFoundError:
                continue
            if stored == value:
                return obj
        raise NoMatchingPropertySelectorError(f"no matching property selector "
                                              f"found to set value on a "
                                              f"{gvk_string(gvk)}")

    def _fetch_first(self, resource: dict, paths: Sequence[List[str]]):
        for path in paths:
            try:
                return get_field(resource, *path)
            except NotFoundError:
                continue
        raise NotFoundError(paths[-1] if paths else [])

    def fetch_referenced_value(self, kubeset, key: str, reference: dict):
        """
        Reads the value a reference record points to

        :param kubeset: the Kubeset holding the referenced object
        :param key: the reference key, substituted for a trailing '#' in
            property selectors
        :param reference: the reference record
        :return: the decoded value
        :raises ReferenceResolutionError: if the record has no name, the object
            isn't known, is of the wrong kind, or doesn't hold a value
        """
        if not self.nameSelector:
            raise ReferenceResolutionError(f"cannot solve reference without a "
                                           f"{X_KUBERNETES_MAPPING}.nameSelector")
        try:
            ref_name = get_field(reference, *as_path(self.nameSelector), expected=str)
        except (NotFoundError, TypeMismatchError) as e:
            raise ReferenceResolutionError(f"failed to access field "
                                           f"{self.nameSelector!r} at "
                                           f"{reference}: {e}") from e
        candidates = kubeset.find_all(ref_name)
        if not candidates:
            raise ReferenceResolutionError(f"failed to find Kubernetes resource "
                                           f"{ref_name!r}")
        entry = candidates[0]
        if self.type.kind:
            entry = next((c for c in candidates
                          if c.gvk is not None and self.equal(c.gvk)), None)
        if entry is None:
            got = ", ".join(gvk_string(c.gvk) if c.gvk else "an unknown kind"
                            for c in candidates)
            raise ReferenceResolutionError(f"resource {ref_name!r} had to be a "
                                           f"{gvk_string(self.gvk())!r} but got "
                                           f"{got!r}")
        try:
            value = self._fetch_first(entry.obj_map,
                                      [resolve_xpath(p) for p in self.properties])
        except NotFoundError:
            try:
                value = self._fetch_first(entry.obj_map,
                                          [self.selector_path(s, key)
                                           for s in self.propertySelectors])
            except NotFoundError as e:
                raise ReferenceResolutionError(f"resource {ref_name!r} holds no "
                                               f"value for key {key!r}") from e
        except TypeMismatchError as e:
            raise ReferenceResolutionError(f"failed to resolve reference "
                                           f"properties of {ref_name!r}: {e}") from e
        return self.decode(kubeset.resolver, value)


@dataclass(frozen=True)
class Mapping:
    path: Tuple[str, ...]
    kube_mapping: KubeMapping
    openapi_mapping: OpenAPIMapping

    @property
    def property_name(self) -> str:
        return base(self.path)

    def target_path(self) -> List[str]:
        return self.openapi_mapping.target_path()

    def collapsed_path(self) -> List[str]:
        return dirpath(self.path) + self.target_path()


def is_reference(schema: dict) -> bool:
    return schema.get(X_KUBERNETES_MAPPING) is not None and \
        schema.get(X_OPENAPI_MAPPING) is not None


def _decode_extension(cls: type, schema: dict, key: str, path: Tuple[str, ...]):
    payload = schema[key]
    if not isinstance(payload, dict):
        raise SchemaError(f"{key} of {base(path)!r} at {'.'.join(path)} must be "
                          f"an object, not {type(payload).__name__}")
    try:
        return from_object_map(cls, payload)
    except CrapiException as e:
        raise SchemaError(f"failed to decode {key} of {base(path)!r} at "
                          f"{'.'.join(path)}: {e}") from e


def new_mapping(path: Sequence[str], schema: dict) -> Mapping:
    """
    Builds a Mapping from a schema node carrying both extensions

    :param path: structural path of the node
    :param schema: the node itself
    :return: a Mapping
    :raises SchemaError: if either extension can't be decoded
    """
    path = tuple(path)
    kube_mapping = _decode_extension(KubeMapping, schema, X_KUBERNETES_MAPPING, path)
    openapi_mapping = _decode_extension(OpenAPIMapping, schema, X_OPENAPI_MAPPING,
                                        path)
    if not openapi_mapping.property:
        raise SchemaError(f"{X_OPENAPI_MAPPING} of {base(path)!r} at "
                          f"{'.'.join(path)} has no property")
    return Mapping(path, kube_mapping, openapi_mapping)


def find_mappings(schema: Optional[dict], path: Sequence[str] = (),
                  mappings: Optional[List[Mapping]] = None) -> List[Mapping]:
    """
    Walks a schema and returns a Mapping for every reference slot in it

    Properties are visited in alphabetical order and array item schemas add a
    '[]' segment to the path, so the result is the same on every run. A node
    with both extensions is a terminal reference slot; its children are not
    walked.

    :param schema: an OpenAPI v3 schema node as an object map, or None
    :param path: structural path of schema
    :param mappings: optional list to accumulate into
    :return: the list of Mappings found
    :raises SchemaError: if a node is malformed or an extension can't be decoded
    """
    if mappings is None:
        mappings = []
    if schema is None:
        return mappings
    path = tuple(path)
    if not isinstance(schema, dict):
        raise SchemaError(f"schema node {base(path)!r} at {'.'.join(path)} "
                          f"is a {type(schema).__name__}, not an object")
    if is_reference(schema):
        mapping = new_mapping(path, schema)
        _LOGGER.debug("found reference mapping at %s to %s", ".".join(path),
                      mapping.kube_mapping.gvr())
        mappings.append(mapping)
        return mappings
    props = schema.get("properties") or {}
    for name in sorted(props):
        find_mappings(props[name], path + (name,), mappings)
    find_mappings(schema.get("items"), path + (ITEMS,), mappings)
    return mappings
