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
Translation between custom resources and API objects

A Translator is bound to one CRD, one version of it, and one SDK major
version; the custom resource keeps the data for that major version under
``spec.<major>`` (with the request fields under ``spec.<major>.entry``) and
``status.<major>``. Given a resource such as::

    apiVersion: atlas.generated.mongodb.com/v1
    kind: GroupAlertsConfig
    metadata:
      name: my-alerts
    spec:
      v20250312:
        groupRef:
          name: my-project
        entry:
          eventTypeName: NO_PRIMARY

the CRD version is 'v1' and the major version is 'v20250312'.

A Translator is immutable once built and can be shared between threads; each
call works on its own Kubeset.
"""
import copy
import logging
from typing import Dict, FrozenSet, List, Optional, Tuple

from crapi.crds import (assert_major_version, crd_as_map, crd_gvk, crd_kind,
                        get_mapping_schema, sdk_version_schema, select_version)
from crapi.errors import (NotFoundError, NotRegisteredError, SchemaError,
                          TranslationError, TypeMismatchError)
from crapi.kube import GroupVersionKind, gvk_string, object_gvk
from crapi.mapping import Mapping, find_mappings
from crapi.objmap import (copy_fields, from_object_map, get_field_object,
                          get_or_create_field, to_object_map)
from crapi.refs import Kubeset, collapse_all, expand_all
from crapi.resolver import ReferenceResolver

_LOGGER = logging.getLogger(__name__)

ENTRY = "entry"


def _property_names(schema: Optional[dict], *path) -> Optional[FrozenSet[str]]:
    node = schema
    for p in path:
        if not isinstance(node, dict):
            return None
        node = (node.get("properties") or {}).get(p)
    if not isinstance(node, dict) or not node.get("properties"):
        return None
    return frozenset(node["properties"])


def _copy_selected(dst: dict, src: dict, allowed: Optional[FrozenSet[str]]) -> dict:
    for k, v in src.items():
        if allowed is None or k in allowed:
            dst[k] = copy.deepcopy(v)
    return dst


class Translator(object):
    def __init__(self, scheme, gvk: GroupVersionKind, major_version: str,
                 mappings: Tuple[Mapping, ...],
                 annotations: Optional[Dict[str, str]] = None,
                 spec_fields: Optional[FrozenSet[str]] = None,
                 status_fields: Optional[FrozenSet[str]] = None):
        self.scheme = scheme
        self.gvk = gvk
        self._major_version = major_version
        self._mappings = tuple(mappings)
        self._annotations = dict(annotations or {})
        self._spec_fields = spec_fields
        self._status_fields = status_fields

    @property
    def major_version(self) -> str:
        return self._major_version

    def mappings(self) -> Tuple[Mapping, ...]:
        return self._mappings

    def annotation(self, key: str) -> str:
        return self._annotations.get(key, "")

    def _check_kind(self, obj, obj_map: dict) -> None:
        gvk = object_gvk(obj_map)
        if gvk is not None:
            kinds = [gvk]
        elif self.scheme is not None:
            try:
                kinds = self.scheme.object_kinds(obj)
            except NotRegisteredError:
                kinds = []
        else:
            kinds = []
        if kinds and self.gvk not in kinds:
            raise TypeMismatchError(f"expected a {gvk_string(self.gvk)} but got a "
                                    f"{gvk_string(kinds[0])}")

    def _kubeset(self, main, main_map: dict, deps) -> Kubeset:
        return Kubeset(main, deps, scheme=self.scheme,
                       resolver=ReferenceResolver(self.scheme), main_map=main_map)

    def to_api(self, target, source, *deps):
        """
        Translates a custom resource into an API request value

        References in the resource's spec are collapsed using deps, then the
        fields of ``spec.<major>`` and ``spec.<major>.entry`` populate target.
        Nothing from the status is used.

        :param target: the API type (a dataclass class), or an instance or dict
            to populate in place
        :param source: the custom resource
        :param deps: objects that references in source may point to
        :return: the populated target
        :raises TypeMismatchError: if source isn't of this translator's kind, or
            a value can't be coerced into target
        :raises TranslationError: if a reference can't be solved
        """
        source_map = to_object_map(source)
        self._check_kind(source, source_map)
        kubeset = self._kubeset(source, source_map, deps)
        collapse_all(self._mappings, kubeset, source_map)
        try:
            value = get_field_object(source_map, "spec", self._major_version)
        except NotFoundError as e:
            raise TranslationError(["spec", self._major_version],
                                   self._major_version, e) from e
        request = copy_fields({}, {k: v for k, v in value.items() if k != ENTRY})
        entry = value.get(ENTRY)
        if isinstance(entry, dict):
            copy_fields(request, entry)
        return from_object_map(target, request)

    def from_api(self, target, source, *deps) -> List:
        """
        Translates an API response value into a custom resource

        The response is copied into ``spec.<major>``, ``spec.<major>.entry``
        and ``status.<major>`` of target; when the CRD's schema lists the
        properties of the spec and status major versions, only those are
        copied there. References are then expanded, which moves referenced
        values into other objects.

        :param target: the custom resource to populate in place; a dataclass
            instance or a dict
        :param source: the API response value
        :param deps: objects already known; matching ones are reused rather
            than created again
        :return: list of the objects created by expanding references; the
            caller is responsible for persisting them
        :raises TypeMismatchError: if target isn't of this translator's kind
        :raises TranslationError: if a reference can't be expanded
        """
        source_map = to_object_map(source)
        target_map = to_object_map(target)
        self._check_kind(target, target_map)
        versioned_spec = get_or_create_field(target_map, {}, "spec",
                                             self._major_version)
        versioned_status = get_or_create_field(target_map, {}, "status",
                                               self._major_version)
        if not isinstance(versioned_spec, dict) or not isinstance(versioned_status,
                                                                  dict):
            raise TypeMismatchError(f"spec.{self._major_version} and "
                                    f"status.{self._major_version} must be objects")
        _copy_selected(versioned_spec, source_map, self._spec_fields)
        versioned_spec[ENTRY] = _copy_selected({}, source_map, None)
        _copy_selected(versioned_status, source_map, self._status_fields)

        kubeset = self._kubeset(target, target_map, deps)
        added = expand_all(self._mappings, kubeset, target_map,
                           root=("spec", self._major_version))
        from_object_map(target, target_map)
        return added


def new_translator(scheme, crd, crd_version: str, major_version: str) -> Translator:
    """
    Create a Translator for one CRD version and one SDK major version

    The reference mappings are discovered once, here, from the CRD's
    'api-mappings' annotation if it has one, else from the version's OpenAPI
    v3 schema.

    :param scheme: a Scheme, used to find the kinds of objects that don't
        carry apiVersion and kind, and the classes of new referenced objects
    :param crd: the CRD; a dict, or anything to_object_map() accepts
    :param crd_version: name of the CRD version; '' selects the first one
    :param major_version: the SDK major version, a property of the spec
    :return: a Translator
    :raises SchemaError: if the version or major version is missing, or the
        mapping extensions are malformed
    """
    crd_map = crd_as_map(crd)
    kind = crd_kind(crd_map)
    version_map = select_version(crd_map, crd_version)
    if version_map is None:
        raise SchemaError(f"CRD {kind} has no version {crd_version!r}")
    assert_major_version(version_map, kind, major_version)
    mapping_schema = get_mapping_schema(crd_map, version_map)
    mappings = find_mappings(sdk_version_schema(mapping_schema, major_version),
                             ["spec", major_version])
    openapi = (version_map.get("schema") or {}).get("openAPIV3Schema")
    _LOGGER.debug("translator for %s %s found %d reference mappings", kind,
                  major_version, len(mappings))
    return Translator(scheme, crd_gvk(crd_map, version_map.get("name", crd_version)),
                      major_version, tuple(mappings),
                      annotations=(crd_map.get("metadata") or {}).get("annotations"),
                      spec_fields=_property_names(openapi, "spec", major_version),
                      status_fields=_property_names(openapi, "status", major_version))


def new_per_version_translators(scheme, crd, crd_version: str,
                                *major_versions: str) -> Dict[str, Translator]:
    """
    Create a Translator for each of several SDK major versions of one CRD

    :return: dict of major version to Translator
    :raises SchemaError: if any of the major versions is missing
    """
    return {mv: new_translator(scheme, crd, crd_version, mv)
            for mv in major_versions}
