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
Helpers for reading CustomResourceDefinition documents

CRDs are handled as object maps: parsed YAML, parsed JSON, or anything
to_object_map() accepts, such as a kubernetes client
V1CustomResourceDefinition.
"""
from typing import List, Optional, TextIO

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from crapi.errors import SchemaError
from crapi.kube import GroupVersionKind
from crapi.objmap import to_object_map

# annotation holding a YAML copy of the schema with reference extensions
API_MAPPINGS_ANNOTATION = "api-mappings"


def load_crds(path: str = None, stream: TextIO = None,
              yaml: str = None) -> List[dict]:
    """
    Takes a path, stream, or string for a YAML file and returns its CRD documents

    Only one of path, stream or yaml should be supplied. If yaml is supplied in
    addition to path or stream, only the yaml parameter is used. If stream and
    path are supplied, then only stream is used.

    :param path: string; path to a YAML file containing one or more CRDs
    :param stream: file-like object; opened on such a YAML file
    :param yaml: string; YAML text with one or more documents
    :return: list of dicts, one per document whose kind is
        CustomResourceDefinition
    :raises RuntimeError: if none of path, stream or yaml are provided.
    """
    if path is None and stream is None and yaml is None:
        raise RuntimeError("One of path, stream, or yaml must be specified")
    if yaml:
        to_parse = yaml
    elif stream:
        to_parse = stream.read()
    else:
        with open(path, "r") as f:
            to_parse = f.read()
    parser = YAML(typ="safe")
    return [doc for doc in parser.load_all(to_parse)
            if isinstance(doc, dict) and doc.get("kind") == "CustomResourceDefinition"]


def crd_as_map(crd) -> dict:
    if isinstance(crd, dict):
        return crd
    return to_object_map(crd)


def crd_kind(crd_map: dict) -> str:
    return ((crd_map.get("spec") or {}).get("names") or {}).get("kind", "")


def crd_gvk(crd_map: dict, version: str) -> GroupVersionKind:
    return GroupVersionKind((crd_map.get("spec") or {}).get("group", ""), version,
                            crd_kind(crd_map))


def select_version(crd_map: dict, version: str) -> Optional[dict]:
    """
    Finds a version entry in a CRD's spec

    :param crd_map: the CRD as an object map
    :param version: name of the version to find; '' selects the first
    :return: the version's object map, or None if there's no such version
    """
    versions = (crd_map.get("spec") or {}).get("versions") or []
    if not versions:
        return None
    if version == "":
        return versions[0]
    for v in versions:
        if v.get("name") == version:
            return v
    return None


def get_openapi_properties(kind: str, version_map: Optional[dict]) -> dict:
    if version_map is None:
        raise SchemaError(f"missing version (nil) from {kind} spec")
    schema = version_map.get("schema")
    if schema is None:
        raise SchemaError(f"missing version schema from {kind} spec")
    openapi = schema.get("openAPIV3Schema")
    if openapi is None:
        raise SchemaError(f"missing version OpenAPI Schema from {kind} spec")
    props = openapi.get("properties")
    if props is None:
        raise SchemaError(f"missing version OpenAPI Properties from {kind} spec")
    return props


def get_spec_properties_for(kind: str, props: dict, field: str) -> Optional[dict]:
    """
    Returns the nested properties of one object-typed field

    :param kind: the CRD kind, used for messages only
    :param props: a 'properties' map from a schema
    :param field: name of the field inside props
    :return: the field's own 'properties' map, or None if it has none
    :raises SchemaError: if the field is missing or isn't an object
    """
    if field not in props:
        raise SchemaError(f"kind {kind!r} schema is missing field {field!r}")
    field_schema = props[field] or {}
    field_type = field_schema.get("type")
    if field_type != "object":
        raise SchemaError(f"kind {kind!r} field {field!r} expected to be object "
                          f"but is {field_type}")
    return field_schema.get("properties")


def assert_major_version(version_map: Optional[dict], kind: str,
                         major_version: str) -> None:
    """
    Checks that a CRD version has a spec entry for an SDK major version

    :raises SchemaError: if the version, its schema or the major version entry
        are missing
    """
    props = get_openapi_properties(kind, version_map)
    spec_props = get_spec_properties_for(kind, props, "spec") or {}
    if major_version not in spec_props:
        raise SchemaError(f"failed to match the CRD spec version "
                          f"{major_version!r} in schema")


def get_mapping_schema(crd_map: dict, version_map: dict) -> Optional[dict]:
    """
    Returns the schema that carries the reference mapping extensions

    The 'api-mappings' annotation on the CRD takes precedence; otherwise the
    version's own OpenAPI v3 schema is used.

    :param crd_map: the CRD as an object map
    :param version_map: the selected version of the CRD
    :return: a schema object map, or None if there isn't one
    :raises SchemaError: if the annotation isn't a YAML mapping
    """
    annotations = (crd_map.get("metadata") or {}).get("annotations") or {}
    mappings_yaml = annotations.get(API_MAPPINGS_ANNOTATION)
    if mappings_yaml:
        try:
            schema = YAML(typ="safe").load(mappings_yaml)
        except YAMLError as e:
            raise SchemaError(f"failed to parse the {API_MAPPINGS_ANNOTATION} "
                              f"annotation: {e}") from e
        if not isinstance(schema, dict):
            raise SchemaError(f"the {API_MAPPINGS_ANNOTATION} annotation isn't "
                              f"a mapping")
        return schema
    return (version_map.get("schema") or {}).get("openAPIV3Schema")


def sdk_version_schema(schema: Optional[dict], major_version: str) -> Optional[dict]:
    if schema is None:
        return None
    spec = (schema.get("properties") or {}).get("spec") or {}
    return (spec.get("properties") or {}).get(major_version)
