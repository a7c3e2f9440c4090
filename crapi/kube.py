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
Minimal Kubernetes document classes and accessors for object maps

These are the shapes crapi itself needs to create: the object metadata, a
document base with apiVersion/kind, and Secret. Any other dependency type can
be supplied as a CRBase dataclass, a plain dict, or an object from the
official kubernetes client.
"""
import base64
from collections import namedtuple
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, List

from crapi.meta import CRBase
from crapi.naming import process_api_version, make_api_version


GroupVersionKind = namedtuple("GroupVersionKind", ["group", "version", "kind"])


def gvk_string(gvk: GroupVersionKind) -> str:
    if gvk.group:
        return f"{gvk.group}/{gvk.version}, Kind={gvk.kind}"
    return f"{gvk.version}, Kind={gvk.kind}"


def gvk_from(api_version: str, kind: str) -> GroupVersionKind:
    group, version = process_api_version(api_version)
    return GroupVersionKind(group, version, kind)


@dataclass
class ObjectMeta(CRBase):
    name: Optional[str] = None
    namespace: Optional[str] = None
    labels: Optional[Dict[str, str]] = field(default_factory=dict)
    annotations: Optional[Dict[str, str]] = field(default_factory=dict)
    uid: Optional[str] = None
    resourceVersion: Optional[str] = None
    generation: Optional[int] = None
    creationTimestamp: Optional[datetime] = None


@dataclass
class KubeObject(CRBase):
    """
    Base class for Kubernetes documents: anything with apiVersion, kind and metadata

    Subclasses override the defaults of apiVersion and kind.
    """
    apiVersion: Optional[str] = None
    kind: Optional[str] = None
    metadata: Optional[ObjectMeta] = field(default_factory=ObjectMeta)


@dataclass
class Secret(KubeObject):
    apiVersion: Optional[str] = "v1"
    kind: Optional[str] = "Secret"
    data: Optional[Dict[str, str]] = None
    stringData: Optional[Dict[str, str]] = None
    type: Optional[str] = None
    immutable: Optional[bool] = None

    def decoded_data(self) -> Dict[str, str]:
        """
        Returns the Secret's data with each value base64 decoded

        :return: dict of key to decoded string value
        """
        return {k: base64.b64decode(v).decode("utf-8")
                for k, v in (self.data or {}).items()}


def object_name(obj_map: dict) -> Optional[str]:
    return (obj_map.get("metadata") or {}).get("name")


def object_namespace(obj_map: dict) -> str:
    return (obj_map.get("metadata") or {}).get("namespace") or ""


def object_gvk(obj_map: dict) -> Optional[GroupVersionKind]:
    """
    Reads the GroupVersionKind of an object from its apiVersion and kind

    :param obj_map: the object map form of a Kubernetes object
    :return: a GroupVersionKind, or None if either field is empty
    """
    api_version = obj_map.get("apiVersion")
    kind = obj_map.get("kind")
    if not api_version or not kind:
        return None
    return gvk_from(api_version, kind)


def set_object_identity(obj_map: dict, gvk: GroupVersionKind, name: str,
                        namespace: str) -> dict:
    obj_map["apiVersion"] = make_api_version(gvk.group, gvk.version)
    obj_map["kind"] = gvk.kind
    metadata = obj_map.get("metadata")
    if not isinstance(metadata, dict):
        metadata = obj_map["metadata"] = {}
    metadata["name"] = name
    if namespace:
        metadata["namespace"] = namespace
    return obj_map


__all__: List[str] = ["GroupVersionKind", "gvk_string", "gvk_from", "ObjectMeta",
                      "KubeObject", "Secret", "object_name", "object_namespace",
                      "object_gvk", "set_object_identity"]
