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
from crapi.errors import (CrapiException, SchemaError, NotFoundError,
                          TypeMismatchError, ReferenceResolutionError,
                          NoMatchingPropertySelectorError, NotRegisteredError,
                          TranslationError)
from crapi.meta import CRBase
from crapi.kube import GroupVersionKind, ObjectMeta, KubeObject, Secret
from crapi.naming import process_api_version, prefixed_name
from crapi.scheme import Scheme, new_scheme
from crapi.objmap import (to_object_map, from_object_map, copy_fields, as_path,
                          base, dirpath, resolve_xpath, get_field, get_field_object,
                          get_field_holder, get_or_create_field, create_field,
                          iter_field_objects)
from crapi.crds import load_crds, select_version, assert_major_version
from crapi.mapping import (Mapping, KubeMapping, KubeType, OpenAPIMapping,
                           find_mappings)
from crapi.resolver import (ReferenceResolver, register_encoder, register_decoder,
                            register_optional_expansion, register_kube_object_class)
from crapi.refs import Kubeset, expand_all, collapse_all
from crapi.translator import Translator, new_translator, new_per_version_translators

__version__ = "0.1.0"

__all__ = ["CrapiException", "SchemaError", "NotFoundError", "TypeMismatchError",
           "ReferenceResolutionError", "NoMatchingPropertySelectorError",
           "NotRegisteredError", "TranslationError", "CRBase", "GroupVersionKind",
           "ObjectMeta", "KubeObject", "Secret", "process_api_version",
           "prefixed_name", "Scheme", "new_scheme", "to_object_map",
           "from_object_map", "copy_fields", "as_path", "base", "dirpath",
           "resolve_xpath", "get_field", "get_field_object", "get_field_holder",
           "get_or_create_field", "create_field", "iter_field_objects",
           "load_crds", "select_version", "assert_major_version", "Mapping",
           "KubeMapping", "KubeType", "OpenAPIMapping", "find_mappings",
           "ReferenceResolver", "register_encoder", "register_decoder",
           "register_optional_expansion", "register_kube_object_class",
           "Kubeset", "expand_all", "collapse_all", "Translator", "new_translator",
           "new_per_version_translators"]
