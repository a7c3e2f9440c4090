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
import base64

import pytest
from kubernetes.client import V1ObjectMeta, V1Secret

from crapi import *
from crapi.refs import find_matching_dependency, values_match
from samples import *

GROUP_API_VERSION = "atlas.generated.mongodb.com/v1"


def secret_ref(selectors=("$.data.#",)) -> dict:
    return {
        "x-kubernetes-mapping": {
            "nameSelector": ".name",
            "propertySelectors": list(selectors),
            "type": {"kind": "Secret", "resource": "secrets", "version": "v1"},
        },
        "x-openapi-mapping": {"property": ".apiKey", "type": "string"},
    }


def group_ref() -> dict:
    return {
        "x-kubernetes-mapping": {
            "nameSelector": ".name",
            "properties": ["$.status.v1.id"],
            "type": {"kind": "Group", "group": "atlas.generated.mongodb.com",
                     "resource": "groups", "version": "v1"},
        },
        "x-openapi-mapping": {"property": "$.groupId", "type": "string"},
    }


def mappings_for(**props):
    return find_mappings({"properties": props}, ["spec", "v1"])


def widget(v1: dict = None) -> dict:
    w = {"apiVersion": "example.com/v1", "kind": "Widget",
         "metadata": {"name": "w", "namespace": "ns"}}
    if v1 is not None:
        w["spec"] = {"v1": v1}
    return w


def group_dict(name: str, group_id: str, namespace: str = "ns") -> dict:
    g = {"metadata": {"name": name}, "status": {"v1": {"id": group_id}}}
    if namespace:
        g["metadata"]["namespace"] = namespace
    g.update(apiVersion=GROUP_API_VERSION, kind="Group")
    return g


def expand_widget(obj_map: dict, mappings, *deps, scheme=None):
    kubeset = Kubeset(obj_map, deps, scheme=scheme)
    return expand_all(mappings, kubeset, obj_map, root=("spec", "v1"))


def collapse_widget(obj_map: dict, mappings, *deps, scheme=None):
    kubeset = Kubeset(obj_map, deps, scheme=scheme)
    return collapse_all(mappings, kubeset, obj_map)


def test01():
    """
    a raw value becomes a reference to a new Secret
    """
    m = widget({"apiKey": "k", "other": 1})
    added = expand_widget(m, mappings_for(apiKeySecretRef=secret_ref()))
    name = prefixed_name("w", "apiKey")
    assert m["spec"]["v1"] == {"other": 1,
                               "apiKeySecretRef": {"name": name, "key": "apiKey"}}
    assert len(added) == 1
    secret = added[0]
    assert isinstance(secret, Secret)
    assert secret.metadata.name == name
    assert secret.metadata.namespace == "ns"
    assert secret.data == {"apiKey": base64.b64encode(b"k").decode()}


def test02():
    """
    array items each get their own Secret, named by index
    """
    schema = {"properties": {"items": {"type": "array", "items": {
        "properties": {"apiKeySecretRef": secret_ref()}}}}}
    mappings = find_mappings(schema, ["spec", "v1"])
    m = widget({"items": [{"apiKey": "a"}, {"other": True}, {"apiKey": "c"}]})
    added = expand_widget(m, mappings)
    names = [s.metadata.name for s in added]
    assert names == [prefixed_name("w", "items", "0", "apiKey"),
                     prefixed_name("w", "items", "2", "apiKey")]
    items = m["spec"]["v1"]["items"]
    assert items[0] == {"apiKeySecretRef": {"name": names[0], "key": "apiKey"}}
    assert items[1] == {"other": True}
    assert items[2] == {"apiKeySecretRef": {"name": names[1], "key": "apiKey"}}


def test03():
    """
    an absent path is a no-op
    """
    m = widget()
    assert expand_widget(m, mappings_for(apiKeySecretRef=secret_ref())) == []
    assert m == widget()


def test04():
    """
    a holder without the raw field, or with a None value, is left alone
    """
    m = widget({"other": 1})
    assert expand_widget(m, mappings_for(apiKeySecretRef=secret_ref())) == []
    assert m["spec"]["v1"] == {"other": 1}
    m = widget({"apiKey": None})
    assert expand_widget(m, mappings_for(apiKeySecretRef=secret_ref())) == []
    assert m["spec"]["v1"] == {"apiKey": None}


def test05():
    """
    a holder of the wrong shape is an error
    """
    m = widget()
    m["spec"] = {"v1": "not an object"}
    with pytest.raises(TranslationError) as e:
        expand_widget(m, mappings_for(apiKeySecretRef=secret_ref()))
    assert isinstance(e.value.cause, TypeMismatchError)


def test06():
    """
    no property selector able to hold the value fails a required expansion
    """
    m = widget({"apiKey": "k"})
    with pytest.raises(TranslationError) as e:
        expand_widget(m, mappings_for(apiKeySecretRef=secret_ref(["$.nowhere.#"])))
    assert e.value.path == "spec.v1.apiKeySecretRef"
    assert e.value.property_name == "apiKeySecretRef"
    assert isinstance(e.value.cause, NoMatchingPropertySelectorError)
    assert e.value.__cause__ is e.value.cause
    assert str(e.value).startswith("translation of resource failed at field "
                                   "`spec.v1.apiKeySecretRef`: `")


def test07():
    """
    a value the encoder can't handle fails the expansion
    """
    m = widget({"apiKey": 42})
    with pytest.raises(TranslationError) as e:
        expand_widget(m, mappings_for(apiKeySecretRef=secret_ref()))
    assert isinstance(e.value.cause, TypeMismatchError)


def test08():
    """
    an optional groupRef with nothing to match is skipped
    """
    m = widget({"groupId": "g1"})
    assert expand_widget(m, mappings_for(groupRef=group_ref())) == []
    assert m["spec"]["v1"] == {"groupId": "g1"}


def test09():
    """
    a dependency holding the value is reused
    """
    m = widget({"groupId": "g1"})
    added = expand_widget(m, mappings_for(groupRef=group_ref()),
                          group_dict("other", "g2"), group_dict("proj", "g1"))
    assert added == []
    assert m["spec"]["v1"] == {"groupRef": {"name": "proj"}}


def test10():
    """
    dependencies of unknown kind or in other namespaces aren't reused
    """
    no_kind = {"metadata": {"name": "nokind", "namespace": "ns"},
               "status": {"v1": {"id": "g1"}}}
    m = widget({"groupId": "g1"})
    added = expand_widget(m, mappings_for(groupRef=group_ref()), no_kind,
                          group_dict("elsewhere", "g1", namespace="other"))
    assert added == []
    assert m["spec"]["v1"] == {"groupId": "g1"}


def test11():
    """
    a dependency already carrying the generated name is referenced, not recreated
    """
    name = prefixed_name("w", "apiKey")
    existing = Secret(metadata=ObjectMeta(name=name, namespace="ns"),
                      data={"apiKey": "b2xk"})
    m = widget({"apiKey": "k"})
    added = expand_widget(m, mappings_for(apiKeySecretRef=secret_ref()), existing)
    assert added == []
    assert m["spec"]["v1"] == {"apiKeySecretRef": {"name": name, "key": "apiKey"}}


def test12():
    """
    a reference collapses into the value held by the Secret
    """
    m = widget({"apiKeySecretRef": {"name": "creds", "key": "apiKey"}})
    dep = Secret(metadata=ObjectMeta(name="creds", namespace="ns"),
                 data={"apiKey": base64.b64encode(b"k").decode()})
    collapse_widget(m, mappings_for(apiKeySecretRef=secret_ref()), dep)
    assert m["spec"]["v1"]["apiKey"] == "k"
    assert m["spec"]["v1"]["apiKeySecretRef"] == {"name": "creds", "key": "apiKey"}


def test13():
    """
    a reference without a key uses the name of the API property
    """
    m = widget({"apiKeySecretRef": {"name": "creds"}})
    dep = Secret(metadata=ObjectMeta(name="creds"), data={"apiKey": "dg=="})
    collapse_widget(m, mappings_for(apiKeySecretRef=secret_ref()), dep)
    assert m["spec"]["v1"]["apiKey"] == "v"


def test14():
    """
    a kubernetes client Secret without apiVersion is recognized through the scheme
    """
    m = widget({"apiKeySecretRef": {"name": "creds", "key": "apiKey"}})
    dep = V1Secret(metadata=V1ObjectMeta(name="creds"), data={"apiKey": "dg=="})
    collapse_widget(m, mappings_for(apiKeySecretRef=secret_ref()), dep,
                    scheme=new_scheme())
    assert m["spec"]["v1"]["apiKey"] == "v"


def test15():
    """
    without a scheme the same Secret is of unknown kind and can't be used
    """
    m = widget({"apiKeySecretRef": {"name": "creds", "key": "apiKey"}})
    dep = V1Secret(metadata=V1ObjectMeta(name="creds"), data={"apiKey": "dg=="})
    with pytest.raises(TranslationError) as e:
        collapse_widget(m, mappings_for(apiKeySecretRef=secret_ref()), dep)
    assert isinstance(e.value.cause, ReferenceResolutionError)


def test16():
    """
    a reference to an unknown object is an error
    """
    m = widget({"apiKeySecretRef": {"name": "missing", "key": "apiKey"}})
    with pytest.raises(TranslationError) as e:
        collapse_widget(m, mappings_for(apiKeySecretRef=secret_ref()))
    assert isinstance(e.value.cause, ReferenceResolutionError)
    assert "missing" in str(e.value)


def test17():
    """
    a reference to an object of the wrong kind is an error
    """
    m = widget({"apiKeySecretRef": {"name": "cm", "key": "apiKey"}})
    cm = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "cm"},
          "data": {"apiKey": "dg=="}}
    with pytest.raises(TranslationError) as e:
        collapse_widget(m, mappings_for(apiKeySecretRef=secret_ref()), cm)
    assert isinstance(e.value.cause, ReferenceResolutionError)


def test18():
    """
    a Secret without the key is an error
    """
    m = widget({"apiKeySecretRef": {"name": "creds", "key": "apiKey"}})
    dep = Secret(metadata=ObjectMeta(name="creds"), data={"other": "dg=="})
    with pytest.raises(TranslationError) as e:
        collapse_widget(m, mappings_for(apiKeySecretRef=secret_ref()), dep)
    assert isinstance(e.value.cause, ReferenceResolutionError)


def test19():
    """
    empty and absent references are skipped when collapsing
    """
    m = widget({"apiKeySecretRef": {}, "other": 1})
    collapse_widget(m, mappings_for(apiKeySecretRef=secret_ref()))
    assert m["spec"]["v1"] == {"apiKeySecretRef": {}, "other": 1}
    m = widget()
    assert collapse_widget(m, mappings_for(apiKeySecretRef=secret_ref())) == widget()


def test20():
    """
    a group reference collapses into the group's id
    """
    m = widget({"groupRef": {"name": "proj"}})
    collapse_widget(m, mappings_for(groupRef=group_ref()), group_dict("proj", "g1"))
    assert m["spec"]["v1"]["groupId"] == "g1"


def test21():
    """
    expanding then collapsing gives back the raw values
    """
    mappings = mappings_for(apiKeySecretRef=secret_ref(), groupRef=group_ref())
    m = widget({"apiKey": "k", "groupId": "g1"})
    deps = [group_dict("proj", "g1")]
    added = expand_widget(m, mappings, *deps)
    collapse_widget(m, mappings, *(deps + added))
    assert m["spec"]["v1"]["apiKey"] == "k"
    assert m["spec"]["v1"]["groupId"] == "g1"


def test22():
    """
    dependency matching
    """
    kubeset = Kubeset(widget(), [group_dict("proj", "g1")])
    km = mappings_for(groupRef=group_ref())[0].kube_mapping
    assert find_matching_dependency(kubeset, km, "g1").name == "proj"
    assert find_matching_dependency(kubeset, km, "g2") is None
    assert values_match(b"abc", "abc")
    assert not values_match(None, None)


def test23():
    """
    Kubeset lookups are scoped to the main object's namespace
    """
    kubeset = Kubeset(widget(), [group_dict("a", "1"),
                                 group_dict("b", "2", namespace="other"),
                                 group_dict("c", "3", namespace=None)])
    assert kubeset.has("a")
    assert not kubeset.has("b")
    assert kubeset.find("c").namespace == "ns"
    assert kubeset.main_name == "w"
    assert kubeset.added == []


def test24():
    """
    objects of different kinds may share a name
    """
    group = group_dict("proj", "g1")
    secret = Secret(metadata=ObjectMeta(name="proj"), data={"apiKey": "dg=="})
    kubeset = Kubeset(widget(), [group, secret])
    assert len(kubeset.find_all("proj")) == 2
    assert len(kubeset.entries()) == 2
    assert kubeset.find("proj", GroupVersionKind("", "v1", "Secret")).obj is secret
    assert kubeset.find("proj", GroupVersionKind("atlas.generated.mongodb.com",
                                                 "v1", "Group")).obj is group
    assert not kubeset.has("proj", GroupVersionKind("", "v1", "ConfigMap"))


def test25():
    """
    references resolve to the same-named object of the right kind
    """
    mappings = mappings_for(apiKeySecretRef=secret_ref(), groupRef=group_ref())
    m = widget({"groupRef": {"name": "proj"},
                "apiKeySecretRef": {"name": "proj", "key": "apiKey"}})
    secret = Secret(metadata=ObjectMeta(name="proj"), data={"apiKey": "dg=="})
    collapse_widget(m, mappings, secret, group_dict("proj", "g1"))
    assert m["spec"]["v1"]["groupId"] == "g1"
    assert m["spec"]["v1"]["apiKey"] == "v"


def test26():
    """
    an object of another kind with the generated name doesn't stop expansion
    """
    name = prefixed_name("w", "apiKey")
    m = widget({"apiKey": "k"})
    added = expand_widget(m, mappings_for(apiKeySecretRef=secret_ref()),
                          group_dict(name, "g1"))
    assert [s.metadata.name for s in added] == [name]
    assert m["spec"]["v1"] == {"apiKeySecretRef": {"name": name, "key": "apiKey"}}


def test27():
    """
    registering an object again replaces the earlier one of the same kind
    """
    kubeset = Kubeset(widget(), [group_dict("proj", "g1")])
    kubeset.add(group_dict("proj", "g2"))
    entries = kubeset.find_all("proj")
    assert len(entries) == 1
    assert entries[0].obj_map["status"]["v1"]["id"] == "g2"


if __name__ == "__main__":
    the_tests = {k: v for k, v in globals().items()
                 if k.startswith('test') and callable(v)}
    for k, v in the_tests.items():
        try:
            v()
        except Exception as e:
            print(f'{k} failed with {str(e)}')
