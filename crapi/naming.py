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
from typing import Tuple

# the alphabet Kubernetes uses for generated name suffixes; no vowels and no
# easily confused characters
_alphanums = "bcdfghjklmnpqrstvwxz2456789"

_fnv64_offset = 0xcbf29ce484222325
_fnv64_prime = 0x100000001b3


def process_api_version(api_version: str) -> Tuple[str, str]:
    """
    Takes the value of an apiVersion property and returns group and version

    :param api_version: the value of a apiVersion property
    :return: tuple of two strings: published object group, version. If the
        group is unspecified (the core group) it is returned as ''
    :raises TypeError: if api_version isn't a string
    """
    if not isinstance(api_version, str):
        raise TypeError("api_version is not a str")
    parts = api_version.split("/")
    if len(parts) == 1:
        group = ""
        api_version = parts[0]
    else:
        group, api_version = parts
    return group, api_version


def make_api_version(group: str, version: str) -> str:
    return f"{group}/{version}" if group else version


def fnv64a(data: str) -> int:
    h = _fnv64_offset
    for b in data.encode("utf-8"):
        h ^= b
        h = (h * _fnv64_prime) & 0xffffffffffffffff
    return h


def safe_encode_string(s: str) -> str:
    """
    Maps every character of s onto the Kubernetes-safe alphabet

    :param s: the string to encode
    :return: a string of the same length as s that contains no vowels
    """
    return "".join(_alphanums[ord(c) % len(_alphanums)] for c in s)


def prefixed_name(prefix: str, *parts) -> str:
    """
    Computes a stable object name from a prefix and a path

    The same prefix and parts always produce the same name, so an object
    named this way can be found again on a later pass.

    :param prefix: the leading part of the name, usually the owning
        object's name
    :param parts: any number of path segments to hash into the name
    :return: a string of the form '<prefix>-<hash>'
    """
    hash_input = "-".join([prefix] + [str(p) for p in parts])
    return f"{prefix}-{safe_encode_string(str(fnv64a(hash_input)))}"
