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
Exceptions raised while translating between custom resources and API objects
"""
from typing import Sequence


class CrapiException(Exception):
    """Base exception for all crapi errors."""


class SchemaError(CrapiException):
    """Raised when a CRD or one of its mapping extensions is malformed."""


class NotFoundError(CrapiException):
    """
    Raised when a path can't be followed through an object map

    This is the 'nothing to do here' signal of the object mapper; the
    expand and collapse engines swallow it at the mapping level.
    """

    def __init__(self, path: Sequence, segment=None):
        self.path = list(path)
        self.segment = segment
        if segment is None:
            msg = f"field {self.path} not found"
        else:
            msg = f"field {self.path} not found at {segment!r}"
        super().__init__(msg)


class TypeMismatchError(CrapiException, TypeError):
    """Raised when a value can't be coerced to or from an object map."""


class ReferenceResolutionError(CrapiException):
    """Raised when a reference can't be solved against the known objects."""


class NoMatchingPropertySelectorError(CrapiException):
    """Raised when no property selector could hold a value in a new object."""


class NotRegisteredError(CrapiException):
    """Raised when a type or kind is not known to a Scheme."""


class TranslationError(CrapiException):
    """
    Raised when a single mapping fails to expand or collapse

    Carries the offending path and property name along with the original
    cause, which is also chained as ``__cause__``.
    """

    def __init__(self, path: Sequence[str], property_name: str, cause: Exception):
        self.path = ".".join(str(p) for p in path)
        self.property_name = property_name
        self.cause = cause
        super().__init__(f"translation of resource failed at field "
                         f"`{self.path}`: `{cause}`")


__all__ = [
    "CrapiException",
    "SchemaError",
    "NotFoundError",
    "TypeMismatchError",
    "ReferenceResolutionError",
    "NoMatchingPropertySelectorError",
    "NotRegisteredError",
    "TranslationError",
]
