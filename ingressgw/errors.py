from __future__ import annotations
from typing import Any, Dict, Iterable, List, Union

import dataclasses
import enum
import logging


@enum.unique
class FieldErrorType (enum.Enum):
    INVALID = "Invalid"
    TYPE_INVALID = "TypeInvalid"
    NOT_FOUND = "NotFound"
    NOT_SUPPORTED = "NotSupported"


class FieldPath:
    """
    A dotted path to a field inside a Kubernetes object, e.g.
    metadata.annotations or spec.rules[0].http.paths[1].backend.
    """

    def __init__(self, *names: str) -> None:
        self.elements: List[str] = list(names)

    def child(self, *names: str) -> FieldPath:
        return FieldPath(*self.elements, *names)

    def index(self, i: int) -> FieldPath:
        if not self.elements:
            return FieldPath(f"[{i}]")

        return FieldPath(*self.elements[:-1], f"{self.elements[-1]}[{i}]")

    def __str__(self) -> str:
        return ".".join(self.elements)

    def __repr__(self) -> str:
        return f"FieldPath({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FieldPath) and self.elements == other.elements

    def __hash__(self) -> int:
        return hash(tuple(self.elements))


ANNOTATIONS_PATH = FieldPath("metadata", "annotations")


@dataclasses.dataclass(frozen=True)
class FieldError:
    """
    Represents a single problem with a field of a source object. FieldErrors
    are collected and returned; they never abort a conversion.
    """

    type: FieldErrorType
    field: str
    value: Any
    detail: str = ""

    @classmethod
    def invalid(cls, field: Union[FieldPath, str], value: Any, detail: str) -> FieldError:
        return cls(FieldErrorType.INVALID, str(field), value, detail)

    @classmethod
    def type_invalid(cls, field: Union[FieldPath, str], value: Any, detail: str) -> FieldError:
        return cls(FieldErrorType.TYPE_INVALID, str(field), value, detail)

    @classmethod
    def not_found(cls, field: Union[FieldPath, str], value: Any, detail: str = "") -> FieldError:
        return cls(FieldErrorType.NOT_FOUND, str(field), value, detail)

    @classmethod
    def not_supported(cls, field: Union[FieldPath, str], value: Any, detail: str) -> FieldError:
        return cls(FieldErrorType.NOT_SUPPORTED, str(field), value, detail)

    def __str__(self) -> str:
        s = f"{self.field}: {self.type.value} value: {self.value!r}"

        if self.detail:
            s += f": {self.detail}"

        return s

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "field": self.field,
            "value": self.value,
            "detail": self.detail,
        }


ErrorList = List[FieldError]


def post_errors(logger: logging.Logger, where: str, errors: Iterable[FieldError],
                log_level=logging.INFO) -> ErrorList:
    """
    Log every error in errors against where, and hand them back as a list so
    callers can keep accumulating.
    """

    posted = list(errors)

    for error in posted:
        logger.log(log_level, "%s: %s", where, error)

    return posted
