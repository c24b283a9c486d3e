"""
Class Label Types

Labels are opaque tokens. When the class set is known in advance it is
modelled as a closed enumeration (e.g. Diagnosis); otherwise any hashable,
mutually comparable value can be used as a label.
"""

from enum import Enum
from typing import Iterable, List, Type

from knn_classifier.errors import InvalidConfiguration


class Diagnosis(str, Enum):
    """Tumour diagnosis classes from the breast cancer data set."""

    BENIGN = "B"
    MALIGNANT = "M"

    def __str__(self) -> str:
        return self.value


def coerce_labels(raw_labels: Iterable, label_type: Type[Enum]) -> List[Enum]:
    """
    Map raw label tokens onto members of a closed label enumeration.

    A token may be an enum member, a member value (e.g. "M") or a member
    name (e.g. "MALIGNANT").

    Args:
        raw_labels: Iterable of raw label tokens
        label_type: Enum class describing the known class set

    Returns:
        List of enum members, in input order

    Raises:
        InvalidConfiguration: If a token is not part of the enumeration
    """
    by_name = {member.name: member for member in label_type}

    coerced = []
    for token in raw_labels:
        if isinstance(token, label_type):
            coerced.append(token)
            continue
        try:
            coerced.append(label_type(token))
        except ValueError:
            if isinstance(token, str) and token in by_name:
                coerced.append(by_name[token])
            else:
                allowed = ", ".join(str(member.value) for member in label_type)
                raise InvalidConfiguration(
                    f"Unknown label {token!r} for {label_type.__name__} (expected one of: {allowed})"
                )

    return coerced


def sorted_classes(labels: Iterable) -> list:
    """Return the distinct labels in ascending (lexical) order."""
    distinct = set(labels)
    try:
        return sorted(distinct)
    except TypeError as e:
        raise InvalidConfiguration(f"Labels must be mutually comparable: {e}") from e
