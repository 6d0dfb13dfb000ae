from typing import Dict, Iterator, List, Tuple
from urllib.parse import urlencode

from s3uploads.schemas.upload import FileDescriptor

NAME_SUFFIX = "_name"
TYPE_SUFFIX = "_type"
SIZE_SUFFIX = "_size"


class FormValues:
    """
    Ordered multi-valued form map.

    Keys keep the order they were first seen in and every key holds its
    values in arrival order. An uploaded file under field ``F`` contributes
    one value to each of ``F``, ``F_name``, ``F_type`` and ``F_size``, so the
    i-th entry of those four lists always describes the same file.
    """

    def __init__(self) -> None:
        self._values: Dict[str, List[str]] = {}

    def add(self, key: str, value: str) -> None:
        self._values.setdefault(key, []).append(value)

    def add_file(self, field: str, descriptor: FileDescriptor) -> None:
        self.add(field, descriptor.key)
        self.add(field + NAME_SUFFIX, descriptor.name)
        self.add(field + TYPE_SUFFIX, descriptor.content_type)
        self.add(field + SIZE_SUFFIX, str(descriptor.size))

    def extend(self, other: "FormValues") -> None:
        """Append every value of ``other`` after the existing ones."""
        for key, values in other.lists():
            self._values.setdefault(key, []).extend(values)

    def getlist(self, key: str) -> List[str]:
        return list(self._values.get(key, []))

    def lists(self) -> Iterator[Tuple[str, List[str]]]:
        for key, values in self._values.items():
            yield key, list(values)

    def multi_items(self) -> List[Tuple[str, str]]:
        return [(key, value) for key, values in self._values.items() for value in values]

    def urlencode(self) -> bytes:
        """Encode as an application/x-www-form-urlencoded body."""
        return urlencode(self.multi_items()).encode("ascii")

    def keys(self):
        return self._values.keys()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FormValues):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.multi_items()!r})"
