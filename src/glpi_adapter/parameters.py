"""Operation-keyed index of routable parameters."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .models import Destination, FieldDescriptor

logger = logging.getLogger(__name__)


GLPI_HEADERS: Tuple[str, ...] = (
    "Accept-Language",
    "GLPI-Entity",
    "GLPI-Profile",
    "GLPI-Entity-Recursive",
)


def glpi_header_fields() -> List[FieldDescriptor]:
    """Headers GLPI honours on every endpoint, routable for all operations."""
    return [FieldDescriptor(name=name, destination=Destination.HEADER) for name in GLPI_HEADERS]


@dataclass(frozen=True)
class ClassifiedParameters:
    path: Tuple[FieldDescriptor, ...] = ()
    query: Tuple[FieldDescriptor, ...] = ()
    header: Tuple[FieldDescriptor, ...] = ()
    body: Tuple[FieldDescriptor, ...] = ()

    def routable(self) -> Iterable[FieldDescriptor]:
        yield from self.query
        yield from self.header
        yield from self.body


@dataclass
class _Buckets:
    path: List[FieldDescriptor] = field(default_factory=list)
    query: List[FieldDescriptor] = field(default_factory=list)
    header: List[FieldDescriptor] = field(default_factory=list)
    body: List[FieldDescriptor] = field(default_factory=list)

    def add(self, descriptor: FieldDescriptor) -> None:
        getattr(self, descriptor.destination.value).append(descriptor)

    def freeze(self) -> ClassifiedParameters:
        return ClassifiedParameters(
            path=tuple(self.path),
            query=tuple(self.query),
            header=tuple(self.header),
            body=tuple(self.body),
        )


class ParameterIndex:
    """Pre-classified field descriptors, keyed by operation identifier.

    Built once; read-only afterwards, so one index can be shared by any
    number of executors.
    """

    def __init__(self, descriptors: Iterable[FieldDescriptor]) -> None:
        by_operation: Dict[str, List[FieldDescriptor]] = {}
        unrestricted: List[FieldDescriptor] = []
        count = 0
        for descriptor in descriptors:
            count += 1
            if descriptor.unrestricted:
                unrestricted.append(descriptor)
                continue
            for operation in descriptor.operations:
                by_operation.setdefault(operation, []).append(descriptor)

        self._unrestricted = tuple(unrestricted)
        self._classified: Dict[str, ClassifiedParameters] = {}
        for operation, matched in by_operation.items():
            buckets = _Buckets()
            declared = {(d.name, d.destination) for d in matched}
            for descriptor in matched:
                buckets.add(descriptor)
            for descriptor in unrestricted:
                if (descriptor.name, descriptor.destination) not in declared:
                    buckets.add(descriptor)
            self._classified[operation] = buckets.freeze()

        fallback = _Buckets()
        for descriptor in unrestricted:
            fallback.add(descriptor)
        self._fallback = fallback.freeze()
        logger.debug(
            "Indexed %s field descriptors across %s operations", count, len(self._classified)
        )

    @property
    def operations(self) -> List[str]:
        return sorted(self._classified)

    def classify(self, operation: str) -> ClassifiedParameters:
        return self._classified.get(operation, self._fallback)

    def fields_for(self, operation: str) -> List[FieldDescriptor]:
        classified = self.classify(operation)
        return [*classified.path, *classified.routable()]
