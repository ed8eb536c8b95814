"""Operation catalogue built from the discovered function list.

Moodle names its web service functions ``<component>_<area>_<verb>_<resource>``,
for example ``core_course_get_contents`` or ``mod_assign_save_grade``. The
catalogue splits every name on that convention so a step can write::

    await session.api.core_course.get.contents(courseid=7)

Resource names are long and prefix-redundant
(``enrolled_courses_by_timeline_classification``), so each operation is also
reachable through the first two resource tokens (``enrolled_courses``) as
long as no other operation of the same module and verb claimed that
shortcut first.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

# Moodle dispatches these verbs as POST; everything else is a GET.
# The remote service keys its HTTP expectations off these exact tokens.
WRITE_VERBS = frozenset({"save", "record", "create", "update"})


def classify_verb(verb: str) -> str:
    """HTTP method for a verb token."""
    return "POST" if verb in WRITE_VERBS else "GET"


@dataclass(frozen=True)
class OperationDescriptor:
    """One remote operation, split on the naming convention."""
    name: str
    module: str
    verb: str
    resource: str
    method: str

    @classmethod
    def parse(cls, name: str) -> "OperationDescriptor | None":
        """Split a function name; None when it has fewer than four tokens."""
        tokens = name.split("_")
        if len(tokens) < 4 or not all(tokens[:4]):
            return None
        verb = tokens[2]
        return cls(
            name=name,
            module="_".join(tokens[:2]),
            verb=verb,
            resource="_".join(tokens[3:]),
            method=classify_verb(verb),
        )

    @property
    def abbreviation(self) -> str:
        """First two resource tokens."""
        return "_".join(self.resource.split("_")[:2])

    @property
    def is_write(self) -> bool:
        return self.method == "POST"


class OperationCatalogue:
    """
    Discovered operations, indexed by name and by module/verb/resource.

    Built once per connect() and not modified afterwards.
    """

    def __init__(self, names: Iterable[str] = ()):
        self._by_name: dict[str, OperationDescriptor | None] = {}
        self._index: dict[str, dict[str, dict[str, OperationDescriptor]]] = {}
        self._full: set[tuple[str, str, str]] = set()
        for name in names:
            self._add(name)

    def _add(self, name: str) -> None:
        descriptor = OperationDescriptor.parse(name)
        self._by_name[name] = descriptor
        if descriptor is None:
            return

        group = self._index.setdefault(descriptor.module, {}).setdefault(descriptor.verb, {})
        key = (descriptor.module, descriptor.verb)

        short = descriptor.abbreviation
        if short != descriptor.resource and short not in group:
            group[short] = descriptor

        # full names always win over a shortcut registered earlier
        group[descriptor.resource] = descriptor
        self._full.add((*key, descriptor.resource))

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[str]:
        return iter(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)

    def get(self, name: str) -> OperationDescriptor | None:
        return self._by_name.get(name)

    def method_for(self, name: str) -> str:
        """HTTP method for an operation name, parsed or not."""
        descriptor = self._by_name.get(name)
        if descriptor is not None:
            return descriptor.method
        tokens = name.split("_")
        return classify_verb(tokens[2]) if len(tokens) > 2 else "GET"

    def modules(self) -> list[str]:
        return sorted(self._index)

    def verbs(self, module: str) -> list[str]:
        return sorted(self._index.get(module, {}))

    def resources(self, module: str, verb: str) -> list[str]:
        return sorted(self._index.get(module, {}).get(verb, {}))

    def resolve(self, module: str, verb: str, resource: str) -> OperationDescriptor | None:
        """Look up an operation by full or abbreviated resource name."""
        return self._index.get(module, {}).get(verb, {}).get(resource)

    def is_abbreviation(self, module: str, verb: str, resource: str) -> bool:
        return (
            self.resolve(module, verb, resource) is not None
            and (module, verb, resource) not in self._full
        )
