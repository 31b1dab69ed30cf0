from typing import Iterable, Mapping, Protocol


class RosterProvider(Protocol):
    """Identity collaborator: who belongs to which course."""

    def is_enrolled(self, course_id: str, identity: str) -> bool:
        ...

    def members(self, course_id: str) -> Iterable[str]:
        ...


class StaticRoster:
    """Roster backed by an in-memory mapping of course id to identities."""

    def __init__(self, rosters: Mapping[str, Iterable[str]] = None):
        self._rosters = {
            course: frozenset(members) for course, members in (rosters or {}).items()
        }

    def is_enrolled(self, course_id, identity):
        return identity in self._rosters.get(course_id, ())

    def members(self, course_id):
        return sorted(self._rosters.get(course_id, ()))
