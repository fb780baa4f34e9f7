"""
Identity resolution collaborator.

Profiles (students, advisors and advisor assignments) are managed elsewhere;
the lifecycle engine only needs these lookups.
"""

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union


class IdentityResolver(ABC):
    """Lookups the access policy needs from the identity system."""

    @abstractmethod
    def resolve_student(self, identity: str) -> Optional[str]:
        """Map a user identity to its student profile id."""

    @abstractmethod
    def resolve_advisor(self, identity: str) -> Optional[str]:
        """Map a user identity to its advisor profile id."""

    @abstractmethod
    def advisor_of(self, student_id: str) -> Optional[str]:
        """Return the student's current advisor id."""

    @abstractmethod
    def list_advisees(self, advisor_id: str) -> List[str]:
        """Return the ids of students currently assigned to the advisor."""

    @abstractmethod
    def student_exists(self, student_id: str) -> bool:
        """Whether a student profile with this id exists."""

    def is_advisee(self, student_id: str, advisor_id: str) -> bool:
        """Whether the student's current advisor is ``advisor_id``."""
        current = self.advisor_of(student_id)
        return current is not None and current == advisor_id


class DirectoryIdentityResolver(IdentityResolver):
    """Identity resolver over an in-memory directory.

    The directory maps user identities to profile ids and students to their
    current advisor::

        {
            "students": {"<user id>": "<student id>"},
            "advisors": {"<user id>": "<advisor id>"},
            "assignments": {"<student id>": "<advisor id>"}
        }
    """

    def __init__(
        self,
        students: Optional[Dict[str, str]] = None,
        advisors: Optional[Dict[str, str]] = None,
        assignments: Optional[Dict[str, Optional[str]]] = None,
    ):
        self._students = dict(students or {})
        self._advisors = dict(advisors or {})
        self._assignments = dict(assignments or {})
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "DirectoryIdentityResolver":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(
            students=data.get("students"),
            advisors=data.get("advisors"),
            assignments=data.get("assignments"),
        )

    def resolve_student(self, identity: str) -> Optional[str]:
        with self._lock:
            return self._students.get(identity)

    def resolve_advisor(self, identity: str) -> Optional[str]:
        with self._lock:
            return self._advisors.get(identity)

    def advisor_of(self, student_id: str) -> Optional[str]:
        with self._lock:
            return self._assignments.get(student_id)

    def list_advisees(self, advisor_id: str) -> List[str]:
        with self._lock:
            return sorted(
                student_id
                for student_id, current in self._assignments.items()
                if current == advisor_id
            )

    def student_exists(self, student_id: str) -> bool:
        with self._lock:
            return student_id in self._students.values() or student_id in self._assignments

    def assign_advisor(self, student_id: str, advisor_id: Optional[str]) -> None:
        """Change a student's current advisor (None removes the assignment)."""
        with self._lock:
            self._assignments[student_id] = advisor_id
