from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class User:
    """Learner record as exposed by the identity collaborator."""

    id: str
    email: str
    name: str = ""

    def display(self) -> UserDisplay:
        # Fall back to the mailbox name so a document never shows a blank line.
        return UserDisplay(name=self.name or self.email.split("@")[0], email=self.email)


@dataclass(frozen=True, slots=True)
class UserDisplay:
    name: str
    email: str
