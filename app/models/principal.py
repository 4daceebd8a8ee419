from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller extracted from a validated JWT.

    user_id is the JWT subject and doubles as the learner id for
    issuance and ownership checks.
    """

    user_id: str
    roles: frozenset[str]
