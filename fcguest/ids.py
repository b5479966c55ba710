"""Identifier validation and task/exec identifier derivation."""

from __future__ import annotations

import base64
import re

MAX_IDENTIFIER_LENGTH = 76

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9]+(?:[._-][A-Za-z0-9]+)*$")


class InvalidIdentifierError(ValueError):
    """Raised when a task or exec identifier is not acceptable."""


def validate_identifier(value: str) -> str:
    """Check that ``value`` is a valid identifier and return it unchanged."""
    if not value:
        raise InvalidIdentifierError("identifier must not be empty")
    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise InvalidIdentifierError(
            f"identifier {value!r} greater than maximum length "
            f"({MAX_IDENTIFIER_LENGTH} characters)"
        )
    if not _IDENTIFIER_RE.match(value):
        raise InvalidIdentifierError(
            f"identifier {value!r} must match {_IDENTIFIER_RE.pattern}"
        )
    return value


def task_exec_id(task_id: str, exec_id: str) -> str:
    """Return a unique string for the (task_id, exec_id) pair.

    An empty ``exec_id`` denotes the initial process of a task and is not
    validated. All validation failures are reported together.
    """
    problems: list[str] = []
    candidates = [task_id] if exec_id == "" else [task_id, exec_id]
    for candidate in candidates:
        try:
            validate_identifier(candidate)
        except InvalidIdentifierError as exc:
            problems.append(str(exc))
    if problems:
        raise InvalidIdentifierError("; ".join(problems))

    # "/" cannot appear in a valid identifier, so it separates the two safely.
    joined = f"{task_id}/{exec_id}".encode()
    return base64.urlsafe_b64encode(joined).decode("ascii")