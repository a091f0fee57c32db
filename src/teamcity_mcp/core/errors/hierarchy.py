"""Hierarchy traversal error classes."""

from typing import Sequence


class StructuralError(Exception):
    """A node was found on its own root-to-node path.

    Attributes:
        node_id: The id that closed the cycle.
        path: Root-to-node ids ending with the repeated id.
    """

    def __init__(self, node_id: str, path: Sequence[str]):
        self.node_id = node_id
        self.path = tuple(path)
        super().__init__(
            f"Cycle detected at '{node_id}': {' -> '.join(self.path)}"
        )


class EntityParseError(ValueError):
    """A single-entity response was not shaped like a project.

    Attributes:
        entity_id: Id that was requested.
        payload_type: Type name of the payload received.
    """

    def __init__(self, message: str, entity_id: str, payload_type: str):
        super().__init__(message)
        self.entity_id = entity_id
        self.payload_type = payload_type
