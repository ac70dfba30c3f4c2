"""Package coordinates shared by the result graph and rule violations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Identifier:
    """``type:namespace:name:version`` coordinates of a project or package."""

    type: str
    namespace: str
    name: str
    version: str

    @property
    def coordinates(self) -> str:
        return ":".join((self.type, self.namespace, self.name, self.version))

    @classmethod
    def from_coordinates(cls, coordinates: str) -> "Identifier":
        """Parse ``type:namespace:name:version``; missing trailing parts are empty."""

        parts = coordinates.split(":", 3)
        if not parts[0]:
            raise ValueError("Identifier coordinates must start with a type.")
        parts.extend([""] * (4 - len(parts)))
        return cls(*parts)

    def __str__(self) -> str:
        return self.coordinates
