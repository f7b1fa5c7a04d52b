"""Domain models for group members."""

from dataclasses import dataclass


@dataclass(frozen=True)
class User:
    """A member of the photo-sharing group."""

    id: str
    username: str
    display_name: str

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "username": self.username,
            "displayName": self.display_name,
        }
