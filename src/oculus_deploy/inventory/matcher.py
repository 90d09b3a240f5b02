"""Project marker matching for names and tags."""

from typing import Dict, Iterable, Optional


class MarkerMatcher:
    """Case-insensitive substring test against a project marker.

    A resource matches when its name, or any tag key or tag value, contains
    the marker.
    """

    def __init__(self, marker: str):
        if not marker or not marker.strip():
            raise ValueError("marker must be a non-empty string")
        self.marker = marker.strip()
        self._needle = self.marker.casefold()

    def matches_text(self, text: Optional[str]) -> bool:
        return bool(text) and self._needle in text.casefold()

    def matches_tags(self, tags: Optional[Dict[str, str]]) -> bool:
        if not tags:
            return False
        return any(
            self.matches_text(key) or self.matches_text(value)
            for key, value in tags.items()
        )

    def matches(self, name: Optional[str], tags: Optional[Dict[str, str]] = None) -> bool:
        """Whether a resource with this name and tags belongs to the project."""
        return self.matches_text(name) or self.matches_tags(tags)

    def matches_any(self, names: Iterable[Optional[str]]) -> bool:
        return any(self.matches_text(name) for name in names)
