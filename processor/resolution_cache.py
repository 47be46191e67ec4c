"""Name-keyed cache of entity resolutions."""
from typing import Dict, Optional, Set

from processor.models import Resolution


class ResolutionCache:
    """
    Source name -> resolution maps for venues, organizers and categories.

    Fallback resolutions are cached too, so a name that failed once is not
    looked up again. Entries are never evicted; build a new cache (or call
    clear) to start cold.
    """

    def __init__(self):
        self.venues: Dict[str, Resolution] = {}
        self.organizers: Dict[str, Resolution] = {}
        self.categories: Dict[str, Resolution] = {}
        self.unmatched_venues: Set[str] = set()
        self.unmatched_organizers: Set[str] = set()
        self.unmatched_categories: Set[str] = set()

    def get_venue(self, name: str) -> Optional[Resolution]:
        return self.venues.get(name)

    def put_venue(self, name: str, resolution: Resolution) -> None:
        self.venues[name] = resolution
        if resolution.is_fallback:
            self.unmatched_venues.add(name)

    def get_organizer(self, name: str) -> Optional[Resolution]:
        return self.organizers.get(name)

    def put_organizer(self, name: str, resolution: Resolution) -> None:
        self.organizers[name] = resolution
        if resolution.is_fallback:
            self.unmatched_organizers.add(name)

    def get_category(self, name: str) -> Optional[Resolution]:
        return self.categories.get(name)

    def put_category(self, name: str, resolution: Resolution, unmatched: bool = False) -> None:
        self.categories[name] = resolution
        if unmatched:
            self.unmatched_categories.add(name)

    def unmatched_report(self) -> dict:
        """Unmatched names plus summary counts, for the run artifacts."""
        return {
            'venues': sorted(self.unmatched_venues),
            'organizers': sorted(self.unmatched_organizers),
            'categories': sorted(self.unmatched_categories),
            'stats': {
                'total_venues': len(self.venues),
                'total_organizers': len(self.organizers),
                'total_categories': len(self.categories),
                'unmatched_venues': len(self.unmatched_venues),
                'unmatched_organizers': len(self.unmatched_organizers),
                'unmatched_categories': len(self.unmatched_categories)
            }
        }

    def clear(self) -> None:
        self.venues.clear()
        self.organizers.clear()
        self.categories.clear()
        self.unmatched_venues.clear()
        self.unmatched_organizers.clear()
        self.unmatched_categories.clear()
