"""Translate source calendar categories into the destination's fixed category set."""
import logging
import re
import uuid
from typing import Dict, Iterable, Optional

from processor.models import Fallback, Resolution, Resolved

logger = logging.getLogger(__name__)

# Fallback preference when a mapped category has no destination id
ESSENTIAL_CATEGORIES = ('Class', 'Milonga', 'Practica', 'Other', 'Festival', 'Performance')

OTHER_CATEGORY = 'Other'

# Substring patterns, checked in order
_CLASS_KEYWORDS = (
    'class', 'workshop', 'lesson', 'drop-in', 'progressive', 'first timer',
    'beginner', 'advanced', 'learn', 'technique', 'seminar', 'training',
    'instruction', 'intensive', 'fundamentals',
)
_MILONGA_KEYWORDS = (
    'milonga', 'dance', 'ball', 'salon', 'social dance', 'fiesta', 'night',
    'evening', 'baile', 'soiree',
)
_PRACTICA_KEYWORDS = (
    'practica', 'practice', 'practilonga', 'guided practice', 'open practice',
    'supervised practice', 'practi',
)
_IGNORED_KEYWORDS = ('cancel', 'postponed', 'deleted')
_FESTIVAL_KEYWORDS = ('festival', 'encuentro', 'marathon')
_PERFORMANCE_KEYWORDS = ('performance', 'show', 'exhibition', 'concert')

# Bootstrap rules for source categories, matched on name or slug
CATEGORY_MATCH_RULES = (
    (re.compile(r'class|lesson|workshop', re.IGNORECASE), 'Class'),
    (re.compile(r'milonga|dance|ball|salon', re.IGNORECASE), 'Milonga'),
    (re.compile(r'practica|practice|practilonga', re.IGNORECASE), 'Practica'),
    (re.compile(r'performance|show|exhibition|concert', re.IGNORECASE), 'Performance'),
    (re.compile(r'festival|encuentro|marathon', re.IGNORECASE), 'Festival'),
)

# Common names that never appear in the source category listing
CATEGORY_VARIATIONS = {
    'Class': (
        'Drop-in Class', 'Progressive Class', 'Workshop', 'DayWorkshop',
        'First Timer Friendly', 'Beginner Class', 'Advanced Class',
        'Technique', 'Seminar', 'Training', 'Intensive',
    ),
    'Milonga': (
        'Dance', 'Ball', 'Salon', 'Social Dance', 'Fiesta',
        'Milonga Night', 'Evening Milonga', 'Baile', 'Soiree',
    ),
    'Practica': (
        'Practice', 'Guided Practice', 'Open Practice',
        'Supervised Practice', 'Practilonga',
    ),
}


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _match_category(source_name: Optional[str]) -> Optional[str]:
    """Return the pattern-matched destination category, or None when nothing matches."""
    if not source_name:
        return None

    lower_name = source_name.lower()

    if _contains_any(lower_name, _CLASS_KEYWORDS):
        return 'Class'
    if _contains_any(lower_name, _MILONGA_KEYWORDS):
        return 'Milonga'
    if _contains_any(lower_name, _PRACTICA_KEYWORDS):
        return 'Practica'
    if _contains_any(lower_name, _IGNORED_KEYWORDS):
        return None
    if _contains_any(lower_name, _FESTIVAL_KEYWORDS):
        return 'Festival'
    if _contains_any(lower_name, _PERFORMANCE_KEYWORDS):
        return 'Performance'
    return None


def map_to_tt_category(source_name: Optional[str]) -> str:
    """
    Map a source category name onto the destination ("TT") category set.

    The mapping is total: empty, unknown and cancelled names all map to
    "Other".

    Args:
        source_name: Category name from the source calendar

    Returns:
        One of Class, Milonga, Practica, Festival, Performance, Other
    """
    return _match_category(source_name) or OTHER_CATEGORY


def is_ignored_category(source_name: Optional[str]) -> bool:
    """True for cancelled, postponed or deleted markers with no real category."""
    if not source_name:
        return False
    return _match_category(source_name) is None and _contains_any(
        source_name.lower(), _IGNORED_KEYWORDS
    )


def _mock_category_id() -> str:
    return f"mock-category-{uuid.uuid4().hex[:7]}"


class CategoryMapper:
    """
    Lookup table from source category names to destination categories.

    bootstrap() seeds destination ids and direct name mappings. resolve()
    is pure and never fails: without a destination id it hands back a mock
    id so the event can still be mapped.
    """

    def __init__(self):
        self.category_ids: Dict[str, str] = {}
        self.direct_mappings: Dict[str, str] = {}
        self.bootstrapped = False

    def bootstrap(
        self,
        destination_categories: Iterable[dict],
        source_categories: Iterable[dict] = ()
    ) -> None:
        """
        Seed the mapper from category listings.

        Args:
            destination_categories: Destination records with _id and categoryName
            source_categories: Source records with name and slug
        """
        for category in destination_categories:
            name = category.get('categoryName')
            if name in ESSENTIAL_CATEGORIES and category.get('_id'):
                self.category_ids[name] = category['_id']

        for category in source_categories:
            name = category.get('name') or ''
            slug = category.get('slug') or ''
            if not name:
                continue
            target = OTHER_CATEGORY
            for pattern, destination_name in CATEGORY_MATCH_RULES:
                if pattern.search(name) or pattern.search(slug):
                    target = destination_name
                    break
            self.direct_mappings[name] = target

        for destination_name, variations in CATEGORY_VARIATIONS.items():
            for variation in variations:
                self.direct_mappings.setdefault(variation, destination_name)

        self.bootstrapped = True
        logger.info(
            f"Category mapper bootstrapped: {len(self.category_ids)} destination ids, "
            f"{len(self.direct_mappings)} direct mappings"
        )

    def is_mapped(self, source_name: Optional[str]) -> bool:
        """Whether a name is covered by the table or a pattern, rather than defaulted."""
        if not source_name:
            return False
        return source_name in self.direct_mappings or _match_category(source_name) is not None

    def resolve(self, source_name: Optional[str]) -> Resolution:
        """
        Resolve a source category name to a destination category.

        Args:
            source_name: Category name from the source calendar

        Returns:
            Resolved when a destination id is known, otherwise Fallback with a
            mock id and the mapped label
        """
        if source_name and source_name in self.direct_mappings:
            label = self.direct_mappings[source_name]
            source = 'direct-mapping'
        else:
            label = map_to_tt_category(source_name)
            source = 'pattern-mapping'

        category_id = self.category_ids.get(label)
        if category_id:
            return Resolved(id=category_id, name=label, source=source)

        for essential in ESSENTIAL_CATEGORIES:
            if essential in self.category_ids:
                return Resolved(
                    id=self.category_ids[essential],
                    name=essential,
                    source='essential-fallback'
                )

        return Fallback(id=_mock_category_id(), name=label, reason='no-destination-id')
