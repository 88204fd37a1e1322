"""Interest category enumeration."""
from enum import Enum
from typing import Iterable


class Category(Enum):
    TECHNOLOGY = "Technology"
    TRAVEL = "Travel"
    FOOD = "Food"
    FASHION = "Fashion"
    FITNESS = "Fitness"
    MUSIC = "Music"
    ART = "Art"
    GAMING = "Gaming"
    SPORTS = "Sports"
    PHOTOGRAPHY = "Photography"
    BUSINESS = "Business"
    HEALTH = "Health"
    EDUCATION = "Education"
    ENTERTAINMENT = "Entertainment"
    LIFESTYLE = "Lifestyle"


CATEGORIES = [c.value for c in Category]


def unknown_categories(values: Iterable[str]) -> list[str]:
    """Return the tags in ``values`` that are not part of the enumeration."""
    known = set(CATEGORIES)
    return [v for v in values if v not in known]
