from .filters import LocationFilter, NameFilter, PickleFilter, TagFilter, build_filter
from .skip_tags import DEFAULT_SKIP_TAGS, SkipTags, normalize_tag

__all__ = [
    "DEFAULT_SKIP_TAGS",
    "LocationFilter",
    "NameFilter",
    "PickleFilter",
    "SkipTags",
    "TagFilter",
    "build_filter",
    "normalize_tag",
]
