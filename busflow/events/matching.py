"""Topic matching: exact topics and `*` wildcard patterns.

Exact patterns compare case-sensitively. Wildcard patterns are compiled to a
case-insensitive regex searched anywhere in the topic; `*` absorbs any run of
characters, including dots, so `USER.*` matches `USER.LOGIN.EXTRA`.
"""

import re
from functools import lru_cache
from typing import Callable

WILDCARD = "*"

TopicPredicate = Callable[[str], bool]


def is_wildcard(pattern: str) -> bool:
    """True if the pattern contains the wildcard marker."""
    return WILDCARD in pattern


@lru_cache(maxsize=1024)
def compile_topic_pattern(pattern: str) -> TopicPredicate:
    """Return a predicate deciding whether a topic matches the pattern."""
    if not is_wildcard(pattern):
        return pattern.__eq__
    literal_runs = (re.escape(part) for part in pattern.split(WILDCARD))
    regex = re.compile(".*".join(literal_runs), re.IGNORECASE)
    return lambda topic: regex.search(topic) is not None


def topic_matches(pattern: str, topic: str) -> bool:
    """Decide whether an event topic matches a subscription pattern."""
    return compile_topic_pattern(pattern)(topic)
