"""Locate a business among SERP results by its name."""

import logging
import re
from typing import Iterable, List

from geogrid.core.models import NOT_FOUND, LocalSearchResult

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w\s]")
MIN_TOKEN_LENGTH = 3


def _tokens(text: str) -> List[str]:
    return _NON_WORD.sub("", text.lower()).split()


def partial_match(text: str, query: str) -> bool:
    """True when any query word of 3+ chars overlaps a word of text."""
    text_words = _tokens(text)
    for query_word in _tokens(query):
        if len(query_word) < MIN_TOKEN_LENGTH:
            continue
        for text_word in text_words:
            if query_word in text_word or text_word in query_word:
                return True
    return False


def match_business_position(results: Iterable[LocalSearchResult], business_name: str) -> int:
    """Return the SERP position of business_name, or NOT_FOUND.

    Exact (case-insensitive substring) title matches win over partial token
    matches anywhere in the list.
    """
    results = [result for result in results if result.title]
    needle = business_name.strip().lower()

    for result in results:
        if needle in result.title.lower():
            logger.info("Found %s at position %s", business_name, result.position)
            return result.position

    for result in results:
        if partial_match(result.title, business_name):
            logger.info("Found partial match for %s at position %s", business_name, result.position)
            return result.position

    logger.info("%s not found in %d search results", business_name, len(results))
    return NOT_FOUND
