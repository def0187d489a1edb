"""
Reply splitting.

The model is asked to separate thoughts with blank lines, but it does not
always comply, so this splitter is what actually decides message parts.
"""

import re
from typing import Iterator

MAX_PART_LENGTH = 500

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def _pack_words(paragraph: str, limit: int) -> Iterator[str]:
    """Greedily pack whitespace-delimited words into chunks of at most `limit` chars."""
    chunk = ""
    for word in paragraph.split():
        # A word that alone exceeds the limit is cut into limit-sized slices
        while len(word) > limit:
            if chunk:
                yield chunk
                chunk = ""
            yield word[:limit]
            word = word[limit:]
        if not word:
            continue

        if not chunk:
            chunk = word
        elif len(chunk) + 1 + len(word) > limit:
            yield chunk
            chunk = word
        else:
            chunk = f"{chunk} {word}"

    if chunk:
        yield chunk


def iter_message_parts(text: str, limit: int = MAX_PART_LENGTH) -> Iterator[str]:
    """
    Yield outbound message parts for a model reply.

    Paragraphs (blank-line separated) become one part each when they fit the
    limit; longer paragraphs are word-packed into several parts.
    """
    for paragraph in _PARAGRAPH_BREAK.split(text or ""):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) <= limit:
            yield paragraph
        else:
            yield from _pack_words(paragraph, limit)


def split_message(text: str, limit: int = MAX_PART_LENGTH) -> list[str]:
    """
    Split a reply into parts of at most `limit` characters.

    Returns an empty list only for blank input.
    """
    return list(iter_message_parts(text, limit))
