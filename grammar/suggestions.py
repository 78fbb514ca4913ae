"""
Suggestion engine - fuzzy ranking of completion candidates.

Candidates are matched as case-insensitive subsequences of the partially
typed word (prompt_toolkit's fuzzy matcher), earliest and tightest match
first, ties keeping the candidate order.
"""
from typing import Iterable, List, Optional

from prompt_toolkit.completion import CompleteEvent, FuzzyWordCompleter
from prompt_toolkit.document import Document


def fuzzy_filter(query: Optional[str], candidates: Iterable[str]) -> List[str]:
    """Return the candidates matching ``query``; all of them when it is empty."""
    candidates = list(candidates)
    if not query:
        return candidates
    completer = FuzzyWordCompleter(candidates, WORD=True)
    document = Document(query, cursor_position=len(query))
    return [c.text for c in completer.get_completions(document, CompleteEvent())]


def render(known_words: List[str], candidates: Iterable[str]) -> List[str]:
    """Prefix each candidate with the committed words, giving full commands."""
    return [" ".join(known_words + [candidate]) for candidate in candidates]


def suggest(known_words: List[str], candidates: Iterable[str], query: Optional[str] = None) -> List[str]:
    return render(known_words, fuzzy_filter(query, candidates))
