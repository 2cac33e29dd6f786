"""Conjunctive matching of user task references against active tasks.

A task matches a reference only when EVERY salient token of the reference
appears in the task summary. "Dental Milka" matches "Dental Milka" and
"Milka dental checkup", never "Research The Happy Howl for Milka".
"""

import re

from olive.context.models import ActiveTask

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)

# Words that never identify a task on their own
STOPWORDS: frozenset[str] = frozenset({
    # articles, pronouns, prepositions
    "a", "an", "the", "my", "our", "your", "his", "her", "their", "this", "that",
    "these", "those", "it", "its", "one", "ones", "to", "for", "of", "on", "in",
    "at", "by", "with", "from", "about", "and", "or", "as", "is", "are", "be",
    "me", "i", "we", "us", "please", "pls", "can", "you", "could", "would",
    # task nouns
    "task", "tasks", "item", "items", "todo", "note", "reminder",
    # command words
    "mark", "complete", "completed", "done", "finish", "finished", "check",
    "delete", "remove", "cancel", "drop", "set", "make", "change", "move",
    "postpone", "reschedule", "assign", "give", "remind",
    # filler
    "now", "just", "already", "all", "up", "off", "out", "also", "too",
    "him", "he", "she", "they", "them",
})


def tokenize(text: str) -> list[str]:
    """Lower-cased word tokens."""
    return _TOKEN_RE.findall(text.lower())


def salient_tokens(text: str | None) -> list[str]:
    """Lower-cased, de-duplicated tokens of a reference, stopwords removed."""
    if not text:
        return []
    seen: list[str] = []
    for token in tokenize(text):
        # single letters are contraction debris ("it's" -> "it", "s")
        if len(token) == 1 and not token.isdigit():
            continue
        if token in STOPWORDS or token in seen:
            continue
        seen.append(token)
    return seen


def task_matches(reference: str | None, task: ActiveTask) -> bool:
    """Whether every salient token of the reference appears in the task summary."""
    tokens = salient_tokens(reference)
    if not tokens:
        return False
    summary_tokens = set(tokenize(task.summary))
    return all(token in summary_tokens for token in tokens)


def find_matching_tasks(reference: str | None, tasks: list[ActiveTask]) -> list[ActiveTask]:
    """All tasks matching the reference conjunctively, in input order."""
    return [task for task in tasks if task_matches(reference, task)]


def resolve_task(reference: str | None, tasks: list[ActiveTask]) -> ActiveTask | None:
    """The single matching task, or None when there are zero or several candidates."""
    matches = find_matching_tasks(reference, tasks)
    if len(matches) == 1:
        return matches[0]
    return None
