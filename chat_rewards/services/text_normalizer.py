"""Text helpers used by the quality factors.

Handles:
- Case-insensitive whitespace tokenization
- Distinct token counting
- Jaccard similarity between two texts
"""


def tokenize(text: str) -> set[str]:
    """Return the set of lower-cased tokens split on whitespace runs.

    Example:
        >>> sorted(tokenize("Ship  it ship IT now"))
        ['it', 'now', 'ship']
    """
    return set(text.lower().split())


def count_distinct_tokens(text: str) -> int:
    """Count distinct tokens; equality is case-insensitive.

    Example:
        >>> count_distinct_tokens("The the THE cat")
        2
    """
    return len(tokenize(text))


def jaccard_similarity(first: str, second: str) -> float:
    """Jaccard similarity of the token sets of two texts.

    Returns 0.0 when both texts are empty.

    Example:
        >>> jaccard_similarity("release notes for v2", "release notes")
        0.5
    """
    first_tokens = tokenize(first)
    second_tokens = tokenize(second)
    union = first_tokens | second_tokens
    if not union:
        return 0.0
    return len(first_tokens & second_tokens) / len(union)
