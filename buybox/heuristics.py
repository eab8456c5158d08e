"""Lexical heuristics that score a block of free text on a 1-5 scale.

Every function here is pure and deterministic for a given text and the fixed
word tables below.  They never raise on odd input: an empty string scores at
the neutral point (sentiment, confidence) or the floor (keywords, depth).

- ``sentiment``            60/40 blend of AFINN comparative and VADER compound
- ``keyword_relevance``    share of a vocabulary found among the text's keywords
- ``confidence_language``  achievement vs. tentative wording
- ``depth_specificity``    sentence length plus specificity markers
"""
from __future__ import annotations

import re
import string
from functools import lru_cache
from typing import Iterable

from afinn import Afinn
from vaderSentiment.vaderSentiment import SentimentIntensityAnalyzer

SCORE_MIN = 1.0
SCORE_MAX = 5.0

# ---------------------------------------------------------------------------
# Word tables
# ---------------------------------------------------------------------------

HIGH_ACHIEVEMENT_TERMS = frozenset({
    "successfully", "achieved", "led", "increased", "improved",
    "delivered", "exceeded", "won", "built", "created",
})
COLLABORATIVE_TERMS = frozenset({
    "helped", "contributed", "participated", "involved", "worked",
    "supported", "assisted",
})
TENTATIVE_TERMS = frozenset({
    "tried", "attempted", "learning", "studying", "interested",
    "hope", "plan", "want",
})

SPECIFICITY_MARKERS = (
    "specifically", "particularly", "exactly", "precisely",
    "detailed", "comprehensive", "thorough",
)

STOPWORDS = frozenset({
    "a", "about", "above", "after", "again", "against", "all", "also", "am",
    "an", "and", "any", "are", "as", "at", "be", "because", "been", "before",
    "being", "below", "between", "both", "but", "by", "can", "could", "did",
    "do", "does", "doing", "down", "during", "each", "either", "else", "etc",
    "ever", "every", "few", "for", "from", "further", "get", "got", "had",
    "has", "have", "having", "he", "her", "here", "hers", "herself", "him",
    "himself", "his", "how", "however", "i", "if", "in", "into", "is", "it",
    "its", "itself", "just", "let", "like", "made", "make", "many", "may",
    "me", "might", "more", "most", "much", "must", "my", "myself", "no",
    "nor", "not", "now", "of", "off", "often", "on", "once", "one", "only",
    "or", "other", "our", "ours", "ourselves", "out", "over", "own", "per",
    "same", "shall", "she", "should", "so", "some", "such", "than", "that",
    "the", "their", "theirs", "them", "themselves", "then", "there", "these",
    "they", "this", "those", "through", "to", "too", "under", "until", "up",
    "upon", "us", "use", "used", "using", "very", "via", "was", "we", "well",
    "were", "what", "when", "where", "whether", "which", "while", "who",
    "whom", "whose", "why", "will", "with", "within", "without", "would",
    "yet", "you", "your", "yours", "yourself", "yourselves",
})

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:['-][a-z0-9]+)*")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


def clamp(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    return max(low, min(high, value))


def _polarity_to_score(polarity: float) -> float:
    return clamp(3.0 + polarity * 2.0)


# ---------------------------------------------------------------------------
# Tokenization
# ---------------------------------------------------------------------------


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall((text or "").lower())


def _is_keyword(token: str) -> bool:
    return len(token) > 1 and token not in STOPWORDS and not token.isdigit()


def extract_keywords(text: str) -> list[str]:
    """Lower-cased non-stopword tokens, digits dropped, first-seen order, no duplicates."""
    seen: dict[str, None] = {}
    for token in tokenize(text):
        if _is_keyword(token):
            seen.setdefault(token, None)
    return list(seen)


def candidate_terms(text: str) -> list[str]:
    """Keywords plus adjacent keyword bigrams (``"real estate"``, ``"cost reduction"``)."""
    tokens = tokenize(text)
    terms: dict[str, None] = dict.fromkeys(extract_keywords(text))
    for left, right in zip(tokens, tokens[1:]):
        if _is_keyword(left) and _is_keyword(right):
            terms.setdefault(f"{left} {right}", None)
    return list(terms)


def phrase_matches(phrase: str, terms: Iterable[str]) -> bool:
    """Case-insensitive substring containment in either direction."""
    phrase = phrase.lower()
    return any(term and (phrase in term or term in phrase) for term in terms)


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _afinn() -> Afinn:
    return Afinn(language="en")


@lru_cache(maxsize=1)
def _vader() -> SentimentIntensityAnalyzer:
    return SentimentIntensityAnalyzer()


def afinn_comparative(text: str) -> float:
    tokens = tokenize(text)
    if not tokens:
        return 0.0
    return _afinn().score(text) / len(tokens)


def vader_compound(text: str) -> float:
    if not text or not text.strip():
        return 0.0
    return _vader().polarity_scores(text)["compound"]


def sentiment(text: str) -> float:
    basic = _polarity_to_score(afinn_comparative(text))
    vader = _polarity_to_score(vader_compound(text))
    return basic * 0.6 + vader * 0.4


def keyword_relevance(text: str, vocabulary: Iterable[str]) -> float:
    vocab = list(dict.fromkeys(v.lower() for v in vocabulary if v))
    if not vocab:
        return SCORE_MIN
    keywords = extract_keywords(text)
    matches = sum(1 for phrase in vocab if phrase_matches(phrase, keywords))
    return min(SCORE_MAX, 1.0 + (matches / len(vocab)) * 4.0)


def confidence_language(text: str) -> float:
    score = 3.0
    for raw in (text or "").lower().split():
        word = raw.strip(string.punctuation)
        if word in HIGH_ACHIEVEMENT_TERMS:
            score += 0.3
        elif word in COLLABORATIVE_TERMS:
            score += 0.1
        elif word in TENTATIVE_TERMS:
            score -= 0.2
    return clamp(score)


def depth_specificity(text: str) -> float:
    text = text or ""
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if len(s) > 10]
    avg_len = sum(len(s) for s in sentences) / len(sentences) if sentences else 0.0
    lowered = text.lower()
    markers = sum(1 for word in SPECIFICITY_MARKERS if word in lowered)
    return max(SCORE_MIN, min(3.0, avg_len / 50) + min(2.0, markers * 0.5))
