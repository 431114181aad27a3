"""
Text Analysis

Descriptive analysis of a free-text column:
- Record statistics (characters, words, sentences, paragraphs, empties, uniques)
- Word and character frequencies
- Pattern detection (email, URL, phone, numbers only, Japanese only, alphanumeric only)
- Language mix (Japanese / English / mixed / other) and character classes
- Sentence length distribution and punctuation usage
- Readability score on a 0-100 scale with a complexity level

Words are split on whitespace after punctuation is blanked out, for
Japanese text as well, so a run of Japanese characters between punctuation
marks counts as one word.
"""

from typing import List, Dict, Optional, Tuple, Any
from collections import Counter
import re
import numpy as np
import pandas as pd

from .errors import InvalidColumn
from .results import (
    FrequencyEntry, TextPattern, LanguageShare,
    TextStatistics, TextAnalysisResult,
)


_PUNCTUATION_CHAR = re.compile(r'[.,!?;:\'"()\[\]{}\-_/\\@#$%^&*+=<>|~`]')
_TOKEN_SEPARATORS = re.compile(r'[.,!?;:\'"()\[\]{}\-_/\\@#$%^&*+=<>|~`。、！？；：「」『』（）【】]')
_SENTENCE_END = re.compile(r'[.!?。！？]+')
_PARAGRAPH_BREAK = re.compile(r'\n\s*\n')

PUNCTUATION_MARKS = ('。', '.', '！', '!', '？', '?', '、', ',', '：', ':', '；', ';')

# (pattern, description, regex, how a record must match: search, whole or stripped whole)
TEXT_PATTERNS = (
    ('email', 'Email address', re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), 'search'),
    ('url', 'URL', re.compile(r'https?://\S+'), 'search'),
    ('phone', 'Phone number', re.compile(r'\d{2,4}-\d{2,4}-\d{4}|\d{10,11}'), 'search'),
    ('number_only', 'Digits only', re.compile(r'\d+'), 'stripped'),
    ('japanese_only', 'Japanese only', re.compile(r'[\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF\s]+'), 'whole'),
    ('alphanumeric_only', 'Alphanumeric only', re.compile(r'[A-Za-z0-9\s]+'), 'whole'),
)

# Inclusive word-count ranges of the sentence length distribution
SENTENCE_LENGTH_RANGES = (
    (0, 5, '1-5 words'),
    (6, 10, '6-10 words'),
    (11, 20, '11-20 words'),
    (21, 30, '21-30 words'),
    (31, np.inf, '31+ words'),
)

JAPANESE_TYPES = ('hiragana', 'katakana', 'kanji')
PATTERN_EXAMPLES = 3


def character_type(char: str) -> str:
    """Classify one character: hiragana, katakana, kanji, alphanumeric, punctuation, whitespace or other."""
    code = ord(char)
    if 0x3040 <= code <= 0x309F:
        return 'hiragana'
    if 0x30A0 <= code <= 0x30FF:
        return 'katakana'
    if 0x4E00 <= code <= 0x9FAF:
        return 'kanji'
    if ('A' <= char <= 'Z') or ('a' <= char <= 'z') or ('0' <= char <= '9'):
        return 'alphanumeric'
    if _PUNCTUATION_CHAR.match(char):
        return 'punctuation'
    if char.isspace():
        return 'whitespace'
    return 'other'


def tokenize(text: str) -> List[str]:
    return [word for word in _TOKEN_SEPARATORS.sub(' ', text).split() if word]


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_END.split(text) if s.strip()]


def split_paragraphs(text: str) -> List[str]:
    return [p.strip() for p in _PARAGRAPH_BREAK.split(text) if p.strip()]


def detect_language(text: str) -> Tuple[str, float]:
    """
    Guess the language of a text from its character classes.

    Whitespace is ignored. More than 30% Japanese characters gives
    'japanese' (confidence = min(2 x ratio, 1)); otherwise more than 70%
    alphanumerics gives 'english' (confidence = ratio); more than 10%
    Japanese with more than 30% alphanumerics gives 'mixed' (0.8); anything
    else is 'other' (0.5). An empty text is 'unknown' (0).

    Returns:
        (language, confidence)
    """
    chars = [c for c in text.lower() if not c.isspace()]
    if not chars:
        return 'unknown', 0.0

    types = Counter(character_type(c) for c in chars)
    japanese = sum(types[t] for t in JAPANESE_TYPES) / len(chars)
    english = types['alphanumeric'] / len(chars)

    if japanese > 0.3:
        return 'japanese', min(japanese * 2, 1.0)
    if english > 0.7:
        return 'english', english
    if japanese > 0.1 and english > 0.3:
        return 'mixed', 0.8
    return 'other', 0.5


def readability_score(words_per_sentence: float, characters_per_word: float) -> float:
    """
    Readability on a 0-100 scale (100 = easiest).

    Long sentences (saturating at 20 words) and long words (saturating at
    8 characters) each cost up to 40 points.
    """
    sentence_penalty = min(words_per_sentence / 20, 1) * 40
    word_penalty = min((characters_per_word - 3) / 5, 1) * 40
    return float(max(0.0, min(100.0, 100 - sentence_penalty - word_penalty)))


def complexity_level(score: float) -> str:
    if score >= 80:
        return 'very easy'
    elif score >= 60:
        return 'easy'
    elif score >= 40:
        return 'moderate'
    elif score >= 20:
        return 'difficult'
    return 'very difficult'


def _entries(counts: Counter, total: int, limit: Optional[int] = None) -> Tuple[FrequencyEntry, ...]:
    """Most common first; ties keep first-seen order."""
    return tuple(
        FrequencyEntry(str(label), int(count), count / total * 100.0 if total else 0.0)
        for label, count in counts.most_common(limit)
    )


class TextAnalyzer:
    """
    Analyze the text of one column.

    Null values are skipped; every other value is analyzed as its string
    form, so an empty string is an (empty) record.

    Example:
        >>> analyzer = TextAnalyzer(word_limit=10)
        >>> result = analyzer.analyze(df['comment'], 'comment')
        >>> result.statistics.total_words
    """

    def __init__(
        self,
        word_limit: int = 20,
        character_limit: int = 20,
        min_word_length: int = 2,
        config: Optional[Dict] = None
    ):
        """
        Initialize text analyzer.

        Args:
            word_limit: Number of most frequent words reported
            character_limit: Number of most frequent characters reported
            min_word_length: Shorter words are left out of the word frequencies
            config: Optional configuration dictionary
        """
        self.config = config or {}

        text_config = self.config.get('analysis', {}).get('text', {})
        self.word_limit = text_config.get('word_limit', word_limit)
        self.character_limit = text_config.get('character_limit', character_limit)
        self.min_word_length = text_config.get('min_word_length', min_word_length)

    def analyze(self, values: Any, column: str) -> TextAnalysisResult:
        """
        Run every text analysis over a column.

        Args:
            values: Column values
            column: Column name

        Returns:
            TextAnalysisResult

        Raises:
            InvalidColumn: If the column has no non-null values
        """
        series = values if isinstance(values, pd.Series) else pd.Series(values, dtype=object)
        texts = [str(v) for v in series if not pd.isna(v)]
        if not texts:
            raise InvalidColumn(f"No text data found in column '{column}'", columns=[column])

        statistics = self.text_statistics(texts)
        words_per_sentence = statistics.average_words_per_sentence
        characters_per_word = (
            statistics.total_characters / statistics.total_words if statistics.total_words else 0.0
        )
        score = readability_score(words_per_sentence, characters_per_word)
        sentence_lengths = [len(tokenize(s)) for t in texts for s in split_sentences(t)]

        return TextAnalysisResult(
            column=column,
            statistics=statistics,
            word_frequencies=self.word_frequencies(texts),
            character_frequencies=self.character_frequencies(texts),
            patterns=self.patterns(texts),
            languages=self.languages(texts),
            character_types=self.character_types(texts),
            average_sentence_length=float(np.mean(sentence_lengths)) if sentence_lengths else 0.0,
            sentence_length_distribution=self.sentence_length_distribution(sentence_lengths),
            punctuation_usage=self.punctuation_usage(texts),
            average_characters_per_word=characters_per_word,
            readability_score=score,
            complexity_level=complexity_level(score),
            recommendations=self.recommendations(words_per_sentence, characters_per_word, score)
        )

    def text_statistics(self, texts: List[str]) -> TextStatistics:
        """Record-level counts; medians are the upper middle value."""
        n = len(texts)
        characters = [len(t) for t in texts]
        words = [len(tokenize(t)) for t in texts]
        sentences = sum(len(split_sentences(t)) for t in texts)
        paragraphs = sum(len(split_paragraphs(t)) for t in texts)

        total_characters = sum(characters)
        total_words = sum(words)
        empty = sum(1 for t in texts if not t.strip())
        unique = len(set(texts))

        return TextStatistics(
            total_records=n,
            total_characters=total_characters,
            total_words=total_words,
            total_sentences=sentences,
            total_paragraphs=paragraphs,
            average_characters_per_record=total_characters / n,
            average_words_per_record=total_words / n,
            average_sentences_per_record=sentences / n,
            average_words_per_sentence=total_words / sentences if sentences else 0.0,
            median_characters_per_record=sorted(characters)[n // 2],
            median_words_per_record=sorted(words)[n // 2],
            min_characters=min(characters),
            max_characters=max(characters),
            min_words=min(words),
            max_words=max(words),
            empty_records=empty,
            empty_percentage=empty / n * 100.0,
            unique_records=unique,
            unique_percentage=unique / n * 100.0
        )

    def word_frequencies(self, texts: List[str]) -> Tuple[FrequencyEntry, ...]:
        """Lower-cased word counts; percentages are of all words, short ones included."""
        words = [w for t in texts for w in tokenize(t.lower())]
        counts = Counter(w for w in words if len(w) >= self.min_word_length)
        return _entries(counts, len(words), self.word_limit)

    def character_frequencies(self, texts: List[str]) -> Tuple[FrequencyEntry, ...]:
        characters = [c for t in texts for c in t if not c.isspace()]
        return _entries(Counter(characters), len(characters), self.character_limit)

    def patterns(self, texts: List[str]) -> Tuple[TextPattern, ...]:
        """Patterns found in at least one record, with up to three example records."""
        found = []
        for name, description, regex, mode in TEXT_PATTERNS:
            if mode == 'search':
                matches = [t for t in texts if regex.search(t)]
            elif mode == 'stripped':
                matches = [t for t in texts if regex.fullmatch(t.strip())]
            else:
                matches = [t for t in texts if regex.fullmatch(t)]

            if matches:
                found.append(TextPattern(
                    pattern=name,
                    description=description,
                    count=len(matches),
                    percentage=len(matches) / len(texts) * 100.0,
                    examples=tuple(matches[:PATTERN_EXAMPLES])
                ))
        return tuple(found)

    def languages(self, texts: List[str]) -> Tuple[LanguageShare, ...]:
        """Records per detected language, most frequent first."""
        counts: Counter = Counter()
        confidence: Dict[str, float] = {}
        for text in texts:
            language, score = detect_language(text)
            counts[language] += 1
            confidence[language] = confidence.get(language, 0.0) + score

        return tuple(
            LanguageShare(
                language=language,
                count=count,
                percentage=count / len(texts) * 100.0,
                confidence=confidence[language] / count
            )
            for language, count in counts.most_common()
        )

    def character_types(self, texts: List[str]) -> Tuple[FrequencyEntry, ...]:
        types = Counter(character_type(c) for t in texts for c in t)
        return _entries(types, sum(types.values()))

    @staticmethod
    def sentence_length_distribution(lengths: List[int]) -> Tuple[FrequencyEntry, ...]:
        total = len(lengths)
        entries = []
        for low, high, label in SENTENCE_LENGTH_RANGES:
            count = sum(1 for n in lengths if low <= n <= high)
            entries.append(FrequencyEntry(label, count, count / total * 100.0 if total else 0.0))
        return tuple(entries)

    @staticmethod
    def punctuation_usage(texts: List[str]) -> Tuple[FrequencyEntry, ...]:
        """Counts of sentence and clause punctuation (Western and Japanese) that occur at all."""
        counts = Counter({mark: sum(t.count(mark) for t in texts) for mark in PUNCTUATION_MARKS})
        counts = Counter({mark: n for mark, n in counts.items() if n > 0})
        return _entries(counts, sum(counts.values()))

    @staticmethod
    def recommendations(words_per_sentence: float, characters_per_word: float, score: float) -> Tuple[str, ...]:
        advice = []
        if words_per_sentence > 20:
            advice.append('Consider shorter sentences')
        if words_per_sentence < 5:
            advice.append('Consider more detailed sentences')
        if characters_per_word > 8:
            advice.append('Consider simpler vocabulary')
        if score < 40:
            advice.append('Consider simplifying the sentence structure')
        if not advice:
            advice.append('Readability is at an appropriate level')
        return tuple(advice)
