"""
Semantic similarity port and the default local implementation.

The validator only depends on SimilarityProvider. HashingSimilarityProvider is
a dependency-light default (character n-gram hashing, no model download, no
network) so validation works offline; production deployments can plug in a
sentence-embedding service by subclassing SimilarityProvider.
"""

from abc import ABC, abstractmethod

import numpy as np
from sklearn.feature_extraction.text import HashingVectorizer
from sklearn.metrics.pairwise import cosine_similarity


class SimilarityProvider(ABC):
    """
    Abstract semantic similarity capability.

    Subclasses implement embed(); similarity() defaults to cosine similarity
    of the two embeddings. Implementations raise on provider failure; the
    validator turns that into a reject verdict.
    """

    name: str = "similarity"

    @abstractmethod
    def embed(self, text: str) -> np.ndarray:
        """Return a 1-D embedding vector for a text span."""
        pass

    def similarity(self, first: np.ndarray, second: np.ndarray) -> float:
        """Cosine similarity of two embeddings, in [-1, 1] (0.0 when either is all zeros)."""
        return float(cosine_similarity(np.atleast_2d(first), np.atleast_2d(second))[0, 0])

    def compare(self, original: str, rewritten: str) -> float:
        """Embed both spans and return their similarity."""
        return self.similarity(self.embed(original), self.embed(rewritten))


class HashingSimilarityProvider(SimilarityProvider):
    """
    Character n-gram similarity using scikit-learn's HashingVectorizer.

    Word-boundary-aware 3-5 character n-grams make the score robust to small
    inflection changes ("optimize" vs "optimized") while still dropping sharply
    when a rewrite changes what the bullet is about.
    """

    name = "hashing-char-ngrams"

    def __init__(self, n_features: int = 2**16, ngram_range: tuple = (3, 5)):
        self.vectorizer = HashingVectorizer(
            analyzer="char_wb",
            ngram_range=ngram_range,
            n_features=n_features,
            alternate_sign=False,
            norm="l2",
            lowercase=True,
        )

    def embed(self, text: str) -> np.ndarray:
        return self.vectorizer.transform([text]).toarray()[0]
