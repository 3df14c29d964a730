"""Semantic analysis: TF-IDF vectors and similarity search over indexed code.

Every file, function and class becomes one document.  Files contribute only
their base name; functions and classes contribute their name plus the tokens
of their source text.  Tokens are camel-case split, lower-cased, filtered and
Porter-stemmed before they enter the corpus.
"""

from __future__ import annotations

import logging
import math
import os
import re
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

from nltk.stem.porter import PorterStemmer
from nltk.tokenize import RegexpTokenizer

from .config import EngineConfig
from .models import (
    ClassEntry,
    CodeIndex,
    FileEntry,
    FunctionEntry,
    Keyword,
    NodeType,
    SemanticEntry,
    SemanticIndex,
    SimilarElement,
    element_node_id,
    file_node_id,
)
from .vector_utils import cosine_similarity

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")

_GROUP_TYPES: Dict[str, NodeType] = {
    "files": NodeType.FILE,
    "functions": NodeType.FUNCTION,
    "classes": NodeType.CLASS,
}

DEFAULT_SEARCH_TYPES = ("files", "functions", "classes")


class TfIdfModel:
    """Corpus-wide term statistics.

    ``tf`` is the raw count of a term in a document and
    ``idf(t) = 1 + ln(N / (1 + df(t)))``.
    """

    def __init__(self) -> None:
        self._documents: Dict[str, Counter] = {}
        self._document_frequency: Counter = Counter()

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self._documents

    def add_document(self, doc_id: str, tokens: Iterable[str]) -> None:
        """Register *tokens* under *doc_id*, replacing an earlier document."""
        if doc_id in self._documents:
            self._document_frequency.subtract(self._documents[doc_id].keys())
        counts = Counter(tokens)
        self._documents[doc_id] = counts
        self._document_frequency.update(counts.keys())

    def document_frequency(self, term: str) -> int:
        return self._document_frequency.get(term, 0)

    def idf(self, term: str) -> float:
        return 1.0 + math.log(len(self._documents) / (1 + self.document_frequency(term)))

    def tfidf(self, term: str, doc_id: str) -> float:
        counts = self._documents.get(doc_id)
        if not counts or term not in counts:
            return 0.0
        return counts[term] * self.idf(term)

    def vector(self, doc_id: str) -> Dict[str, float]:
        """Sparse ``{term: tfidf}`` vector for one document."""
        counts = self._documents.get(doc_id, Counter())
        return {term: count * self.idf(term) for term, count in counts.items()}

    def top_terms(self, doc_id: str, count: int) -> List[Keyword]:
        ranked = sorted(self.vector(doc_id).items(), key=lambda kv: kv[1], reverse=True)
        return [Keyword(term=term, tfidf=weight) for term, weight in ranked[:count]]


class SemanticAnalyzer:
    """Builds the semantic index and answers similarity queries against it."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._tokenizer = RegexpTokenizer(r"\w+")
        self._stemmer = PorterStemmer(mode=PorterStemmer.ORIGINAL_ALGORITHM)
        self._stop_words = set(self.config.stop_words)
        self.model = TfIdfModel()
        self._semantic_index = SemanticIndex()
        self._analyzed = False

    @property
    def semantic_index(self) -> SemanticIndex:
        return self._semantic_index

    @property
    def is_analyzed(self) -> bool:
        return self._analyzed

    # ------------------------------------------------------------------
    # Tokenization
    # ------------------------------------------------------------------

    def tokenize_and_stem(self, text: str) -> List[str]:
        """Split, filter and stem *text*.

        >>> SemanticAnalyzer().tokenize_and_stem("loginUser")
        ['login', 'user']
        """
        spaced = _CAMEL_BOUNDARY.sub(r"\1 \2", text or "")
        tokens = self._tokenizer.tokenize(spaced.lower())
        return [
            self._stemmer.stem(token)
            for token in tokens
            if len(token) >= self.config.min_token_length and token not in self._stop_words
        ]

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_codebase(self, code_index: CodeIndex) -> SemanticIndex:
        """Rebuild the TF-IDF model and semantic index from *code_index*."""
        logger.info("Analyzing code semantics...")
        self.model = TfIdfModel()
        index = SemanticIndex()

        for entry in code_index.files:
            self._register(index.files, self._file_entry(entry))
        for func in code_index.functions:
            self._register(index.functions, self._function_entry(func))
        for cls in code_index.classes:
            self._register(index.classes, self._class_entry(cls))

        # vectors need the complete corpus, so they come after registration
        for group in DEFAULT_SEARCH_TYPES:
            for doc_id, entry in index.entries(group).items():
                entry.vector = self.model.vector(doc_id)
                entry.keywords = self.model.top_terms(doc_id, self.config.keyword_count)

        self._semantic_index = index
        self._analyzed = True
        logger.info(
            "Semantic analysis complete: %d files, %d functions, %d classes",
            len(index.files), len(index.functions), len(index.classes),
        )
        return index

    def _register(self, group: Dict[str, SemanticEntry], entry: SemanticEntry) -> None:
        if entry.id in group:
            logger.debug("Duplicate element id %s; keeping the last definition", entry.id)
        group[entry.id] = entry
        self.model.add_document(entry.id, entry.tokens)

    def _file_entry(self, entry: FileEntry) -> SemanticEntry:
        stem = os.path.splitext(entry.name)[0]
        return SemanticEntry(
            id=file_node_id(entry.path),
            type=NodeType.FILE,
            name=entry.name,
            file_path=entry.path,
            tokens=self.tokenize_and_stem(stem),
        )

    def _function_entry(self, func: FunctionEntry) -> SemanticEntry:
        return SemanticEntry(
            id=element_node_id(NodeType.FUNCTION, func.file_path, func.name),
            type=NodeType.FUNCTION,
            name=func.name,
            file_path=func.file_path,
            tokens=self.tokenize_and_stem(func.name) + self.tokenize_and_stem(func.code),
            params=list(func.params),
            loc=func.loc,
        )

    def _class_entry(self, cls: ClassEntry) -> SemanticEntry:
        return SemanticEntry(
            id=element_node_id(NodeType.CLASS, cls.file_path, cls.name),
            type=NodeType.CLASS,
            name=cls.name,
            file_path=cls.file_path,
            tokens=self.tokenize_and_stem(cls.name) + self.tokenize_and_stem(cls.code),
            methods=[m.name for m in cls.methods],
            loc=cls.loc,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def query_vector(self, query: str) -> Dict[str, float]:
        """Weight each query token by its IDF; unseen tokens weigh 0."""
        vector: Dict[str, float] = {}
        for token in self.tokenize_and_stem(query):
            if token in vector:
                continue
            vector[token] = self.model.idf(token) if self.model.document_frequency(token) else 0.0
        return vector

    def find_similar_elements(
        self,
        query: str,
        limit: int = 10,
        types: Sequence[str] = DEFAULT_SEARCH_TYPES,
        threshold: Optional[float] = None,
    ) -> List[SimilarElement]:
        """Rank indexed elements by cosine similarity to *query*.

        *types* selects among ``"files"``, ``"functions"`` and ``"classes"``.
        Results at or above *threshold* (default: the configured similarity
        threshold) are returned best first, at most *limit* of them.
        """
        if threshold is None:
            threshold = self.config.similarity_threshold
        if not self._analyzed:
            return []

        query_vec = self.query_vector(query)
        results: List[SimilarElement] = []
        for group in DEFAULT_SEARCH_TYPES:
            if group not in types:
                continue
            for entry in self._semantic_index.entries(group).values():
                similarity = cosine_similarity(query_vec, entry.vector)
                if similarity >= threshold:
                    results.append(SimilarElement(
                        type=_GROUP_TYPES[group],
                        item=entry,
                        similarity=similarity,
                    ))

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]
