"""Tests for tokenization, the TF-IDF model and similarity search."""

import math

import pytest

from codemap.config import EngineConfig
from codemap.models import (
    ClassEntry,
    CodeIndex,
    FileEntry,
    FunctionEntry,
    LineRange,
    MethodEntry,
    NodeType,
)
from codemap.semantic import SemanticAnalyzer, TfIdfModel


def _function(name: str, code: str, file_path: str = "/p/auth.js") -> FunctionEntry:
    return FunctionEntry(name=name, params=[], loc=LineRange(1, 1), code=code, file_path=file_path)


def _small_index() -> CodeIndex:
    index = CodeIndex()
    index.add_file(FileEntry(
        path="/p/auth.js",
        name="auth.js",
        extension=".js",
        size=10,
        functions=[_function("loginUser", "function loginUser(user) {}")],
    ))
    index.add_file(FileEntry(
        path="/p/chart.js",
        name="chart.js",
        extension=".js",
        size=10,
        functions=[_function("renderChart", "function renderChart(chart) {}", "/p/chart.js")],
        classes=[ClassEntry(
            name="ChartView",
            methods=[MethodEntry("draw", [], LineRange(2, 2))],
            loc=LineRange(1, 3),
            code="class ChartView { draw() {} }",
            file_path="/p/chart.js",
        )],
    ))
    index.update_metadata()
    return index


class TestTokenizeAndStem:
    def test_camel_case_split_and_stem(self):
        """Test camel-case splitting before stemming."""
        assert SemanticAnalyzer().tokenize_and_stem("loginUser") == ["login", "user"]

    def test_stop_words_and_short_tokens_dropped(self):
        """Test filtering of stop words and tokens below the minimum length."""
        tokens = SemanticAnalyzer().tokenize_and_stem("Running the tests for users, ok?")
        assert tokens == ["run", "test", "user"]

    def test_configurable_filters(self):
        """Test custom minimum length and stop words."""
        analyzer = SemanticAnalyzer(EngineConfig(min_token_length=2, stop_words=["user"]))
        assert analyzer.tokenize_and_stem("ok user db") == ["ok", "db"]

    def test_empty_text(self):
        assert SemanticAnalyzer().tokenize_and_stem("") == []


class TestTfIdfModel:
    def test_idf_and_tfidf(self):
        """Test tf = raw count and idf = 1 + ln(N / (1 + df))."""
        model = TfIdfModel()
        model.add_document("d1", ["alpha", "alpha", "beta"])
        model.add_document("d2", ["beta"])
        model.add_document("d3", ["gamma"])

        assert model.idf("alpha") == pytest.approx(1 + math.log(3 / 2))
        assert model.idf("beta") == pytest.approx(1.0)
        assert model.tfidf("alpha", "d1") == pytest.approx(2 * (1 + math.log(3 / 2)))
        assert model.tfidf("alpha", "d2") == 0
        assert model.vector("d1") == pytest.approx({
            "alpha": 2 * (1 + math.log(1.5)),
            "beta": 1.0,
        })

    def test_replacing_a_document_updates_frequencies(self):
        model = TfIdfModel()
        model.add_document("d1", ["alpha"])
        model.add_document("d1", ["beta"])
        assert len(model) == 1
        assert model.document_frequency("alpha") == 0
        assert model.document_frequency("beta") == 1

    def test_top_terms_ranked_by_weight(self):
        model = TfIdfModel()
        model.add_document("d1", ["alpha", "alpha", "alpha", "beta", "gamma", "gamma"])
        model.add_document("d2", ["delta"])
        assert [k.term for k in model.top_terms("d1", 2)] == ["alpha", "gamma"]


class TestSemanticAnalyzer:
    def test_analyze_builds_entries_and_vectors(self):
        """Test element ids, tokens, vectors and keywords."""
        analyzer = SemanticAnalyzer()
        index = analyzer.analyze_codebase(_small_index())

        assert set(index.files) == {"file:/p/auth.js", "file:/p/chart.js"}
        assert set(index.functions) == {
            "function:/p/auth.js:loginUser",
            "function:/p/chart.js:renderChart",
        }
        assert set(index.classes) == {"class:/p/chart.js:ChartView"}
        assert len(index) == 5

        login = index.functions["function:/p/auth.js:loginUser"]
        assert login.tokens == ["login", "user", "function", "login", "user", "user"]
        assert set(login.vector) == {"login", "user", "function"}
        assert login.keywords[0].term == "user"
        assert len(login.keywords) <= 5

        assert index.files["file:/p/auth.js"].tokens == ["auth"]
        assert index.classes["class:/p/chart.js:ChartView"].methods == ["draw"]

    def test_find_similar_before_analysis_is_empty(self):
        assert SemanticAnalyzer().find_similar_elements("anything", threshold=0) == []

    def test_find_similar_elements_ranked_and_thresholded(self):
        """Test ordering, threshold and result types."""
        analyzer = SemanticAnalyzer()
        analyzer.analyze_codebase(_small_index())

        results = analyzer.find_similar_elements("user login", threshold=0.5)
        assert results
        assert results[0].item.name == "loginUser"
        assert results[0].type == NodeType.FUNCTION
        assert all(r.similarity >= 0.5 for r in results)
        sims = [r.similarity for r in results]
        assert sims == sorted(sims, reverse=True)

    def test_find_similar_respects_types_and_limit(self):
        analyzer = SemanticAnalyzer()
        analyzer.analyze_codebase(_small_index())

        files_only = analyzer.find_similar_elements("chart", types=("files",), threshold=0.1)
        assert [r.item.name for r in files_only] == ["chart.js"]
        assert all(r.type == NodeType.FILE for r in files_only)

        limited = analyzer.find_similar_elements("chart", threshold=0.1, limit=1)
        assert len(limited) == 1

    def test_unknown_query_terms_match_nothing(self):
        analyzer = SemanticAnalyzer()
        analyzer.analyze_codebase(_small_index())
        vector = analyzer.query_vector("spaceship")
        assert len(vector) == 1
        assert set(vector.values()) == {0.0}
        assert analyzer.find_similar_elements("spaceship", threshold=0.0001) == []

    def test_default_threshold_comes_from_config(self):
        analyzer = SemanticAnalyzer(EngineConfig(similarity_threshold=0.99))
        analyzer.analyze_codebase(_small_index())
        assert analyzer.find_similar_elements("user login") == []
