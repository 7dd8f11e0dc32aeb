import pytest

from services.text import (
    normalize,
    term_frequency,
    tokenize,
    vector_from_json,
    vector_to_json,
    vectorize,
    vectorize_text,
)
from services.vocabulary import build_vocabulary


def test_normalize_keeps_tech_punctuation():
    assert normalize("  Node.JS / C++  and C#!! ") == "node.js c++ and c#"


def test_normalize_empty():
    assert normalize("") == ""
    assert normalize("!!!") == ""


def test_tokenize_unigrams_then_bigrams():
    assert tokenize("AI/ML Engineer") == ["ai", "ml", "engineer", "ai_ml", "ml_engineer"]


def test_tokenize_single_word_has_no_bigrams():
    assert tokenize("Kubernetes") == ["kubernetes"]


def test_tokenize_empty():
    assert tokenize("") == []
    assert tokenize("   ") == []


def test_term_frequency_sums_to_one():
    tf = term_frequency(["go", "rust", "go"])
    assert tf == {"go": pytest.approx(2 / 3), "rust": pytest.approx(1 / 3)}
    assert sum(tf.values()) == pytest.approx(1.0)


def test_term_frequency_empty():
    assert term_frequency([]) == {}


def test_vectorize_drops_out_of_vocabulary_terms():
    vocab = build_vocabulary(["python"])
    vector = vectorize(tokenize("Python Django"), vocab)
    # tokens: python, django, python_django -> only python is known (idf 1.0)
    assert vector == {"python": pytest.approx(1 / 3)}


def test_vectorize_text_empty_vocabulary():
    vocab = build_vocabulary([])
    assert vectorize_text("Python", vocab) == {}


def test_vector_json_round_trip():
    vector = {"react": 0.4054651081081644, "react_native": 1.2}
    assert vector_from_json(vector_to_json(vector)) == vector


def test_vector_from_json_malformed():
    assert vector_from_json(None) == {}
    assert vector_from_json("") == {}
    assert vector_from_json("{not json") == {}
    assert vector_from_json("[1, 2]") == {}
