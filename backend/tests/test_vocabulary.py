import math

import pytest

from services.vocabulary import build_vocabulary, smoothed_idf


def test_smoothed_idf_values():
    assert smoothed_idf(2, 1) == pytest.approx(1.405, abs=1e-3)
    assert smoothed_idf(5, 5) == pytest.approx(1.0)


def test_smoothed_idf_positive_for_all_frequencies():
    for df in range(1, 11):
        assert smoothed_idf(10, df) > 0


def test_build_vocabulary_document_frequencies():
    vocab = build_vocabulary(["Python", "Python Django"], generation=3)
    assert vocab.generation == 3
    assert vocab.document_count == 2
    assert vocab.entries["python"].document_frequency == 2
    assert vocab.idf("python") == pytest.approx(1.0)
    assert vocab.idf("django") == pytest.approx(math.log(3 / 2) + 1)
    assert "python_django" in vocab
    assert vocab.idf("rust") is None


def test_repeated_term_in_one_phrase_counts_once():
    vocab = build_vocabulary(["go go"])
    assert vocab.entries["go"].document_frequency == 1
    assert vocab.entries["go_go"].document_frequency == 1


def test_empty_corpus():
    vocab = build_vocabulary([])
    assert len(vocab) == 0
    assert vocab.document_count == 1
