import pytest

from pdf_chat.tools.chunking import DocumentChunk
from pdf_chat.tools.similarity import cosine_similarity, max_similarity


def chunk(embedding):
    return DocumentChunk(text="x" * 120, page=1, embedding=embedding)


def test_vector_is_fully_similar_to_itself():
    assert cosine_similarity([0.3, -1.2, 4.0], [0.3, -1.2, 4.0]) == pytest.approx(1.0)


def test_zero_vector_scores_exactly_zero():
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0


def test_length_mismatch_and_empty_vectors_score_zero():
    assert cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([], []) == 0.0


def test_orthogonal_and_opposite_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_max_similarity_over_empty_corpus_is_zero():
    assert max_similarity([1.0, 2.0], []) == 0.0


def test_max_similarity_picks_best_chunk():
    corpus = [chunk([0.0, 1.0]), chunk([1.0, 1.0]), chunk([1.0, 0.1])]

    score = max_similarity([1.0, 0.0], corpus)

    assert score == pytest.approx(cosine_similarity([1.0, 0.0], [1.0, 0.1]))


def test_max_similarity_never_goes_negative():
    corpus = [chunk([-1.0, 0.0]), chunk([-1.0, -1.0])]

    assert max_similarity([1.0, 0.0], corpus) == 0.0


def test_max_similarity_ignores_mismatched_chunks():
    corpus = [chunk([1.0, 0.0, 0.0]), chunk([])]

    assert max_similarity([1.0, 0.0], corpus) == 0.0


def test_max_similarity_stays_within_unit_range():
    vector = [0.1, 0.2, 0.3, 0.4, 0.5]

    score = max_similarity(vector, [chunk(vector)])

    assert 0.0 <= score <= 1.0
    assert score == pytest.approx(1.0)
