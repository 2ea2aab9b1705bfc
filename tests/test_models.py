"""Tests for library records and their defaulting rules."""
import pytest

from bookshelf.models import Book, CatalogBook, Category, slugify, validate_rating, validate_status


def test_slugify_trims_lowercases_and_hyphenates():
    """Surrounding whitespace goes, inner whitespace runs become one hyphen."""
    assert slugify("  Cozy Fantasy  ") == "cozy-fantasy"
    assert slugify("Sci Fi\t\nClassics") == "sci-fi-classics"
    assert slugify("Horror") == "horror"


def test_book_from_document_applies_defaults():
    """A bare document gets every default."""
    book = Book.from_document("b1", {})

    assert book.id == "b1"
    assert book.title == "Unknown Title"
    assert book.author == "Unknown Author"
    assert book.summary == "No summary available."
    assert book.status == "to-read"
    assert book.rating == 0
    assert book.categories == []
    assert book.is_public is False


def test_book_from_document_repairs_bad_fields():
    """Unknown status falls back to to-read and duplicate categories collapse."""
    book = Book.from_document("b1", {
        "status": "abandoned",
        "categories": ["scifi", "fantasy", "scifi"],
        "isPublic": True,
        "rating": None,
    })

    assert book.status == "to-read"
    assert book.categories == ["scifi", "fantasy"]
    assert book.is_public is True
    assert book.rating == 0


def test_book_document_round_trip_keeps_membership():
    """to_document/from_document preserve status and categories."""
    original = Book(id="b2", title="Dune", status="completed", rating=4, categories=["scifi"])

    restored = Book.from_document("b2", original.to_document())

    assert restored == original


def test_rating_label():
    assert Book(id="x", rating=0).rating_label == ""
    assert Book(id="x", rating=1).rating_label == "Terrible"
    assert Book(id="x", rating=3.5).rating_label == "Average"
    assert Book(id="x", rating=5).rating_label == "Excellent"


def test_validate_rating_accepts_half_steps():
    assert validate_rating(4.5) == 4.5
    assert validate_rating(0) == 0


@pytest.mark.parametrize("value", [-1, 5.5, 3.3])
def test_validate_rating_rejects(value):
    with pytest.raises(ValueError):
        validate_rating(value)


def test_validate_status():
    assert validate_status("in-progress") == "in-progress"
    with pytest.raises(ValueError):
        validate_status("reading")


def test_category_name_falls_back_to_id():
    assert Category.from_document("scifi", {}).name == "scifi"


def test_catalog_book_to_book():
    """A catalog selection becomes a library book with the chosen status."""
    candidate = CatalogBook("v1", "Dune", "Frank Herbert", None, "Spice.", "1965")

    book = candidate.to_book(status="completed", rating=5, categories=["scifi", "scifi"])

    assert book.id == "v1"
    assert book.status == "completed"
    assert book.rating == 5
    assert book.categories == ["scifi"]
    assert book.year == "1965"
