"""
Books API routes.
"""
import logging
from typing import List

from fastapi import APIRouter, HTTPException, Response

from api.schemas import BookCreate, BookResponse, BookUpdate
from db import SessionLocal
from domain.models import Book
from repositories import BooksRepository
from repositories.books import REQUIRED_BOOK_FIELDS

router = APIRouter()
books_repo = BooksRepository()
logger = logging.getLogger(__name__)


def book_to_response(book: Book) -> BookResponse:
    """Convert domain Book to API response."""
    return BookResponse.model_validate(book)


def _update_fields(data: BookUpdate) -> dict:
    updates = data.model_dump(exclude_unset=True)
    for name, value in updates.items():
        if value is None and name in REQUIRED_BOOK_FIELDS:
            raise HTTPException(status_code=400, detail=f"{name} cannot be null")
    return updates


@router.get("", response_model=List[BookResponse])
def list_books():
    with SessionLocal() as session:
        return [book_to_response(b) for b in books_repo.list_books(session)]


@router.get("/{book_id}", response_model=BookResponse)
def get_book(book_id: int):
    with SessionLocal() as session:
        book = books_repo.get_book(session, book_id)
        if not book:
            raise HTTPException(status_code=404, detail="Book not found")
        return book_to_response(book)


@router.post("", response_model=BookResponse, status_code=201)
def create_book(data: BookCreate):
    with SessionLocal() as session:
        book = books_repo.create_book(session, data.model_dump())
    logger.info("Created book %s (%r)", book.id, book.title)
    return book_to_response(book)


@router.put("/{book_id}", response_model=BookResponse)
def update_book(book_id: int, data: BookUpdate):
    updates = _update_fields(data)
    with SessionLocal() as session:
        book = books_repo.update_book(session, book_id, updates)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book_to_response(book)


@router.delete("/{book_id}", status_code=204)
def delete_book(book_id: int):
    """Delete a book together with its chapters and story state."""
    with SessionLocal() as session:
        deleted = books_repo.delete_book(session, book_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Book not found")
    logger.info("Deleted book %s", book_id)
    return Response(status_code=204)
