"""
Public storefront router: catalog, progress, story and guestbook.
No authentication required.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from enxoval_api.services.domain import (
    CategoryService,
    ContentService,
    MessageService,
    ProductService,
    StatsService,
)
from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    CategoryOutput,
    GuestbookMessageInput,
    GuestbookMessageOutput,
    ProductOutput,
    ProgressOutput,
    StoryOutput,
)


router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/products", response_model=list[ProductOutput])
def list_products(
    category_id: Optional[int] = None,
    db: Session = Depends(get_db),
) -> list[ProductOutput]:
    """
    Active products with their category, ordered by category then name.

    ``remaining`` and ``max_per_order`` tell the storefront how many units
    a guest may still add to the cart.
    """
    return ProductService(db).list_public(category_id)


@router.get("/categories", response_model=list[CategoryOutput])
def list_categories(db: Session = Depends(get_db)) -> list[CategoryOutput]:
    return CategoryService(db).list_ordered()


@router.get("/progress", response_model=ProgressOutput)
def get_progress(db: Session = Depends(get_db)) -> ProgressOutput:
    """Raised amount against the campaign goal."""
    return StatsService(db).progress()


@router.get("/story", response_model=StoryOutput)
def get_story(db: Session = Depends(get_db)) -> StoryOutput:
    return ContentService(db).get_story()


@router.get("/messages", response_model=list[GuestbookMessageOutput])
def list_messages(db: Session = Depends(get_db)) -> list[GuestbookMessageOutput]:
    """Approved guestbook messages, newest first."""
    return MessageService(db).list_messages(approved=True)


@router.post("/messages", response_model=GuestbookMessageOutput, status_code=status.HTTP_201_CREATED)
def post_message(
    body: GuestbookMessageInput,
    db: Session = Depends(get_db),
) -> GuestbookMessageOutput:
    """Leave a message. It shows up once an admin approves it."""
    return MessageService(db).submit(body)
