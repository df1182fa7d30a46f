"""
Seed data for development and first deploys.

``seed`` only creates the singleton rows (goal, story, thank-you template)
with their defaults. ``seed_demo`` adds a small catalog so the storefront
has something to show; the CLI runs it with ``db-init --demo``.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from enxoval_api.models import CampaignSettings, Category, Product, StoryContent, ThankYouTemplate
from shared.config.constants import (
    DEFAULT_GOAL_CENTS,
    DEFAULT_STORY_CONTENT,
    DEFAULT_TEMPLATE_BODY,
    DEFAULT_TEMPLATE_SUBJECT,
    SINGLETON_ID,
)
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit

logger = get_logger(__name__)


DEMO_CATALOG = {
    "Roupinhas": [
        ("Body manga curta RN", 3990, 6),
        ("Macacão plush", 6990, 4),
        ("Kit meias (6 pares)", 4500, 2),
    ],
    "Higiene": [
        ("Pacote de fraldas P", 8990, 10),
        ("Lenços umedecidos", 2490, 8),
        ("Banheira com suporte", 18990, 1),
    ],
    "Quarto": [
        ("Jogo de lençol berço", 12990, 2),
        ("Mosquiteiro", 7990, 1),
    ],
}


def seed(db: Session) -> None:
    """
    Create missing singleton rows. Idempotent: existing rows are untouched.
    """
    created = []
    if db.get(CampaignSettings, SINGLETON_ID) is None:
        db.add(CampaignSettings(id=SINGLETON_ID, goal_cents=DEFAULT_GOAL_CENTS))
        created.append("campaign_settings")
    if db.get(StoryContent, SINGLETON_ID) is None:
        db.add(StoryContent(id=SINGLETON_ID, content=DEFAULT_STORY_CONTENT))
        created.append("story_content")
    if db.get(ThankYouTemplate, SINGLETON_ID) is None:
        db.add(
            ThankYouTemplate(
                id=SINGLETON_ID,
                subject=DEFAULT_TEMPLATE_SUBJECT,
                body_markdown=DEFAULT_TEMPLATE_BODY,
            )
        )
        created.append("thankyou_template")

    if created:
        safe_commit(db)
        logger.info("Singleton rows seeded", tables=created)


def seed_demo(db: Session) -> int:
    """
    Insert the demo catalog when there are no categories yet.

    Returns the number of products created.
    """
    if db.scalar(select(Category.id).limit(1)) is not None:
        logger.info("Catalog already has categories, skipping demo seed")
        return 0

    count = 0
    for position, (category_name, products) in enumerate(DEMO_CATALOG.items(), start=1):
        category = Category(name=category_name, sort_order=position)
        db.add(category)
        db.flush()
        for name, price_cents, target_qty in products:
            db.add(
                Product(
                    name=name,
                    price_cents=price_cents,
                    target_qty=target_qty,
                    category_id=category.id,
                )
            )
            count += 1

    safe_commit(db)
    logger.info("Demo catalog seeded", products=count)
    return count
