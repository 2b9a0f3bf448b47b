"""
Demo supplier registry data for development ONLY.
"""
from decimal import Decimal

from app.core.logging import get_logger
from app.db.session import get_db_context
from app.db.models import Supplier

logger = get_logger(__name__)

# name, CVR, email, service categories, quality rating, price rating
DEMO_SUPPLIERS = [
    ("Nordic Facility Services", "DK10000001", "tender@nordicfs.example.com", ["cleaning", "hvac"], "4.2", "3.8"),
    ("Baltic HVAC ApS", "DK10000002", "sales@baltichvac.example.com", ["hvac"], "3.9", "4.1"),
    ("Kattegat Elevator Service", "DK10000003", "bids@kattegatlift.example.com", ["elevators"], "4.5", "3.2"),
    ("Fyn Fire Safety", "DK10000004", "quotes@fynfire.example.com", ["fire_safety"], "4.0", "4.0"),
    ("Jutland Ground Care", "DK10000005", "info@jutlandgc.example.com", ["grounds", "cleaning"], "3.6", "4.4"),
]


def seed_demo_suppliers() -> int:
    """
    Insert demo suppliers if the registry is empty.

    Returns:
        Number of suppliers created (0 when data already exists)
    """
    with get_db_context() as db:
        if db.query(Supplier).first():
            logger.info("Demo suppliers already exist. Skipping...")
            return 0

        for name, cvr, email, categories, quality, price in DEMO_SUPPLIERS:
            db.add(Supplier(
                name=name,
                cvr_number=cvr,
                email=email,
                categories=categories,
                quality_rating=Decimal(quality),
                price_rating=Decimal(price),
                is_active=True,
            ))

    logger.info(f"Demo data seeded: {len(DEMO_SUPPLIERS)} suppliers")
    return len(DEMO_SUPPLIERS)
