"""
Seed demo data for sourcing walkthroughs.
Creates demo suppliers and one RFQ benchmarked across three quotes.
Run: python -m scripts.seed_demo_data
"""
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.session import SessionLocal
from app.db.seed import seed_demo_suppliers
from app.db.models import Supplier
from app.services import sourcing


def seed_demo_data():
    """Create demo data for verification."""
    seed_demo_suppliers()

    db = SessionLocal()
    try:
        suppliers = db.query(Supplier).order_by(Supplier.id).limit(3).all()
        if len(suppliers) < 3:
            print("Need at least 3 suppliers to build the demo RFQ")
            return

        rfq = sourcing.create_rfq(
            db,
            title="Annual HVAC maintenance - HQ campus",
            description="Quarterly preventive maintenance of air handling units",
            customer_ref="CUST-DEMO",
            category_ref="hvac",
        )
        print(f"Created RFQ: {rfq.rfq_number} (ID: {rfq.id})")

        for supplier in suppliers:
            sourcing.invite_supplier(db, rfq.id, supplier.id)
        sourcing.send_rfq(db, rfq.id)

        bids = [
            (suppliers[0], 100000, 80, 10, 70, 70),
            (suppliers[1], 90000, 60, 20, 60, 60),
            (suppliers[2], 120000, 90, 5, 90, 90),
        ]
        for supplier, price, quality, days, compliance, esg in bids:
            sourcing.submit_quote(
                db, rfq.id, supplier.id,
                total_price=price,
                quality_score=quality,
                delivery_days=days,
                compliance_score=compliance,
                esg_score=esg,
            )

        for quote in sourcing.calculate_benchmarks(db, rfq.id):
            print(f"  #{quote.overall_rank} {quote.quote_number} supplier={quote.supplier_id} "
                  f"score={quote.benchmark_score} price_rank={quote.price_rank}")
    finally:
        db.close()


if __name__ == "__main__":
    seed_demo_data()
