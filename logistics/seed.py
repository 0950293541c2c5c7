# logistics/seed.py
"""
Sample data for a fresh database.

Five customers and five orders are written in a single transaction, and
only when the customers table is empty.
"""

import logging
from datetime import date, timedelta

from logistics.database import Database, DatabaseUnavailableError

logger = logging.getLogger(__name__)

SAMPLE_CUSTOMERS = [
    ("Dupont", "Jean", "jean.dupont@email.com", "0123456789", "123 Rue de la Paix", "Paris", "75001", "ACTIVE"),
    ("Martin", "Marie", "marie.martin@email.com", "0234567890", "456 Avenue des Champs", "Lyon", "69001", "ACTIVE"),
    ("Bernard", "Pierre", "pierre.bernard@email.com", "0345678901", "789 Boulevard Saint-Michel", "Marseille", "13001", "ACTIVE"),
    ("Dubois", "Sophie", "sophie.dubois@email.com", "0456789012", "321 Rue Victor Hugo", "Toulouse", "31000", "ACTIVE"),
    ("Moreau", "Paul", "paul.moreau@email.com", "0567890123", "654 Place de la République", "Nice", "06000", "INACTIVE"),
]

# (customer email, ordered_at offset, requested offset, address, city, postal code,
#  status, priority, weight, volume, price, comments)
SAMPLE_ORDERS = [
    ("jean.dupont@email.com", 0, 2, "123 Rue de la Paix", "Paris", "75001",
     "PREPARING", "HIGH", 15.5, 0.8, 89.99, "Urgent delivery"),
    ("marie.martin@email.com", -1, 1, "456 Avenue des Champs", "Lyon", "69001",
     "IN_TRANSIT", "NORMAL", 8.2, 0.4, 45.50, None),
    ("pierre.bernard@email.com", -2, 0, "789 Boulevard Saint-Michel", "Marseille", "13001",
     "DELIVERED", "LOW", 22.1, 1.2, 156.75, "Delivered"),
    ("jean.dupont@email.com", 0, 3, "987 Rue Neuve", "Paris", "75002",
     "CONFIRMED", "NORMAL", 5.8, 0.3, 32.20, "Second order"),
    ("sophie.dubois@email.com", -3, -1, "321 Rue Victor Hugo", "Toulouse", "31000",
     "CANCELLED", "URGENT", 0.0, 0.0, 0.0, "CANCELLED: cancelled by the customer"),
]

INSERT_CUSTOMER = """
    INSERT INTO customers (name, surname, email, phone, address, city, postal_code, created_at, status)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

INSERT_ORDER = """
    INSERT INTO orders (customer_id, order_number, ordered_at, requested_delivery_at, delivered_at,
                        delivery_address, delivery_city, delivery_postal_code,
                        status, priority, weight_total, volume_total, price_total, comments)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


class SeedError(RuntimeError):
    """A sample row could not be written."""


def seed_sample_data(db: Database, today: date | None = None) -> bool:
    """
    Insert the sample customers and orders into an empty database.

    Returns True when data was inserted, False when the database already
    had customers or the insert was rolled back.
    """
    existing = db.fetch_scalar("SELECT COUNT(*) FROM customers")
    if existing is None:
        logger.warning("Cannot inspect customers table: %s", db.last_error)
        return False
    if int(existing) > 0:
        logger.info("Sample data skipped: %s customers already present", existing)
        return False

    today = today or date.today()
    customer_insert = db.prepare(INSERT_CUSTOMER)
    order_insert = db.prepare(INSERT_ORDER)

    try:
        with db.transaction():
            for row in SAMPLE_CUSTOMERS:
                if not db.execute(customer_insert, (*row[:7], today.isoformat(), row[7])):
                    raise SeedError(f"customer {row[2]}: {db.last_error}")

            ids = {
                row["email"]: row["id"]
                for row in db.fetch_all("SELECT id, email FROM customers")
            }

            for index, row in enumerate(SAMPLE_ORDERS):
                email, ordered, requested, *delivery, status, priority, weight, volume, price, comments = row
                ordered_at = today + timedelta(days=ordered)
                requested_at = today + timedelta(days=requested)
                delivered_at = requested_at.isoformat() if status == "DELIVERED" else None
                customer_id = ids.get(email)
                if customer_id is None:
                    raise SeedError(f"no sample customer with email {email}")
                params = (
                    customer_id,
                    f"CMD-{today.year}-{1000 + index:06d}",
                    ordered_at.isoformat(),
                    requested_at.isoformat(),
                    delivered_at,
                    *delivery,
                    status,
                    priority,
                    weight,
                    volume,
                    price,
                    comments,
                )
                if not db.execute(order_insert, params):
                    raise SeedError(f"order {params[1]}: {db.last_error}")
    except (SeedError, DatabaseUnavailableError) as e:
        logger.error("Sample data rolled back: %s", e)
        return False

    logger.info(
        "Sample data inserted: %d customers, %d orders",
        len(SAMPLE_CUSTOMERS),
        len(SAMPLE_ORDERS),
    )
    return True
