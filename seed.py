import logging

from accounts import hash_password
from system import BookRentalSystem
from timeutil import to_store

logger = logging.getLogger("bookrental.seed")

DEMO_ACCOUNTS = {
    "admin": {"name": "Admin", "email": "admin@brs.com", "password": "admin123", "address": "HQ", "phone": "01900000000"},
    "user": {"name": "Test User", "email": "user@brs.com", "password": "user123", "address": "Dhaka", "phone": "01700000000"},
}

SAMPLE_BOOKS = [
    ("Clean Code", "Robert C. Martin"),
    ("The Pragmatic Programmer", "Andrew Hunt"),
    ("You Don't Know JS", "Kyle Simpson"),
    ("Eloquent JavaScript", "Marijn Haverbeke"),
    ("Design Patterns", "GoF"),
    ("Refactoring", "Martin Fowler"),
    ("JavaScript Patterns", "Stoyan Stefanov"),
    ("Cracking the Coding Interview", "Gayle Laakmann"),
    ("Deep Work", "Cal Newport"),
    ("Atomic Habits", "James Clear"),
]


def seed_demo_data(system: BookRentalSystem) -> dict:
    """Create demo accounts, sample books and the settings row when missing."""
    users = system.db["user"]
    for role, account in DEMO_ACCOUNTS.items():
        if users.find_one({"email": account["email"]}):
            continue
        users.insert_one({
            "name": account["name"],
            "email": account["email"],
            "password": hash_password(account["password"]),
            "role": role,
            "address": account["address"],
            "phone": account["phone"],
            "created_at": to_store(system.clock()),
        })

    books = system.db["book"]
    added = 0
    for title, author in SAMPLE_BOOKS:
        if not books.find_one({"title": title}):
            system.add_book(title, author, stock=3)
            added += 1

    system.get_late_fee_rate()
    logger.info("Seeded demo data | books_added=%d", added)
    return {
        "message": "Seeded: admin/user + books + settings",
        "demo_accounts": {role: {"email": a["email"], "password": a["password"]} for role, a in DEMO_ACCOUNTS.items()},
    }
