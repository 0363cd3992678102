"""
Seed the database with demo users and listings.

Run with ``python -m campus_market.seed``. Existing users (by email) and
listings (by title) are left alone, so the command can be re-run safely.
"""
import logging

from sqlmodel import select

from campus_market import storage
from campus_market.auth.auth_handler import hash_password
from campus_market.db import create_db_and_tables, get_session
from campus_market.models.listing_db import Listing

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    {"username": "admin", "email": "admin@campusmarket.com", "display_name": "Admin User",
     "bio": "System administrator", "campus": "Main Campus", "is_admin": True},
    {"username": "janesmith", "email": "jane@campus.edu", "display_name": "Jane Smith",
     "avatar": "https://randomuser.me/api/portraits/women/44.jpg"},
    {"username": "mikebrown", "email": "mike@campus.edu", "display_name": "Mike Brown",
     "avatar": "https://randomuser.me/api/portraits/men/32.jpg"},
    {"username": "sarahlee", "email": "sarah@campus.edu", "display_name": "Sarah Lee",
     "avatar": "https://randomuser.me/api/portraits/women/67.jpg"},
    {"username": "alexjohnson", "email": "alex@campus.edu", "display_name": "Alex Johnson",
     "avatar": "https://randomuser.me/api/portraits/men/91.jpg"},
]

# (title, description, price, seller email, condition, location, category slug, urgent)
DEMO_LISTINGS = [
    ("Organic Chemistry Complete Notes",
     "Comprehensive notes for Organic Chemistry 101 covering reactions, mechanisms and nomenclature.",
     35, "jane@campus.edu", "like-new", "Science Building", "lecture-notes", False),
    ("Calculus II Study Guide with Examples",
     "Step-by-step examples, all theorems and practice problems. Perfect for final exam preparation.",
     25, "mike@campus.edu", "good", "Math Department", "lecture-notes", True),
    ("Campbell Biology 12th Edition",
     "Excellent condition, minimal highlighting. Includes access code for online resources.",
     75, "sarah@campus.edu", "like-new", "Science Library", "textbooks", True),
    ("Introduction to Algorithms - Cormen",
     "Third edition in good condition with some highlighting in important sections.",
     60, "jane@campus.edu", "good", "Computer Science Building", "textbooks", False),
    ("IKEA Study Desk",
     "Sturdy white desk with a drawer. Easy to disassemble for moving.",
     45, "alex@campus.edu", "good", "West Campus Apartments", "furniture", True),
    ("Ergonomic Office Chair",
     "Adjustable height and lumbar support. Barely used.",
     50, "mike@campus.edu", "like-new", "Graduate Housing", "furniture", False),
    ("TI-84 Plus Graphing Calculator",
     "Works perfectly, comes with a cover and new batteries.",
     70, "sarah@campus.edu", "good", "Engineering Building", "electronics", False),
    ("Noise Cancelling Headphones",
     "Great for studying in the library. Includes case and charging cable.",
     90, "alex@campus.edu", "like-new", "Student Center", "electronics", True),
    ("Mini Fridge",
     "3.2 cubic feet, perfect for a dorm room. Clean and working well.",
     55, "jane@campus.edu", "good", "North Campus Dorms", "dorm-essentials", True),
    ("Desk Lamp with USB Port",
     "LED lamp with three brightness levels and a USB charging port.",
     15, "sarah@campus.edu", "new", "South Campus Dorms", "dorm-essentials", False),
]


def seed_database():
    create_db_and_tables()

    with get_session() as session:
        user_ids = {}
        for data in DEMO_USERS:
            user = storage.get_user_by_email(session, data["email"])
            if user is None:
                user = storage.create_user(session, hashed_password=hash_password(DEMO_PASSWORD), **data)
            user_ids[user.email] = user.id

        categories = {c.slug: c.id for c in storage.get_categories(session)}

        added = 0
        for title, description, price, email, condition, location, slug, urgent in DEMO_LISTINGS:
            if session.exec(select(Listing).where(Listing.title == title)).first():
                continue
            if slug not in categories or email not in user_ids:
                logger.warning("Skipping %r: unknown category or seller", title)
                continue
            storage.create_listing(
                session,
                {
                    "title": title,
                    "description": description,
                    "price": price,
                    "condition": condition,
                    "location": location,
                    "category_id": categories[slug],
                    "is_urgent": urgent,
                },
                user_ids[email],
                images=[],
                attachments=[],
            )
            added += 1

    logger.info("Added %d new listings", added)
    return added


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    seed_database()
