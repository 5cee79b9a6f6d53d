"""
init_db.py — One-time database initialization script.

Run this once to:
  1. Create all tables via SQLAlchemy
  2. Seed the default portfolio (code 1, "Main Portfolio")

Reference buckets are not seeded: they are created by the first allocation
in each portfolio.

Usage:
    python scripts/init_db.py
"""

import sys
import os

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

from flask import Flask
from config import get_config
from database import db, init_db
from models import Portfolio
from utils.portfolio import DEFAULT_PORTFOLIO_CODE, DEFAULT_PORTFOLIO_NAME


def create_app():
    app = Flask(__name__)
    app.config.from_object(get_config())
    return app


def seed_default_portfolio():
    """Insert the default portfolio if no portfolio exists yet."""
    if Portfolio.query.count():
        print("[SEED] Portfolios already exist — skipping seed.")
        return

    db.session.add(Portfolio(
        code=DEFAULT_PORTFOLIO_CODE,
        name=DEFAULT_PORTFOLIO_NAME,
        description="Default client portfolio",
    ))
    db.session.commit()
    print(f"[SEED] Portfolio {DEFAULT_PORTFOLIO_CODE} ({DEFAULT_PORTFOLIO_NAME}) created.")


def main():
    print("=" * 60)
    print(" Practice Manager — Database Initialisation")
    print("=" * 60)

    app = create_app()

    print("[DB] Creating all tables...")
    init_db(app)
    print("[DB] Tables created.")

    with app.app_context():
        seed_default_portfolio()

    print("=" * 60)
    print(" Database initialisation complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
