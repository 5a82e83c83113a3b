#!/usr/bin/env python3
"""
Seed the product table so orders can reference products by id or slug.

Usage:
  python scripts/seed_products.py [--db data/orders.db]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

SERVICE_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(SERVICE_ROOT))

from app.config import settings
from app.core.orders import OrderRepository

PRODUCTS = [
    ("classic-hoodie", "Classic Hoodie", 49.99),
    ("premium-hoodie", "Premium Hoodie", 69.99),
    ("zip-hoodie", "Zip Hoodie", 59.99),
]


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed products")
    parser.add_argument("--db", default=str(settings.database_path), help="sqlite database path")
    args = parser.parse_args()

    repo = OrderRepository(Path(args.db))
    try:
        for slug, name, price in PRODUCTS:
            existing = repo.find_product(slug)
            if existing is not None:
                print(f"  exists: {slug} ({existing.id})")
                continue
            product = repo.add_product(slug=slug, name=name, price=price)
            print(f"  added:  {slug} ({product.id})")
    finally:
        repo.close()


if __name__ == "__main__":
    main()
