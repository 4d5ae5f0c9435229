#!/usr/bin/env python
"""Seed categories and products from a JSON file.

Example:
    python -m scripts.seed_catalog data/catalog.example.json
    python -m scripts.seed_catalog data/catalog.example.json --replace

File layout::

    {"categories": [{"name": "Men's clothing", "emoji": "👨‍💼",
                     "products": ["Jeans", "Shirt"]}]}
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from manifest_bot.config import get_settings
from manifest_bot.db import create_tables, get_engine_and_session
from manifest_bot.models import Category, Product


def _load(path: Path) -> List[Dict[str, Any]]:
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    return data.get("categories", [])


async def seed(session: AsyncSession, categories: List[Dict[str, Any]], replace: bool = False) -> int:
    """Insert missing categories/products; returns the number of products added."""
    if replace:
        await session.execute(delete(Product))
        await session.execute(delete(Category))

    added = 0
    for raw in categories:
        result = await session.execute(select(Category).where(Category.name == raw["name"]))
        category = result.scalar_one_or_none()
        if category is None:
            category = Category(name=raw["name"], emoji=raw.get("emoji", ""))
            session.add(category)
            await session.flush()

        result = await session.execute(select(Product.name).where(Product.category_id == category.id))
        existing = set(result.scalars().all())
        for name in raw.get("products", []):
            if name in existing:
                continue
            session.add(Product(name=name, category_id=category.id))
            existing.add(name)
            added += 1
    await session.commit()
    return added


async def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("json_path", type=Path)
    parser.add_argument("--replace", action="store_true", help="delete the current catalog first")
    args = parser.parse_args()

    engine, session_factory = get_engine_and_session(get_settings().database_url)
    await create_tables(engine)
    async with session_factory() as session:
        added = await seed(session, _load(args.json_path), replace=args.replace)
    await engine.dispose()
    print(f"✓ inserted {added} products")


if __name__ == "__main__":
    asyncio.run(main())
