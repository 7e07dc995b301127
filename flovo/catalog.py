"""Product catalog loader and inventory rendering.

Loads the shop's products from a JSON file into Product records and renders the
pre-formatted inventory text the prompt embeds, one product per line.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger("flovo.catalog")


@dataclass
class Product:
    """Normalized view of a catalog record with schema-driven extra fields."""
    id: str
    name: str
    price: Any
    currency: str = "USD"
    quantity: Optional[int] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    images: List[str] = field(default_factory=list)


class CatalogLoader:
    def __init__(self, path: Path) -> None:
        """Purpose: Configure the loader with a catalog file path.
        Inputs/Outputs: Input is a Path to products.json; no return value.
        Side Effects / State: Stores the path for later load calls.
        Dependencies: None beyond Path usage.
        Failure Modes: None at init; load() handles read/parse errors.
        If Removed: The pipeline cannot build inventory context.
        Testing Notes: Instantiate with a temp path and call load().
        """
        self._path = path

    def load(self) -> List[Product]:
        """Purpose: Load and normalize products from the catalog file.
        Inputs/Outputs: No inputs; returns a list of Product.
        Side Effects / State: Reads the file on every call so edits show up live.
        Dependencies: json and _to_product.
        Failure Modes: A missing or undecodable file yields an empty list and a
            warning; nothing is raised to the caller.
        If Removed: The prompt always reports an empty inventory.
        Testing Notes: Accept both a bare list and {"items": [...]}.
        """
        if not self._path.exists():
            logger.warning("catalog file=%s missing, inventory is empty", self._path)
            return []
        try:
            data = json.loads(self._path.read_bytes().decode("utf-8-sig"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("catalog file=%s unreadable, inventory is empty error=%s", self._path, exc)
            return []
        records: List[Any]
        if isinstance(data, dict):
            records = data.get("items", [])
        elif isinstance(data, list):
            records = data
        else:
            records = []
        products = [_to_product(record) for record in records if isinstance(record, dict)]
        logger.info("catalog file=%s products=%d", self._path.name, len(products))
        return products


def _to_product(record: Dict[str, Any]) -> Product:
    images: List[str] = []
    for image in record.get("images") or []:
        # Images are either plain keys/URLs or {"key": ..., "url": ...} objects.
        if isinstance(image, str):
            images.append(image)
        elif isinstance(image, dict):
            value = image.get("url") or image.get("key")
            if value:
                images.append(str(value))
    quantity = record.get("quantity")
    return Product(
        id=str(record.get("id", "")),
        name=str(record.get("name", "")).strip(),
        price=record.get("price", ""),
        currency=str(record.get("currency") or "USD"),
        quantity=quantity if isinstance(quantity, int) else None,
        fields=dict(record.get("fields") or {}),
        images=images,
    )


def format_field_value(value: Any) -> str:
    """Purpose: Render one schema field value for the inventory line.
    Inputs/Outputs: Input is a raw field value; output is its display string.
    Side Effects / State: None.
    Dependencies: None.
    Failure Modes: Unknown types fall back to str().
    If Removed: Booleans, dates and file fields render as Python reprs.
    Testing Notes: Booleans become true/false, dates ISO, files their name or url.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        # FILE/IMAGE fields carry file metadata.
        return str(value.get("fileName") or value.get("url") or "file")
    if isinstance(value, list):
        return ", ".join(str(item) for item in value)
    if value is None:
        return "null"
    return str(value)


def render_product_line(product: Product) -> str:
    fields = ", ".join(f"{name}: {format_field_value(value)}" for name, value in product.fields.items())
    line = (
        f"Product ID: {product.id} | Name: {product.name} | Price: {product.price} {product.currency} "
        f"| Qty: {product.quantity or 1} | Fields: {{{fields}}}"
    )
    if product.images:
        line += f" | Images: [{', '.join(product.images)}]"
    return line


def render_inventory(products: List[Product]) -> Optional[str]:
    """Render the inventory block; None when there are no products so the prompt
    shows its no-products text."""
    if not products:
        return None
    return "\n".join(render_product_line(product) for product in products)
