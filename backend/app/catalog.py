"""Demo catalogue, used whenever the products table has nothing to offer."""

from typing import Any, Dict, List, Optional

from backend.app.models import Product


SAMPLE_PRODUCTS: List[Product] = [
    Product(
        product_id="prod_1",
        name="Wireless Bluetooth Headphones",
        description="Premium noise-cancelling wireless headphones with 30-hour battery life.",
        price=199.99,
        category="Electronics",
        brand="AudioTech",
        image_url="https://images.unsplash.com/photo-1505740420928-5e560c06d30e?w=400",
        in_stock=True,
        tags=["wireless", "bluetooth", "noise-cancelling"],
    ),
    Product(
        product_id="prod_2",
        name="Organic Cotton T-Shirt",
        description="Comfortable, sustainable organic cotton t-shirt in multiple colors.",
        price=29.99,
        category="Clothing",
        brand="EcoWear",
        image_url="https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?w=400",
        in_stock=True,
        tags=["organic", "cotton", "sustainable"],
    ),
    Product(
        product_id="prod_3",
        name="Smart Home Security Camera",
        description="1080p HD security camera with night vision and mobile app control.",
        price=89.99,
        category="Electronics",
        brand="SecureHome",
        image_url="https://images.unsplash.com/photo-1558618666-fcd25c85cd64?w=400",
        in_stock=True,
        tags=["smart", "security", "camera", "1080p"],
    ),
    Product(
        product_id="prod_4",
        name="Yoga Mat Premium",
        description="Non-slip premium yoga mat with alignment guides and carrying strap.",
        price=49.99,
        category="Sports & Outdoors",
        brand="ZenFit",
        image_url="https://images.unsplash.com/photo-1544367567-0f2fcb009e0b?w=400",
        in_stock=True,
        tags=["yoga", "fitness", "non-slip", "premium"],
    ),
]


def find_sample_product(product_id: Optional[str]) -> Optional[Product]:
    for p in SAMPLE_PRODUCTS:
        if p.product_id == product_id:
            return p
    return None


def product_from_row(row: Dict[str, Any]) -> Product:
    metadata = row.get("metadata") or {}
    inventory = metadata.get("inventory")
    return Product(
        product_id=row["product_id"],
        name=row["name"],
        description=row.get("description") or "",
        price=float(row["price"]),
        category=row["category"],
        brand=metadata.get("brand"),
        image_url=row.get("image_url"),
        in_stock=inventory is None or int(inventory) > 0,
        tags=list(metadata.get("tags") or []),
    )
