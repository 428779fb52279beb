import logging
import sqlite3
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.app import crud
from backend.app.db import get_conn
from backend.app.errors import ok
from backend.app.models import ProductCreate, ProductUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
def create_product(body: ProductCreate, conn: sqlite3.Connection = Depends(get_conn)):
    if crud.get_product(conn, body.product_id):
        raise HTTPException(status_code=409, detail="Product already exists")

    data = body.model_dump(exclude_none=True)
    if body.image_url is not None:
        data["image_url"] = str(body.image_url)
    if body.metadata is not None:
        data["metadata"] = body.metadata.model_dump(by_alias=True, exclude_none=True)

    product = crud.create_product(conn, data)
    logger.info("Created product %s", body.product_id)
    return ok(product, "Product created successfully")


@router.get("")
def list_products(
    product_id: Optional[str] = Query(None, alias="productId"),
    category: Optional[str] = Query(None),
    store_id: Optional[str] = Query(None, alias="storeId"),
    featured: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    conn: sqlite3.Connection = Depends(get_conn),
):
    rows, total = crud.list_products(
        conn,
        product_id=product_id,
        category=category,
        store_id=store_id,
        featured=featured,
        limit=limit,
        offset=offset,
    )
    if product_id and len(rows) == 1:
        return ok(rows[0])
    return ok(rows, pagination={"limit": limit, "offset": offset, "total": total})


@router.put("")
def update_product(
    body: ProductUpdate,
    product_id: Optional[str] = Query(None, alias="productId"),
    conn: sqlite3.Connection = Depends(get_conn),
):
    if not product_id:
        raise HTTPException(status_code=400, detail="productId is required")

    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    if body.image_url is not None:
        fields["image_url"] = str(body.image_url)
    if body.metadata is not None:
        fields["metadata"] = body.metadata.model_dump(by_alias=True, exclude_none=True)

    product = crud.update_product(conn, product_id, fields)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return ok(product, "Product updated successfully")


@router.delete("")
def delete_product(
    product_id: Optional[str] = Query(None, alias="productId"),
    conn: sqlite3.Connection = Depends(get_conn),
):
    if not product_id:
        raise HTTPException(status_code=400, detail="productId is required")
    if not crud.delete_product(conn, product_id):
        raise HTTPException(status_code=404, detail="Product not found")
    logger.info("Deleted product %s", product_id)
    return ok(message="Product deleted successfully")
