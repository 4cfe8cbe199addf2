from fastapi import APIRouter, Depends

from config.product_config import ProductConfig, current_product_config
from utils.responses import success_response

products_router = APIRouter(prefix="/api/products", tags=["products"])


@products_router.get("/config")
async def get_product_config(config: ProductConfig = Depends(current_product_config)):
    """Stripe product and price IDs for the pricing page"""
    return success_response(config.public_dict(), message="Product configuration retrieved")
