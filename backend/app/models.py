from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AnyUrl, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


InteractionType = Literal[
    "view", "like", "scan", "purchase", "recommendation", "offer_view", "share", "add_to_cart",
]
RecommendationContext = Literal["in_store", "follow_up", "display"]
OfferType = Literal["discount", "bogo", "free_shipping", "loyalty_points"]
OfferStatus = Literal["sent", "viewed", "redeemed", "expired"]
PaymentMethod = Literal["cash", "card", "crypto"]
FrameType = Literal["product_recommendation", "offer_notification", "display_greeting"]


class ApiModel(BaseModel):
    # request bodies use camelCase, python attributes use snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Users

class FarcasterProfile(ApiModel):
    fid: Optional[int] = None
    username: Optional[str] = None
    display_name: Optional[str] = None
    pfp_url: Optional[str] = None
    bio: Optional[str] = None


class PriceRange(ApiModel):
    min: Optional[float] = None
    max: Optional[float] = None


class Preferences(ApiModel):
    categories: Optional[List[str]] = None
    price_range: Optional[PriceRange] = None
    brands: Optional[List[str]] = None
    notifications: Optional[bool] = None


DEFAULT_PREFERENCES: Dict[str, Any] = {
    "categories": [],
    "priceRange": {"min": 0, "max": 1000},
    "notifications": True,
}


class UserCreate(ApiModel):
    user_id: str = Field(..., min_length=1)
    farcaster_profile: Optional[FarcasterProfile] = None
    preferences: Optional[Preferences] = None


class UserUpdate(ApiModel):
    farcaster_profile: Optional[FarcasterProfile] = None
    preferences: Optional[Preferences] = None
    purchase_history: Optional[List[Any]] = None
    interaction_log: Optional[List[Any]] = None


# Products

class ProductMetadata(ApiModel):
    tags: Optional[List[str]] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    inventory: Optional[int] = None
    featured: Optional[bool] = None


class ProductCreate(ApiModel):
    product_id: str = Field(..., min_length=1)
    name: str
    description: str
    price: float = Field(..., gt=0)
    category: str
    image_url: Optional[AnyUrl] = None
    store_id: Optional[str] = None
    metadata: Optional[ProductMetadata] = None


class ProductUpdate(ApiModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, gt=0)
    category: Optional[str] = None
    image_url: Optional[AnyUrl] = None
    metadata: Optional[ProductMetadata] = None


class Product(ApiModel):
    """Product shape the recommenders and frames work with."""

    product_id: str
    name: str
    description: str = ""
    price: float
    category: str
    brand: Optional[str] = None
    image_url: Optional[str] = None
    in_stock: bool = True
    tags: List[str] = Field(default_factory=list)


# Interactions

class InteractionMetadata(ApiModel):
    # storeId, scanType etc. are passed through untouched
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    duration: Optional[float] = None
    source: Optional[str] = None
    context: Optional[str] = None
    value: Optional[float] = None
    additional_data: Optional[Any] = None


class InteractionCreate(ApiModel):
    user_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    type: InteractionType
    location: Optional[str] = None
    metadata: Optional[InteractionMetadata] = None


# Recommendations

class RecommendationRequest(ApiModel):
    user_id: str = Field(..., min_length=1)
    context: str = "in_store"
    current_location: Optional[str] = None
    location: Optional[str] = None
    store_id: Optional[str] = None
    recent_interactions: Optional[List[Dict[str, Any]]] = None
    purchase_history: Optional[List[Dict[str, Any]]] = None
    available_products: Optional[List[Product]] = None


class RecommendationOut(ApiModel):
    product: Product
    score: float
    reason: str


# Purchases / offers

class PurchaseData(ApiModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)
    total_amount: float = Field(..., ge=0)
    payment_method: PaymentMethod = "card"
    location: Optional[str] = None


class PurchaseCreate(PurchaseData):
    user_id: str = Field(..., min_length=1)


class OfferRequest(ApiModel):
    user_id: str = Field(..., min_length=1)
    purchase_data: PurchaseData
    user_profile: Optional[Dict[str, Any]] = None


class Offer(ApiModel):
    offer_id: str
    user_id: str
    product_id: Optional[str] = None
    type: OfferType
    title: str
    description: str
    discount: float = 0
    valid_until: datetime
    status: OfferStatus = "sent"
    created_at: datetime
    redeemed_at: Optional[datetime] = None


# Analytics

class AnalyticsEvent(ApiModel):
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)


# QR

class ScanRequest(ApiModel):
    qr_data: str = Field(..., min_length=1)
    user_id: str = "demo_user"
    context: RecommendationContext = "in_store"


# Frames

class FrameButton(ApiModel):
    label: str
    action: Literal["link", "post", "mint"]
    target: Optional[str] = None
    post_url: Optional[str] = None


class FrameContent(ApiModel):
    title: str
    description: str
    image_url: Optional[str] = None
    buttons: List[FrameButton] = Field(default_factory=list)


class FrameData(ApiModel):
    frame_id: str
    type: FrameType
    user_id: str
    content: FrameContent
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FrameAction(ApiModel):
    frame_id: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    product_id: Optional[str] = None
    offer_id: Optional[str] = None


# x402

class PaymentDemoRequest(ApiModel):
    # must point at this service; the spending cap always comes from settings
    url: Optional[str] = None
