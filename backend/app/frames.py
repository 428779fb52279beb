"""Farcaster Frame payloads, the fc:frame HTML page, and the 1200x630 SVG cards."""

import logging
import os
import random
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from backend.app.models import FrameButton, FrameContent, FrameData, Product

logger = logging.getLogger(__name__)

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), "templates")

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "svg"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

IMAGE_TYPES = ("welcome", "recommendation", "product", "offer", "share", "error")
MAX_FRAME_BUTTONS = 4
MAX_IMAGE_MESSAGE = 100

GREETINGS = [
    "Welcome to our store! 🏪",
    "Great to see you again! 👋",
    "Hello, valued customer! ✨",
    "Welcome back! 🎉",
]

DEFAULT_PRODUCT_IMAGE = "https://images.unsplash.com/photo-1560472354-b33ff0c44a43?w=400&h=400&fit=crop"
OFFER_IMAGE = "https://images.unsplash.com/photo-1607083206869-4c7672e72a8a?w=400&h=400&fit=crop"
GREETING_IMAGE = "https://images.unsplash.com/photo-1441986300917-64674bd600d8?w=400&h=400&fit=crop"


def _stamp() -> int:
    return int(time.time() * 1000)


def _base(app_url: str) -> str:
    return app_url.rstrip("/")


def product_recommendation_frame(
    user_id: str, product: Product, score: float, app_url: str
) -> FrameData:
    base = _base(app_url)
    post_url = f"{base}/api/frames"
    return FrameData(
        frame_id=f"frame_rec_{user_id}_{_stamp()}",
        type="product_recommendation",
        user_id=user_id,
        content=FrameContent(
            title="✨ Perfect Match for You!",
            description=(
                f"{product.name} - {product.description}\n\n"
                f"💰 ${product.price}\n\n"
                "🎯 Recommended because it matches your preferences and shopping history."
            ),
            image_url=product.image_url or DEFAULT_PRODUCT_IMAGE,
            buttons=[
                FrameButton(label="👀 View Details", action="link", target=f"{base}/products/{product.product_id}"),
                FrameButton(label="🛒 Add to Cart", action="post", post_url=post_url),
                FrameButton(label="❤️ Like", action="post", post_url=post_url),
                FrameButton(label="🔄 More Recs", action="post", post_url=post_url),
            ],
        ),
        metadata={
            "productId": product.product_id,
            "recommendationScore": round(score, 4),
            "context": "in_store",
        },
    )


def sample_offer(user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    return {
        "offer_id": f"offer_{user_id}_{_stamp()}",
        "user_id": user_id,
        "type": "discount",
        "title": "🎉 Special Offer Just for You!",
        "description": "Thanks for being a valued customer! Enjoy 20% off your next purchase.",
        "discount": 20,
        "valid_until": (now + timedelta(days=7)).isoformat(),
        "status": "sent",
    }


def _format_valid_until(value: Any) -> str:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if isinstance(value, datetime):
        return value.strftime("%b %d, %Y")
    return str(value)


def offer_notification_frame(user_id: str, offer: Dict[str, Any], app_url: str) -> FrameData:
    base = _base(app_url)
    post_url = f"{base}/api/frames"
    discount = offer.get("discount") or 0
    discount_text = f"{discount:g}% OFF" if discount else "Exclusive perk"
    return FrameData(
        frame_id=f"frame_offer_{user_id}_{_stamp()}",
        type="offer_notification",
        user_id=user_id,
        content=FrameContent(
            title=offer["title"],
            description=(
                f"{offer['description']}\n\n"
                f"💸 {discount_text}\n"
                f"⏰ Valid until {_format_valid_until(offer.get('valid_until'))}\n\n"
                "Don't miss out on this exclusive deal!"
            ),
            image_url=OFFER_IMAGE,
            buttons=[
                FrameButton(label="🛍️ Shop Now", action="link", target=f"{base}/shop?offer={offer['offer_id']}"),
                FrameButton(label="📋 View Offer", action="post", post_url=post_url),
                FrameButton(label="📤 Share", action="post", post_url=post_url),
            ],
        ),
        metadata={
            "offerId": offer["offer_id"],
            "offerType": offer["type"],
            "discount": discount,
        },
    )


def display_greeting_frame(user_id: str, app_url: str, rng: Optional[random.Random] = None) -> FrameData:
    rng = rng or random.Random()
    base = _base(app_url)
    post_url = f"{base}/api/frames"
    return FrameData(
        frame_id=f"frame_greeting_{user_id}_{_stamp()}",
        type="display_greeting",
        user_id=user_id,
        content=FrameContent(
            title=rng.choice(GREETINGS),
            description=(
                "We've prepared personalized recommendations just for you based on your "
                "preferences and shopping history.\n\n🎯 Tap below to discover items you'll love!"
            ),
            image_url=GREETING_IMAGE,
            buttons=[
                FrameButton(label="✨ Get Recommendations", action="post", post_url=post_url),
                FrameButton(label="🏪 Browse Store", action="link", target=f"{base}/shop"),
                FrameButton(label="🎁 View Offers", action="post", post_url=post_url),
            ],
        ),
        metadata={"context": "display", "location": "store_entrance"},
    )


def frame_image_url(frame: FrameData, app_url: str) -> str:
    base = _base(app_url)
    if frame.type == "product_recommendation":
        return f"{base}/api/frames/image?type=recommendation&productId={frame.metadata.get('productId', '')}"
    if frame.type == "offer_notification":
        return f"{base}/api/frames/image?type=offer&offerId={frame.metadata.get('offerId', '')}"
    return f"{base}/api/frames/image?type=welcome"


def render_frame_html(frame: FrameData, app_url: str) -> str:
    """HTML page whose fc:frame meta tags make a cast render the frame."""
    buttons: List[FrameButton] = frame.content.buttons[:MAX_FRAME_BUTTONS]
    post_url = next((b.post_url for b in buttons if b.post_url), f"{_base(app_url)}/api/frames")
    return _env.get_template("frame.html").render(
        frame=frame,
        buttons=buttons,
        image_url=frame_image_url(frame, app_url),
        post_url=post_url,
    )


def _truncate(message: str, limit: int = MAX_IMAGE_MESSAGE) -> str:
    return message if len(message) <= limit else message[:limit] + "..."


def render_frame_image(
    image_type: str,
    *,
    product: Optional[Product] = None,
    product_id: Optional[str] = None,
    message: Optional[str] = None,
    offer: Optional[Dict[str, Any]] = None,
    offer_id: Optional[str] = None,
) -> str:
    if image_type not in IMAGE_TYPES:
        image_type = "welcome"

    context: Dict[str, Any] = {}
    if image_type == "recommendation":
        context = {
            "message": _truncate(message or "Here's a personalized recommendation for you!"),
            "product_id": product_id,
        }
    elif image_type == "product":
        context = {
            "name": product.name if product else (f"Product {product_id}" if product_id else "Featured Product"),
            "tagline": product.category if product else "Premium Quality Product",
            "price": f"${product.price:.2f}" if product else "$99.99",
        }
    elif image_type == "offer":
        discount = (offer or {}).get("discount", 20)
        context = {
            "badge": f"{discount:g}%" if discount else "VIP",
            "title": (offer or {}).get("title") or "Special Offer!",
            "valid_until": _format_valid_until(offer["valid_until"]) if offer else "7 days from now",
            "offer_id": offer_id,
        }
    elif image_type == "error":
        context = {"message": _truncate(message or "An error occurred")}

    return _env.get_template(f"{image_type}.svg").render(**context)


def render_error_image(message: str) -> str:
    return _env.get_template("error.svg").render(message=_truncate(message))
