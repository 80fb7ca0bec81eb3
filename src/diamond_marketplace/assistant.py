"""LLM suggestions for customers and merchants.

These features are advisory, like ETA prediction: when the provider is
unreachable, misconfigured or answers badly, the caller gets an empty list
and the marketplace carries on.
"""

import logging

from pydantic import BaseModel, Field
from pydantic_core import to_json

from .llm import LLM_PROVIDER, generate
from .llm.base import TResponseModel
from .shared.models import MenuItem, Restaurant

logger = logging.getLogger(__name__)

DEFAULT_DIETARY_PREFERENCES = "No nuts, high protein"
RECOMMENDATION_COUNT = 3
BUNDLE_COUNT = 2


class FoodRecommendation(BaseModel):
    """A kind of food suggested for the customer's mood."""

    food_type: str = Field(description="Type of food or cuisine to order")
    reason: str = Field(description="Why it suits the mood and diet")
    vibe: str = Field(description="A few words on the feel of the meal")


class FoodRecommendations(BaseModel):
    """Model answer for a mood-based recommendation."""

    recommendations: list[FoodRecommendation]


class SmartBundle(BaseModel):
    """A meal deal built from one restaurant's menu."""

    bundle_name: str = Field(description="Catchy name for the deal")
    items_included: list[str] = Field(description="Names of the menu items in the deal")
    suggested_price: float = Field(ge=0, description="Price of the whole bundle")
    description: str


class SmartBundles(BaseModel):
    """Model answer for a bundle request."""

    bundles: list[SmartBundle]


class MenuSuggestion(BaseModel):
    """Pricing or naming advice for one menu item."""

    item_id: str = Field(description="ID of the menu item the advice is for")
    suggested_name: str = Field(description="Better name, or the current one")
    suggestion: str = Field(description="Pricing or presentation advice")


class MenuAnalysis(BaseModel):
    """Model answer for a menu performance review."""

    suggestions: list[MenuSuggestion]


def _menu_json(items: list[MenuItem]) -> str:
    return to_json(
        [
            item.model_dump(
                include={"id", "name", "description", "price", "category", "sales_count"}
            )
            for item in items
        ]
    ).decode()


class MarketplaceAssistant:
    """Asks the configured LLM provider for recommendations and merchant advice."""

    def __init__(
        self,
        *,
        provider: LLM_PROVIDER | None = None,
        model: str | None = None,
        temperature: float | None = None,
    ):
        """Initialize with optional provider overrides; unset values come from the environment."""
        self.provider = provider
        self.model = model
        self.temperature = temperature

    async def recommend_food(
        self, mood: str, dietary_preferences: str = DEFAULT_DIETARY_PREFERENCES
    ) -> list[FoodRecommendation]:
        """Suggest up to three kinds of food for a mood and diet."""
        answer = await self._ask(
            f"I'm feeling {mood}. My dietary preferences are {dietary_preferences}. "
            "Suggest 3 types of food I should order from a delivery app.",
            FoodRecommendations,
        )
        return answer.recommendations[:RECOMMENDATION_COUNT] if answer else []

    async def suggest_bundles(self, restaurant: Restaurant) -> list[SmartBundle]:
        """Suggest two meal deals from ``restaurant``'s menu."""
        answer = await self._ask(
            f"Given the menu for {restaurant.name}: {_menu_json(restaurant.menu)}, "
            'suggest 2 "Smart Bundles" or meal deals that would appeal to customers. '
            "Give them catchy names.",
            SmartBundles,
        )
        return answer.bundles[:BUNDLE_COUNT] if answer else []

    async def analyze_menu(self, items: list[MenuItem]) -> list[MenuSuggestion]:
        """Suggest pricing optimizations or better names for ``items``.

        Advice about items that are not on the menu is dropped.
        """
        if not items:
            return []
        answer = await self._ask(
            "Analyze these menu items and suggest pricing optimizations or "
            f"better names: {_menu_json(items)}",
            MenuAnalysis,
        )
        if answer is None:
            return []
        known = {item.id for item in items}
        return [s for s in answer.suggestions if s.item_id in known]

    async def _ask(
        self, prompt: str, response_format: type[TResponseModel]
    ) -> TResponseModel | None:
        try:
            answer, usage = await generate(
                prompt,
                response_format,
                provider=self.provider,
                model=self.model,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.warning(f"{response_format.__name__} unavailable: {e}")
            return None
        logger.debug(f"{response_format.__name__} used {usage.token_count} tokens")
        return answer
