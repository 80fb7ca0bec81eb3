"""Default restaurant catalog written to an empty store on first load."""

from .shared.models import MenuItem, Restaurant


def default_restaurants() -> list[Restaurant]:
    """Return a fresh copy of the built-in demo catalog."""
    return [
        Restaurant(
            id="r1",
            name="Diamond Grill House",
            rating=4.8,
            delivery_time="20-30 min",
            tags=["Steak", "Premium", "American"],
            is_open=True,
            delivery_fee=1.5,
            min_order=15,
            promo_text="Buy 1 Get 1",
            promo_banners=[
                "https://images.unsplash.com/photo-1504674900247-0877df9cc836?w=800&q=80",
                "https://images.unsplash.com/photo-1514327605112-b887c0e61c0a?w=800&q=80",
            ],
            historical_delivery_minutes=25,
            menu=[
                MenuItem(
                    id="m1",
                    name="Signature Diamond Steak",
                    description="Wagyu beef with truffle butter",
                    price=45,
                    category="Main",
                    sales_count=124,
                ),
                MenuItem(
                    id="m2",
                    name="Gilded Wings",
                    description="Honey glazed gold-dusted wings",
                    price=18,
                    category="Starters",
                    sales_count=342,
                ),
            ],
        ),
        Restaurant(
            id="r2",
            name="Zen Sushi Hub",
            rating=4.6,
            delivery_time="15-25 min",
            tags=["Japanese", "Sushi", "Healthy"],
            is_open=True,
            delivery_fee=0.99,
            min_order=10,
            historical_delivery_minutes=20,
            menu=[
                MenuItem(
                    id="m3",
                    name="Rainbow Roll",
                    description="Fresh salmon, tuna and avocado",
                    price=22,
                    category="Sushi",
                    sales_count=567,
                ),
                MenuItem(
                    id="m4",
                    name="Miso Soul Soup",
                    description="Traditional miso with organic tofu",
                    price=8,
                    category="Sides",
                    sales_count=890,
                ),
            ],
        ),
    ]
