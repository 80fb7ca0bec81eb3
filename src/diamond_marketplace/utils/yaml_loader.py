"""YAML loading functions for restaurant catalogs."""

from pathlib import Path

import yaml

from ..shared.models import Restaurant


def load_restaurants_from_yaml(restaurants_dir: Path) -> list[Restaurant]:
    """Load restaurant profiles from YAML files in the given directory.

    Each file holds one restaurant. Files are read in name order so the
    resulting catalog order is stable.
    """
    restaurants: list[Restaurant] = []

    if not restaurants_dir.exists():
        raise FileNotFoundError(f"Restaurants directory not found: {restaurants_dir}")

    yaml_files = list(restaurants_dir.glob("*.yaml")) + list(
        restaurants_dir.glob("*.yml")
    )

    if not yaml_files:
        raise ValueError(
            f"No YAML files found in restaurants directory: {restaurants_dir}"
        )

    for yaml_file in sorted(yaml_files):
        with open(yaml_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        restaurants.append(Restaurant.model_validate(data))

    return restaurants
