"""Runtime settings for the marketplace engine.

Every setting defaults from an environment variable, so a ``.env`` file
loaded by the CLI is enough to reconfigure timers, storage and identities.
"""

import logging
import os
from typing import Any, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

TField = TypeVar("TField")


def EnvField(*env_vars: str, default: TField | None = None, **kwargs: Any) -> TField:  # noqa: N802, UP047
    """Create a Field that gets its default value from an environment variable."""

    def get_env_value():
        for env_var in env_vars:
            value = os.getenv(env_var)
            if value is not None:
                return value
        logger.debug(
            f"No environment variable found among: {env_vars}, using default value: {default}"
        )
        return default

    return Field(default_factory=get_env_value, validate_default=True, **kwargs)  # pyright: ignore[reportReturnType]


class MarketplaceSettings(BaseModel):
    """Timers, storage location and demo identities."""

    db_path: str = EnvField("DIAMOND_DB_PATH", default="diamond.db")
    sync_interval: float = EnvField("DIAMOND_SYNC_INTERVAL", default=3.0, gt=0)
    telemetry_interval: float = EnvField(
        "DIAMOND_TELEMETRY_INTERVAL", default=2.0, gt=0
    )
    eta_interval: float = EnvField("DIAMOND_ETA_INTERVAL", default=15.0, gt=0)
    notification_seconds: float = EnvField(
        "DIAMOND_NOTIFICATION_SECONDS", default=4.0, gt=0
    )
    telemetry_step_fraction: float = EnvField(
        "DIAMOND_TELEMETRY_STEP", default=0.03, gt=0, le=1
    )
    courier_id: str = EnvField("DIAMOND_COURIER_ID", default="driver-1")
    customer_id: str = EnvField("DIAMOND_CUSTOMER_ID", default="user-1")
    wallet_balance: float = EnvField("DIAMOND_WALLET_BALANCE", default=250.0, ge=0)
    traffic: str = EnvField("DIAMOND_TRAFFIC", default="Moderate")
