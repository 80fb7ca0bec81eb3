"""Simulated courier telemetry for the tracked order.

The courier moves along a fixed waypoint path from the restaurant to the
customer instead of a straight line, to look like a ride through streets.
Each tick covers a fixed fraction of the distance left to the next waypoint.

Waypoints must approach the destination one coordinate at a time (every
waypoint lies inside the box spanned by the previous one and the
destination), which keeps the straight-line distance to the destination
non-increasing on every tick.
"""

import asyncio
import logging
from collections.abc import Sequence
from types import TracebackType

from ..shared.models import Position

logger = logging.getLogger(__name__)

DEFAULT_WAYPOINTS: tuple[Position, ...] = (
    Position(x=15, y=85),
    Position(x=15, y=60),
    Position(x=40, y=60),
    Position(x=40, y=40),
    Position(x=65, y=40),
    Position(x=65, y=25),
    Position(x=80, y=25),
    Position(x=80, y=15),
)


def _between(value: float, start: float, end: float) -> bool:
    return min(start, end) <= value <= max(start, end)


def validate_waypoints(waypoints: Sequence[Position]) -> None:
    """Raise ValueError unless every leg moves toward the final waypoint."""
    if len(waypoints) < 2:
        raise ValueError("A waypoint path needs at least an origin and a destination")
    destination = waypoints[-1]
    for previous, waypoint in zip(waypoints, waypoints[1:], strict=False):
        if not (
            _between(waypoint.x, previous.x, destination.x)
            and _between(waypoint.y, previous.y, destination.y)
        ):
            raise ValueError(
                f"Waypoint ({waypoint.x}, {waypoint.y}) moves away from the destination"
            )


class DeliveryTelemetrySimulator:
    """Advances a simulated courier position on its own timer.

    Call :meth:`start` when the tracked order goes out for delivery and
    :meth:`stop` as soon as it leaves that status. :meth:`reset` returns
    the courier to the path origin for a new order.
    """

    def __init__(
        self,
        waypoints: Sequence[Position] = DEFAULT_WAYPOINTS,
        *,
        interval: float = 2.0,
        step_fraction: float = 0.03,
        min_step: float = 0.25,
        arrival_epsilon: float = 0.5,
    ):
        """Initialize the simulator at the path origin.

        Args:
            waypoints: Ordered path; first is the origin, last is the destination
            interval: Seconds between ticks
            step_fraction: Share of the remaining distance to the next waypoint covered per tick
            min_step: Smallest distance covered per tick, so legs finish in finite time
            arrival_epsilon: Distance at which the courier snaps onto a waypoint

        """
        if not 0 < step_fraction <= 1:
            raise ValueError("step_fraction must be in (0, 1]")
        validate_waypoints(waypoints)

        self.waypoints: tuple[Position, ...] = tuple(waypoints)
        self.interval = interval
        self.step_fraction = step_fraction
        self.min_step = min_step
        self.arrival_epsilon = arrival_epsilon

        self.order_id: str | None = None
        self._position = self.origin
        self._next_index = 1
        self._ticks = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def origin(self) -> Position:
        """Start of the path."""
        return self.waypoints[0]

    @property
    def destination(self) -> Position:
        """End of the path."""
        return self.waypoints[-1]

    @property
    def position(self) -> Position:
        """Current simulated courier position."""
        return self._position

    @property
    def ticks(self) -> int:
        """Number of ticks applied since the last reset."""
        return self._ticks

    @property
    def arrived(self) -> bool:
        """Whether the courier reached the destination."""
        return self._next_index >= len(self.waypoints)

    @property
    def is_running(self) -> bool:
        """Whether the movement timer is active."""
        return self._task is not None and not self._task.done()

    def distance_to_destination(self) -> float:
        """Straight-line distance from the courier to the destination."""
        return self._position.distance_to(self.destination)

    def reset(self, order_id: str | None = None) -> None:
        """Put the courier back at the origin, optionally for a new order."""
        self.order_id = order_id
        self._position = self.origin
        self._next_index = 1
        self._ticks = 0

    def tick(self) -> Position:
        """Move one step along the path and return the new position."""
        if self.arrived:
            return self._position

        target = self.waypoints[self._next_index]
        remaining = self._position.distance_to(target)
        step = min(remaining, max(remaining * self.step_fraction, self.min_step))

        if remaining - step <= self.arrival_epsilon:
            self._position = target
            self._next_index += 1
        else:
            ratio = step / remaining
            self._position = Position(
                x=self._position.x + (target.x - self._position.x) * ratio,
                y=self._position.y + (target.y - self._position.y) * ratio,
            )

        self._ticks += 1
        return self._position

    def start(self) -> None:
        """Start the movement timer if it is not running."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"telemetry-{self.order_id}"
        )
        logger.debug(f"Telemetry started for order {self.order_id}")

    async def stop(self) -> None:
        """Cancel the movement timer and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug(f"Telemetry stopped for order {self.order_id}")

    async def _run(self) -> None:
        while not self.arrived:
            await asyncio.sleep(self.interval)
            self.tick()
        logger.info(f"Courier reached the destination for order {self.order_id}")

    async def __aenter__(self) -> "DeliveryTelemetrySimulator":
        """Start moving."""
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Stop moving."""
        await self.stop()
