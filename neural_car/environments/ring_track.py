"""
environments/ring_track.py

A ring-shaped track for driving experiments.

The smallest world in which a car can drive, crash and complete laps.
Cars start on the centre line and drive counter-clockwise; the walls are
two concentric circles. Each car senses the walls with five rays and is
steered by its brain every tick.

Inspired by:
- Ray-cast driving simulators
- Reynolds steering behaviours
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence
import math

import numpy as np

from neural_car.core.brain import CarBrain


@dataclass
class TrackConfig:
    """Configuration for the ring track."""
    inner_radius: float = 8.0
    outer_radius: float = 14.0
    max_ray_distance: float = 5.0     # Rays see no further than this
    ray_angle: float = 45.0           # Degrees between diagonal and forward rays
    max_turn_rate: float = 0.15       # Radians per tick at full steering
    max_speed: float = 0.5            # Track units per tick at full throttle
    max_steps: int = 2000             # Hard cap on a trial

    @property
    def centre_radius(self) -> float:
        return 0.5 * (self.inner_radius + self.outer_radius)


@dataclass
class CarState:
    """Where a car is and what it has done this trial."""
    position: np.ndarray
    heading: float                    # Radians, world frame
    speed: float = 0.0
    steering: float = 0.0
    distance_travelled: float = 0.0
    angle_travelled: float = 0.0      # Unwrapped angle swept around the centre
    in_operation: bool = True
    steps: int = 0

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64)

    @property
    def finished_laps(self) -> int:
        return max(0, int(self.angle_travelled // (2 * math.pi)))


class Car:
    """
    A car on the ring track, driven by a CarBrain.

    Each tick while in operation:
    1. Sense the walls (five rays)
    2. Ask the brain for [steering, throttle]
    3. Stop if throttle <= 0, otherwise steer and move
    4. Stop on leaving the track

    Stopping writes the distance travelled onto the brain's genotype.
    """

    def __init__(self, car_id: str, brain: CarBrain, config: TrackConfig):
        self.id = car_id
        self.brain = brain
        self.config = config
        self.state = self._start_state()

    def _start_state(self) -> CarState:
        return CarState(
            position=np.array([self.config.centre_radius, 0.0]),
            heading=math.pi / 2,
        )

    @property
    def ray_offsets(self) -> List[float]:
        """Left, left-forward, forward, right-forward, right."""
        diagonal = math.radians(self.config.ray_angle)
        return [math.pi / 2, diagonal, 0.0, -diagonal, -math.pi / 2]

    def sense(self) -> np.ndarray:
        """Distance to the nearest wall along each ray, or 0 if none in range."""
        return np.array([
            self._cast(self.state.heading + offset) for offset in self.ray_offsets
        ])

    def _cast(self, angle: float) -> float:
        direction = np.array([math.cos(angle), math.sin(angle)])
        origin = self.state.position
        b = float(origin @ direction)
        c0 = float(origin @ origin)

        nearest = None
        for radius in (self.config.inner_radius, self.config.outer_radius):
            disc = b * b - (c0 - radius * radius)
            if disc < 0:
                continue
            root = math.sqrt(disc)
            for t in (-b - root, -b + root):
                if 0.0 < t <= self.config.max_ray_distance:
                    if nearest is None or t < nearest:
                        nearest = t
        return 0.0 if nearest is None else nearest

    def drive(self, controls: Sequence[float]) -> None:
        """Apply [steering, throttle] for one tick."""
        steering, throttle = float(controls[0]), float(controls[1])
        self.state.steering = steering

        if throttle <= 0:
            self.stop()
            return

        self.state.heading += steering * self.config.max_turn_rate
        self.state.speed = throttle * self.config.max_speed

        previous = self.state.position
        heading = np.array([math.cos(self.state.heading), math.sin(self.state.heading)])
        current = previous + heading * self.state.speed
        self._account_motion(previous, current)
        self.state.position = current

        if not self.on_track():
            self.stop()

    def _account_motion(self, previous: np.ndarray, current: np.ndarray) -> None:
        self.state.distance_travelled += float(np.linalg.norm(current - previous))
        swept = math.atan2(current[1], current[0]) - math.atan2(previous[1], previous[0])
        # Unwrap across the +/- pi seam
        swept = (swept + math.pi) % (2 * math.pi) - math.pi
        self.state.angle_travelled += swept

    def on_track(self) -> bool:
        radius = float(np.linalg.norm(self.state.position))
        return self.config.inner_radius < radius < self.config.outer_radius

    def update(self) -> None:
        """One tick of the car's life."""
        if not self.state.in_operation:
            return
        self.state.steps += 1
        readings = self.sense()
        controls = self.brain.process_inputs(readings)
        self.drive(controls)

    def stop(self) -> None:
        """Take the car out of operation and report its distance."""
        if not self.state.in_operation:
            return
        self.state.in_operation = False
        self.state.speed = 0.0
        self.brain.genotype.distance = self.state.distance_travelled

    @property
    def in_operation(self) -> bool:
        return self.state.in_operation

    @property
    def distance_travelled(self) -> float:
        return self.state.distance_travelled

    @property
    def finished_laps(self) -> int:
        return self.state.finished_laps

    def __repr__(self) -> str:
        return (
            f"Car(id={self.id}, "
            f"pos=[{self.state.position[0]:.2f}, {self.state.position[1]:.2f}], "
            f"distance={self.state.distance_travelled:.2f}, "
            f"laps={self.finished_laps})"
        )


class RingTrack:
    """
    Annular track hosting one car per genotype.

    Features:
    - Ray-cast wall sensing
    - Distance and lap accounting
    - Leader tracking (largest distance this trial)
    - Step-based simulation
    """

    def __init__(self, config: Optional[TrackConfig] = None):
        self.config = config or TrackConfig()
        self.cars: List[Car] = []
        self.time = 0
        self.leader: Optional[Car] = None
        self.max_distance = 0.0

    def add_car(self, brain: CarBrain, car_id: Optional[str] = None) -> Car:
        car = Car(car_id or f"car_{len(self.cars)}", brain, self.config)
        self.cars.append(car)
        return car

    def clear(self) -> None:
        """Remove every car and restart the clock."""
        self.cars = []
        self.time = 0
        self.leader = None

    def step(self) -> None:
        """Advance every car by one tick, then re-elect the leader."""
        self.time += 1
        for car in self.cars:
            car.update()
        self._update_leader()

    def _update_leader(self) -> None:
        if not self.cars:
            return
        self.leader = max(self.cars, key=lambda c: c.distance_travelled)
        self.max_distance = max(self.max_distance, self.leader.distance_travelled)

    @property
    def all_stopped(self) -> bool:
        return not any(car.in_operation for car in self.cars)

    def stop_all(self) -> None:
        """End the trial for every car still driving."""
        for car in self.cars:
            car.stop()

    def run(self, max_steps: Optional[int] = None) -> int:
        """Step until every car stopped or the step cap; returns steps taken."""
        limit = max_steps if max_steps is not None else self.config.max_steps
        steps = 0
        while not self.all_stopped and steps < limit:
            self.step()
            steps += 1
        self.stop_all()
        return steps

    def get_distances(self) -> np.ndarray:
        return np.array([car.distance_travelled for car in self.cars])

    def get_laps(self) -> np.ndarray:
        return np.array([car.finished_laps for car in self.cars])

    def __repr__(self) -> str:
        return (
            f"RingTrack(cars={len(self.cars)}, "
            f"time={self.time}, "
            f"running={sum(c.in_operation for c in self.cars)})"
        )
