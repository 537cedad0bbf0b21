"""
Apparatus simulation for the virtual laboratory.

Each experiment kind owns a small state class implementing tick() and
apply(); ApparatusModel picks the class once from the experiment kind and
routes every command through a single dispatch point, so a command issued for
the wrong apparatus is rejected before it reaches any state.
"""

import logging
import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict

from config import HeaterPolicy, ThermometerPolicy
from .catalog import AIR_HOLE_LABELS, ExperimentKind
from .errors import ConfigurationMismatch, InvalidCommand

logger = logging.getLogger(__name__)

BALANCE_TOLERANCE_G = 1
MAX_TILT_DEGREES = 15.0


class Side(str, Enum):
    """Pan of the beam balance."""
    LEFT = "left"
    RIGHT = "right"


class SampleId(str, Enum):
    """Substances the thermometer can be placed in."""
    ICE = "ice"
    ROOM = "room"
    WARM = "warm"
    BODY = "body"
    HOT = "hot"


class FlameType(str, Enum):
    """Flame produced by the Bunsen burner."""
    NONE = "none"
    LUMINOUS = "luminous"
    NON_LUMINOUS = "non_luminous"


class BalanceReading(BaseModel):
    """Derived reading of the beam balance."""
    model_config = ConfigDict(frozen=True)

    left_mass: int
    right_mass: int
    difference: int
    is_balanced: bool
    heavier_side: Optional[Side]
    tilt_degrees: float

    @classmethod
    def from_weights(cls, left: List[int], right: List[int]) -> "BalanceReading":
        left_mass = sum(left)
        right_mass = sum(right)
        difference = right_mass - left_mass
        is_balanced = abs(difference) <= BALANCE_TOLERANCE_G
        if is_balanced:
            heavier = None
        else:
            heavier = Side.RIGHT if difference > 0 else Side.LEFT
        tilt = max(-MAX_TILT_DEGREES, min(MAX_TILT_DEGREES, difference / 10))
        return cls(
            left_mass=left_mass,
            right_mass=right_mass,
            difference=difference,
            is_balanced=is_balanced,
            heavier_side=heavier,
            tilt_degrees=tilt,
        )


class ApparatusSnapshot(BaseModel):
    """Read-only view of the apparatus handed to the view layer and the guide."""
    model_config = ConfigDict(frozen=True)

    kind: ExperimentKind
    tick_count: int = 0
    temperature_c: Optional[float] = None

    # Heater
    is_lit: Optional[bool] = None
    air_hole_level: Optional[int] = None
    air_hole_label: Optional[str] = None
    flame_type: Optional[FlameType] = None
    ceiling_c: Optional[float] = None

    # Beam balance
    left_weights: Optional[List[int]] = None
    right_weights: Optional[List[int]] = None
    balance: Optional[BalanceReading] = None

    # Thermometer
    sample_id: Optional[SampleId] = None
    target_c: Optional[float] = None


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class ApparatusState(ABC):
    """Per-kind state with its own tick and command handlers."""

    kind: ExperimentKind
    commands: FrozenSet[str] = frozenset()

    @abstractmethod
    def tick(self) -> None:
        """Advance the physical quantities by one step."""
        pass

    def apply(self, command: str, **kwargs: Any) -> Any:
        """Run a command this state supports."""
        return getattr(self, f"_cmd_{command}")(**kwargs)

    @abstractmethod
    def snapshot_fields(self) -> Dict[str, Any]:
        pass


class HeaterState(ApparatusState):
    """Bunsen burner: flame on/off, air-hole setting and flame temperature."""

    kind = ExperimentKind.HEATER
    commands = frozenset({"set_air_hole", "toggle_lit"})

    def __init__(self, policy: HeaterPolicy):
        self.policy = policy
        self.is_lit = False
        self.air_hole_level = 0
        self.temperature_c = policy.ambient_c

    @property
    def ceiling_c(self) -> float:
        return self.policy.base_temps[self.air_hole_level] + self.policy.margin

    def tick(self) -> None:
        p = self.policy
        prev = self.temperature_c
        if self.is_lit:
            if prev < self.ceiling_c or p.clamp_to_ceiling:
                increment = p.rate_base + self.air_hole_level * p.rate_per_level
                nxt = min(self.ceiling_c, prev + increment)
            else:
                # Air hole closed down while hot: hold until the burner goes off
                nxt = prev
        else:
            nxt = max(p.ambient_c, prev - p.cooling_step)
        self.temperature_c = _clamp(nxt, p.min_c, p.max_c)

    def _cmd_set_air_hole(self, level: int) -> int:
        if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level < len(AIR_HOLE_LABELS):
            raise InvalidCommand(
                f"Air-hole level must be an integer between 0 and {len(AIR_HOLE_LABELS) - 1}",
                field="level",
                value=level
            )
        self.air_hole_level = level
        return level

    def _cmd_toggle_lit(self) -> bool:
        self.is_lit = not self.is_lit
        return self.is_lit

    def flame_type(self) -> FlameType:
        if not self.is_lit:
            return FlameType.NONE
        return FlameType.LUMINOUS if self.air_hole_level == 0 else FlameType.NON_LUMINOUS

    def snapshot_fields(self) -> Dict[str, Any]:
        return {
            "temperature_c": round(self.temperature_c, 2),
            "is_lit": self.is_lit,
            "air_hole_level": self.air_hole_level,
            "air_hole_label": AIR_HOLE_LABELS[self.air_hole_level],
            "flame_type": self.flame_type(),
            "ceiling_c": self.ceiling_c,
        }


class BeamBalanceState(ApparatusState):
    """Beam balance: standard masses stacked on two pans."""

    kind = ExperimentKind.BEAM_BALANCE
    commands = frozenset({"add_weight", "undo_weight", "clear_weights"})

    def __init__(self, max_weights_per_pan: int = 50):
        self.max_weights_per_pan = max_weights_per_pan
        self.weights: Dict[Side, List[int]] = {Side.LEFT: [], Side.RIGHT: []}

    def tick(self) -> None:
        # Masses only change on command
        pass

    @staticmethod
    def _side(side: Any) -> Side:
        try:
            return Side(side)
        except ValueError:
            raise InvalidCommand(
                "Side must be 'left' or 'right'",
                field="side",
                value=side
            ) from None

    def _cmd_add_weight(self, side: Any, mass: int) -> int:
        pan = self._side(side)
        if isinstance(mass, bool) or not isinstance(mass, int) or mass <= 0:
            raise InvalidCommand(
                "Mass must be a positive whole number of grams",
                field="mass",
                value=mass
            )
        if len(self.weights[pan]) >= self.max_weights_per_pan:
            raise InvalidCommand(
                f"The {pan.value} pan already holds {self.max_weights_per_pan} masses",
                field="side",
                value=pan.value
            )
        self.weights[pan].append(mass)
        return mass

    def _cmd_undo_weight(self, side: Any) -> Optional[int]:
        pan = self._side(side)
        if not self.weights[pan]:
            return None
        return self.weights[pan].pop()

    def _cmd_clear_weights(self) -> None:
        self.weights[Side.LEFT].clear()
        self.weights[Side.RIGHT].clear()

    def reading(self) -> BalanceReading:
        return BalanceReading.from_weights(self.weights[Side.LEFT], self.weights[Side.RIGHT])

    def snapshot_fields(self) -> Dict[str, Any]:
        return {
            "left_weights": list(self.weights[Side.LEFT]),
            "right_weights": list(self.weights[Side.RIGHT]),
            "balance": self.reading(),
        }


class ThermometerState(ApparatusState):
    """Thermometer reading converging on the selected sample."""

    kind = ExperimentKind.THERMOMETER
    commands = frozenset({"select_sample"})

    def __init__(self, policy: ThermometerPolicy):
        self.policy = policy
        self.sample_id = SampleId.ROOM
        self.temperature_c = policy.start_c

    @property
    def target_c(self) -> float:
        return self.policy.sample_targets[self.sample_id.value]

    def tick(self) -> None:
        p = self.policy
        prev = self.temperature_c
        gap = self.target_c - prev
        if abs(gap) <= p.snap_threshold:
            nxt = self.target_c
        else:
            step = _clamp(abs(gap) * p.gain, p.min_step, p.max_step)
            nxt = prev + math.copysign(step, gap)
        self.temperature_c = _clamp(nxt, p.min_c, p.max_c)

    def _cmd_select_sample(self, sample_id: Any) -> SampleId:
        try:
            sample = SampleId(sample_id)
        except ValueError:
            raise InvalidCommand(
                f"Unknown sample '{sample_id}'",
                field="sample_id",
                value=sample_id
            ) from None
        # Residual heat carries over; only the target changes
        self.sample_id = sample
        return sample

    def snapshot_fields(self) -> Dict[str, Any]:
        return {
            "temperature_c": round(self.temperature_c, 2),
            "sample_id": self.sample_id,
            "target_c": self.target_c,
        }


class ApparatusModel:
    """
    Simulated apparatus for one active experiment.

    Commands are validated against the experiment kind here and forwarded to
    the kind's state object. Ticks are applied one at a time by the session
    scheduler.
    """

    def __init__(
        self,
        kind: ExperimentKind,
        heater_policy: Optional[HeaterPolicy] = None,
        thermometer_policy: Optional[ThermometerPolicy] = None,
        max_weights_per_pan: int = 50
    ):
        self.kind = ExperimentKind(kind)
        self.tick_count = 0
        if self.kind is ExperimentKind.HEATER:
            self._state: ApparatusState = HeaterState(heater_policy or HeaterPolicy())
        elif self.kind is ExperimentKind.BEAM_BALANCE:
            self._state = BeamBalanceState(max_weights_per_pan)
        else:
            self._state = ThermometerState(thermometer_policy or ThermometerPolicy())

    @property
    def state(self) -> ApparatusState:
        return self._state

    def _dispatch(self, command: str, **kwargs: Any) -> Any:
        if command not in self._state.commands:
            raise ConfigurationMismatch(
                f"'{command}' is not available for the {self.kind.value} apparatus",
                field="command",
                value=command,
                context={"experiment_kind": self.kind.value}
            )
        result = self._state.apply(command, **kwargs)
        logger.debug(f"Applied {command}({kwargs}) to {self.kind.value}: {result}")
        return result

    def tick(self) -> None:
        self._state.tick()
        self.tick_count += 1

    def set_air_hole(self, level: int) -> int:
        return self._dispatch("set_air_hole", level=level)

    def toggle_lit(self) -> bool:
        return self._dispatch("toggle_lit")

    def add_weight(self, side: Any, mass: int) -> int:
        return self._dispatch("add_weight", side=side, mass=mass)

    def undo_weight(self, side: Any) -> Optional[int]:
        return self._dispatch("undo_weight", side=side)

    def clear_weights(self) -> None:
        return self._dispatch("clear_weights")

    def select_sample(self, sample_id: Any) -> SampleId:
        return self._dispatch("select_sample", sample_id=sample_id)

    def snapshot(self) -> ApparatusSnapshot:
        return ApparatusSnapshot(
            kind=self.kind,
            tick_count=self.tick_count,
            **self._state.snapshot_fields()
        )

