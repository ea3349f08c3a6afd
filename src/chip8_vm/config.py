"""VM configuration."""

import json
from dataclasses import asdict, dataclass, fields
from typing import Optional


@dataclass
class VMConfig:
    """Tunable parameters of the engine and its scheduler.

    Attributes:
        cpu_hz: Instruction rate
        frame_hz: Display/timer rate
        reset_on_load: Fully reset registers, stack, timers, keypad and
            display on every program load (default: memory and PC only)
        max_stack_depth: Call stack capacity, None for unbounded
        seed: Seed for the RND opcode's generator
        trace: Record an execution trace
        max_trace: Trace entries kept (oldest dropped first)
        max_cycles: Safety limit for Chip8VM.run
    """
    cpu_hz: int = 700
    frame_hz: int = 60
    reset_on_load: bool = False
    max_stack_depth: Optional[int] = None
    seed: Optional[int] = None
    trace: bool = False
    max_trace: int = 10000
    max_cycles: Optional[int] = None

    def __post_init__(self):
        if self.cpu_hz <= 0 or self.frame_hz <= 0:
            raise ValueError("Clock rates must be positive")
        if self.max_stack_depth is not None and self.max_stack_depth < 1:
            raise ValueError("max_stack_depth must be at least 1")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "VMConfig":
        """Build a config from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def save(self, path: str) -> None:
        """Save configuration to JSON file."""
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: str) -> "VMConfig":
        """Load configuration from JSON file."""
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))
