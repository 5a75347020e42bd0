"""
Demo-only system load widget.

These numbers are SIMULATED: a bounded random walk, not host telemetry.
Every reading is tagged placeholder=True and carries a notice saying so.
"""
import random
from dataclasses import asdict, dataclass
from typing import Any, Optional

PLACEHOLDER_NOTICE = "Simulated demo metrics, not real system telemetry"


@dataclass
class SimulatedMetrics:
    cpu: float = 35.0
    memory: float = 45.0
    storage: float = 60.0
    network: float = 20.0


def _walk(value: float, rng: random.Random, step: float = 5.0) -> float:
    return round(min(100.0, max(0.0, value + rng.uniform(-step, step))), 1)


def load_status(cpu: float, memory: float) -> str:
    if cpu > 80 or memory > 85:
        return "critical"
    if cpu > 60 or memory > 70:
        return "warning"
    return "healthy"


class SystemMonitor:
    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)
        self._metrics = SimulatedMetrics()

    def sample(self) -> dict[str, Any]:
        m = self._metrics
        m.cpu = _walk(m.cpu, self._rng)
        m.memory = _walk(m.memory, self._rng, step=3.0)
        m.storage = _walk(m.storage, self._rng, step=0.5)
        m.network = _walk(m.network, self._rng, step=10.0)
        return {
            **asdict(m),
            "status": load_status(m.cpu, m.memory),
            "placeholder": True,
            "notice": PLACEHOLDER_NOTICE,
        }
