"""
FHE gas metering.

Homomorphic operations are orders of magnitude more expensive than plain
arithmetic, so the runtime meters them separately from native execution
(fhEVM calls this "FHE gas"). Costs depend on the operation, the operand
type and whether the right operand is a plaintext scalar.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from fheads.core.fhe.types import FheType


# (operation, type) -> (ciphertext-ciphertext cost, ciphertext-scalar cost)
DEFAULT_COSTS: Dict[Tuple[str, FheType], Tuple[int, int]] = {
    ("add", FheType.EUINT64): (162_000, 149_000),
    ("sub", FheType.EUINT64): (162_000, 149_000),
    ("mul", FheType.EUINT64): (641_000, 199_000),
    ("gt", FheType.EUINT64): (156_000, 128_000),
    ("ge", FheType.EUINT64): (156_000, 128_000),
    ("lt", FheType.EUINT64): (156_000, 128_000),
    ("eq", FheType.EUINT64): (120_000, 83_000),
    ("eq", FheType.EADDRESS): (90_000, 90_000),
    ("eq", FheType.EBOOL): (49_000, 49_000),
    ("min", FheType.EUINT64): (200_000, 174_000),
    ("max", FheType.EUINT64): (200_000, 174_000),
    ("select", FheType.EBOOL): (52_000, 52_000),
    ("select", FheType.EUINT64): (55_000, 55_000),
    ("select", FheType.EADDRESS): (90_000, 90_000),
    ("trivial", FheType.EBOOL): (32, 32),
    ("trivial", FheType.EUINT64): (200, 200),
    ("trivial", FheType.EADDRESS): (600, 600),
    ("verify", FheType.EBOOL): (300, 300),
    ("verify", FheType.EUINT64): (300, 300),
    ("verify", FheType.EADDRESS): (300, 300),
}

# Charged for any (operation, type) pair missing from the table
FALLBACK_COST = 100_000


@dataclass
class GasReading:
    """Meter state at a point in time."""
    total: int
    op_count: int


@dataclass
class GasMeter:
    """Accumulates FHE gas and per-operation counts."""
    costs: Dict[Tuple[str, FheType], Tuple[int, int]] = field(
        default_factory=lambda: dict(DEFAULT_COSTS)
    )
    total: int = 0
    ops: Counter = field(default_factory=Counter)

    def cost_of(self, op: str, fhe_type: FheType, scalar: bool = False) -> int:
        """Gas for one operation."""
        pair = self.costs.get((op, fhe_type))
        if pair is None:
            return FALLBACK_COST
        return pair[1] if scalar else pair[0]

    def charge(self, op: str, fhe_type: FheType, scalar: bool = False) -> int:
        """Record one operation and return its cost."""
        cost = self.cost_of(op, fhe_type, scalar)
        self.total += cost
        self.ops[op] += 1
        return cost

    def reading(self) -> GasReading:
        return GasReading(total=self.total, op_count=sum(self.ops.values()))

    def since(self, start: Optional[GasReading]) -> GasReading:
        """Gas and op count accumulated after ``start``."""
        now = self.reading()
        if start is None:
            return now
        return GasReading(total=now.total - start.total, op_count=now.op_count - start.op_count)

    def stats(self) -> dict:
        return {"total_gas": self.total, "ops": dict(self.ops)}
