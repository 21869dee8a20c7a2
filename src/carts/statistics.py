"""Cart statistics for analytics and monitoring."""

from dataclasses import asdict, dataclass
from decimal import Decimal

from carts.abandonment import AbandonmentDetector
from carts.stores.port import DurableCartStore, EphemeralCartStore


@dataclass(frozen=True)
class CartStats:
    total_unconverted_carts: int
    abandoned_carts: int
    active_carts: int

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AbandonedCartStats:
    count: int
    total_value: float
    notified_count: int

    @property
    def average_value(self) -> float:
        return self.total_value / self.count if self.count else 0.0

    @property
    def notified_percentage(self) -> float:
        return self.notified_count * 100.0 / self.count if self.count else 0.0

    def as_dict(self) -> dict:
        return {
            **asdict(self),
            "average_value": self.average_value,
            "notified_percentage": self.notified_percentage,
        }


class CartStatistics:
    def __init__(self, durable: DurableCartStore, ephemeral: EphemeralCartStore, detector: AbandonmentDetector):
        self.durable = durable
        self.ephemeral = ephemeral
        self.detector = detector

    async def cart_statistics(self, tenant_id: str) -> CartStats:
        return CartStats(
            total_unconverted_carts=await self.durable.count_unconverted(tenant_id),
            abandoned_carts=len(await self.detector.find_abandoned(tenant_id)),
            active_carts=await self.ephemeral.count(tenant_id),
        )

    async def abandoned_statistics(self, tenant_id: str) -> AbandonedCartStats:
        abandoned = await self.detector.find_abandoned(tenant_id)
        total = sum((record.snapshot().total_value() for record in abandoned), Decimal("0"))
        return AbandonedCartStats(
            count=len(abandoned),
            total_value=float(total),
            notified_count=sum(1 for record in abandoned if record.abandonment_notified),
        )
