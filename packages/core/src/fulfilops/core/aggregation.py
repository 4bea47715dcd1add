"""订单聚合 -- 将订单行项目按品类/尺码汇总

确定性、无状态：
- 同一订单 ID 只计算一次（重复输入不影响结果）
- 无法解析的行项目不进入 aggregated_items，但订单仍计入总数、总额与 order_ids
- 总额为订单级 total_amount 之和，以 Decimal 累加后保留两位小数
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from .catalog import BucketResolver, size_order
from .models.order import Order
from .models.views import AggregateResult


def aggregate(orders: Iterable[Order], bucket_key_fn: BucketResolver) -> AggregateResult:
    """聚合订单

    Args:
        orders: 订单集合（可含重复）
        bucket_key_fn: 变体 ID -> (品类, 尺码) 解析函数，无法解析时返回 None

    Returns:
        AggregateResult；空输入返回零值结果
    """
    seen: set[str] = set()
    order_ids: list[str] = []
    revenue = Decimal("0")
    buckets: dict[str, dict[str, int]] = {}

    for order in orders:
        if order.id in seen:
            continue
        seen.add(order.id)
        order_ids.append(order.id)
        revenue += Decimal(str(order.total_amount))

        for item in order.line_items:
            if item.quantity <= 0:
                continue
            resolved = bucket_key_fn(item.variant_id)
            if resolved is None:
                continue
            bucket, size = resolved
            sizes = buckets.setdefault(bucket, {})
            sizes[size] = sizes.get(size, 0) + item.quantity

    return AggregateResult(
        total_orders=len(order_ids),
        total_revenue=float(revenue.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
        aggregated_items={
            bucket: _ordered_sizes(bucket, sizes)
            for bucket, sizes in sorted(buckets.items())
            if sum(sizes.values()) > 0
        },
        order_ids=order_ids,
    )


def has_items(order: Order, bucket_key_fn: BucketResolver) -> bool:
    """订单是否包含至少一个可解析的行项目"""
    return any(
        item.quantity > 0 and bucket_key_fn(item.variant_id) is not None
        for item in order.line_items
    )


def _ordered_sizes(bucket: str, sizes: dict[str, int]) -> dict[str, int]:
    """按展示尺码顺序输出，未知尺码排在最后"""
    known = size_order(bucket)
    ordered = {size: sizes[size] for size in known if sizes.get(size)}
    for size, qty in sizes.items():
        if size not in ordered and qty:
            ordered[size] = qty
    return ordered
