"""服装商品目录 -- 电商变体 ID 到 (品类, 尺码) 的固定映射

个性化服装（印学校名）按活动下单；标准服装按周跨活动批量下单。
迷你卡没有固定变体表，按商品标题识别。
"""

from collections.abc import Callable

from .models.supplier_order import SupplierOrderItem

TSHIRTS = "tshirts"
HOODIES = "hoodies"

TSHIRT_SIZES: list[str] = ["98/104", "110/116", "122/128", "134/146", "152/164"]
HOODIE_SIZES: list[str] = ["116", "128", "140", "152", "164"]

_GID_PREFIX = "gid://shopify/ProductVariant/"

PERSONALIZED_CLOTHING_VARIANTS: dict[str, tuple[str, str]] = {
    # T 恤
    "53328502194522": (TSHIRTS, "98/104"),
    "53328502227290": (TSHIRTS, "110/116"),
    "53328502260058": (TSHIRTS, "122/128"),
    "53328502292826": (TSHIRTS, "134/146"),
    "53328502325594": (TSHIRTS, "152/164"),
    # 连帽衫
    "53328494788954": (HOODIES, "116"),
    "53328494821722": (HOODIES, "128"),
    "53328494854490": (HOODIES, "140"),
    "53328494887258": (HOODIES, "152"),
    "53328494920026": (HOODIES, "164"),
}

STANDARD_CLOTHING_VARIANTS: dict[str, tuple[str, str]] = {
    # T 恤
    "53328491512154": (TSHIRTS, "98/104"),
    "53328491544922": (TSHIRTS, "110/116"),
    "53328491577690": (TSHIRTS, "122/128"),
    "53328491610458": (TSHIRTS, "134/146"),
    "53328491643226": (TSHIRTS, "152/164"),
    # 连帽衫
    "53325998948698": (HOODIES, "116"),
    "53325998981466": (HOODIES, "128"),
    "53325999014234": (HOODIES, "140"),
    "53325999047002": (HOODIES, "152"),
    "53325999079770": (HOODIES, "164"),
}

BucketResolver = Callable[[str], tuple[str, str] | None]


def normalize_variant_id(variant_id: str) -> str:
    """去掉 Shopify gid 前缀"""
    return variant_id.removeprefix(_GID_PREFIX)


def resolve_personalized(variant_id: str) -> tuple[str, str] | None:
    """个性化服装变体 -> (品类, 尺码)，非个性化服装返回 None"""
    return PERSONALIZED_CLOTHING_VARIANTS.get(normalize_variant_id(variant_id))


def resolve_standard(variant_id: str) -> tuple[str, str] | None:
    """标准服装变体 -> (品类, 尺码)，非标准服装返回 None"""
    return STANDARD_CLOTHING_VARIANTS.get(normalize_variant_id(variant_id))


def size_order(bucket: str) -> list[str]:
    """品类的展示尺码顺序"""
    return TSHIRT_SIZES if bucket == TSHIRTS else HOODIE_SIZES


def supplier_items(
    aggregated_items: dict[str, dict[str, int]],
    standard: bool,
) -> list[SupplierOrderItem]:
    """将聚合结果转换为 GuesstimateOrder 明细行

    Args:
        aggregated_items: {品类: {尺码: 数量}}
        standard: True 为标准服装（std- 前缀），False 为个性化服装

    Returns:
        按品类、尺码顺序排列的明细行，跳过数量为 0 的尺码
    """
    items: list[SupplierOrderItem] = []
    for bucket, kind, label in ((TSHIRTS, "tshirt", "T-Shirt"), (HOODIES, "hoodie", "Hoodie")):
        sizes = aggregated_items.get(bucket, {})
        for size in size_order(bucket):
            qty = sizes.get(size, 0)
            if qty <= 0:
                continue
            if standard:
                items.append(
                    SupplierOrderItem(
                        sku=f"std-{kind}-{size}",
                        name=f"Standard {label} ({size})",
                        quantity=qty,
                    )
                )
            else:
                items.append(
                    SupplierOrderItem(sku=f"{kind}-{size}", name=f"{label} ({size})", quantity=qty)
                )
    return items


def is_minicard(title: str) -> bool:
    """商品标题是否为迷你卡"""
    return "minicard" in title.lower()


def product_category(title: str) -> str | None:
    """商品标题 -> 组合展示分类；迷你卡本身返回 None，未知商品沿用原标题"""
    lowered = title.lower()
    if "minicard" in lowered:
        return None
    if "hoodie" in lowered:
        return "Hoodie"
    if "shirt" in lowered:
        return "T-Shirt"
    if "cd" in lowered:
        return "CD"
    if "tonie" in lowered:
        return "Tonie"
    return title or None
