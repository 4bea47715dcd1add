"""订单聚合单元测试

测试内容：
1. 周批次示例（O1/O2 -> 2 单 / 74.99 / STD-2026-W06）
2. 重复订单只计一次（幂等）
3. 数量守恒
4. 无法解析的行项目不进入汇总但订单仍计数
5. 空输入、gid 前缀、零数量行
6. 商品标题 -> 迷你卡识别与组合分类
"""

from datetime import date

from fulfilops.core.aggregation import aggregate, has_items
from fulfilops.core.catalog import (
    HOODIES,
    TSHIRTS,
    is_minicard,
    product_category,
    resolve_personalized,
    resolve_standard,
    supplier_items,
)
from fulfilops.core.deadline import iso_week_batch_id


class TestWeeklyExample:
    """周批次示例"""

    def test_example_week(self, make_order, variants):
        orders = [
            make_order("O1", "2026-02-03", [(variants["std_tshirt_98"], 1)], total=49.99),
            make_order("O2", "2026-02-05", [(variants["std_hoodie_128"], 2)], total=25.00),
        ]
        result = aggregate(orders, resolve_standard)

        assert result.total_orders == 2
        assert result.total_revenue == 74.99
        assert result.aggregated_items == {TSHIRTS: {"98/104": 1}, HOODIES: {"128": 2}}
        assert result.order_ids == ["O1", "O2"]
        assert iso_week_batch_id(date(2026, 2, 2)) == "STD-2026-W06"


class TestAggregateProperties:
    """聚合性质"""

    def test_duplicate_orders_counted_once(self, make_order, variants):
        order = make_order("O1", "2026-02-03", [(variants["std_tshirt_98"], 3)], total=10.10)
        once = aggregate([order], resolve_standard)
        twice = aggregate([order, order], resolve_standard)
        assert once == twice

    def test_quantity_conservation(self, make_order, variants):
        """汇总数量等于所有可解析行项目数量之和"""
        orders = [
            make_order("A", "2026-02-03", [(variants["std_tshirt_98"], 2), (variants["std_hoodie_128"], 1)]),
            make_order("B", "2026-02-04", [(variants["std_tshirt_98"], 5)]),
            make_order("C", "2026-02-04", [(variants["std_hoodie_128"], 4)]),
        ]
        result = aggregate(orders, resolve_standard)
        total = sum(q for sizes in result.aggregated_items.values() for q in sizes.values())
        assert total == 12
        assert result.aggregated_items[TSHIRTS]["98/104"] == 7

    def test_unresolved_items_still_count_order(self, make_order, variants):
        orders = [
            make_order("A", "2026-02-03", [("999", 1)], total=12.5),
            make_order("B", "2026-02-03", [(variants["std_tshirt_98"], 1)], total=7.5),
        ]
        result = aggregate(orders, resolve_standard)
        assert result.total_orders == 2
        assert result.total_revenue == 20.0
        assert result.order_ids == ["A", "B"]
        assert result.aggregated_items == {TSHIRTS: {"98/104": 1}}

    def test_empty_input(self):
        result = aggregate([], resolve_standard)
        assert result.total_orders == 0
        assert result.total_revenue == 0.0
        assert result.aggregated_items == {}
        assert result.order_ids == []

    def test_zero_quantity_bucket_omitted(self, make_order, variants):
        orders = [make_order("A", "2026-02-03", [(variants["std_hoodie_128"], 0)])]
        assert aggregate(orders, resolve_standard).aggregated_items == {}

    def test_gid_prefix_accepted(self, make_order, variants):
        gid = f"gid://shopify/ProductVariant/{variants['std_tshirt_98']}"
        result = aggregate([make_order("A", "2026-02-03", [(gid, 2)])], resolve_standard)
        assert result.aggregated_items == {TSHIRTS: {"98/104": 2}}

    def test_revenue_rounded_to_cents(self, make_order):
        orders = [
            make_order("A", "2026-02-03", [], total=0.1),
            make_order("B", "2026-02-03", [], total=0.2),
        ]
        assert aggregate(orders, resolve_standard).total_revenue == 0.3

    def test_personalized_and_standard_catalogs_are_disjoint(self, make_order, variants):
        order = make_order("A", "2026-02-03", [(variants["pers_tshirt_98"], 1)])
        assert has_items(order, resolve_personalized) is True
        assert has_items(order, resolve_standard) is False


class TestSupplierItems:
    """聚合结果 -> 供应商订单明细"""

    def test_standard_skus(self):
        items = supplier_items({TSHIRTS: {"98/104": 1}, HOODIES: {"128": 2}}, standard=True)
        assert [(i.sku, i.name, i.quantity) for i in items] == [
            ("std-tshirt-98/104", "Standard T-Shirt (98/104)", 1),
            ("std-hoodie-128", "Standard Hoodie (128)", 2),
        ]

    def test_personalized_skus(self):
        items = supplier_items({TSHIRTS: {"110/116": 3}}, standard=False)
        assert [(i.sku, i.name) for i in items] == [("tshirt-110/116", "T-Shirt (110/116)")]


class TestProductTitles:
    """迷你卡按标题识别"""

    def test_minicard_detection(self):
        assert is_minicard("Minicard Set (4 Stück)")
        assert is_minicard("MINICARD")
        assert not is_minicard("Kinder Hoodie")
        assert not is_minicard("")

    def test_categories(self):
        assert product_category("Minicard") is None
        assert product_category("Kinder Hoodie Blau") == "Hoodie"
        assert product_category("T-Shirt Schulfest") == "T-Shirt"
        assert product_category("Schulsong CD") == "CD"
        assert product_category("Tonie Figur") == "Tonie"
        assert product_category("Poster A3") == "Poster A3"
        assert product_category("") is None
