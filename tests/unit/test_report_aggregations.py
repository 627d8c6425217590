from datetime import date
from decimal import Decimal
from zoneinfo import ZoneInfo
from caja.reports import aggregations as agg
from caja.sales.models import Sale

MX = ZoneInfo("America/Mexico_City")

def _sale(sid, created_at, total, method="cash", created_by=None, items=()):
    return Sale.from_row(
        {
            "id": sid,
            "business_id": "biz",
            "created_by": created_by,
            "created_at": created_at,
            "payment_method": method,
            "subtotal": total,
            "total": total,
        },
        items=[{"name": n, "qty": q, "unit_price": 1, "line_total": q} for n, q in items],
    )

SALES = [
    _sale("s1", "2024-06-01T18:00:00+00:00", 100, "cash", "7f3a9c2e-1111", [("Agua", 2), ("Taco", 3)]),
    _sale("s2", "2024-06-02T17:00:00+00:00", 200, "card", "c4a5b6d7-2222", [("Taco", 1), ("Agua", 2)]),
    _sale("s3", "2024-06-02T04:30:00+00:00", 50, "vales", None, [("Refresco", 5)]),
    _sale("s4", "2024-06-02T20:00:00+00:00", 30, "transfer", "7f3a9c2e-1111", [("Agua", 1)]),
]

def test_daily_series_scenario():
    sales = [_sale("a", "2024-06-01T18:00:00+00:00", 100), _sale("b", "2024-06-02T18:00:00+00:00", 200)]
    assert agg.daily_series(sales, MX) == [(date(2024, 6, 1), Decimal("100.00")), (date(2024, 6, 2), Decimal("200.00"))]

def test_daily_series_buckets_by_local_day_not_utc():
    # s3 est le 2 juin en UTC mais le 1er juin à Mexico
    series = dict(agg.daily_series(SALES, MX))
    assert series[date(2024, 6, 1)] == Decimal("150.00")
    assert series[date(2024, 6, 2)] == Decimal("230.00")

def test_method_distribution_canonical_order_unknown_last():
    assert agg.method_distribution(SALES) == [
        ("cash", Decimal("100.00")),
        ("card", Decimal("200.00")),
        ("transfer", Decimal("30.00")),
        ("vales", Decimal("50.00")),
    ]

def test_top_products_ties_keep_first_encountered_order():
    # Agua 5, Taco 4, Refresco 5: Agua rencontré avant Refresco
    assert agg.top_products(SALES, 7) == [("Agua", 5), ("Refresco", 5), ("Taco", 4)]
    assert agg.top_products(SALES, 1) == [("Agua", 5)]

def test_employee_performance_labels_and_order():
    perf = agg.employee_performance(SALES, {"c4a5b6d7-2222": "Ana"})
    assert [(e.label, e.sale_count, e.total_income, e.total_items) for e in perf] == [
        ("Ana", 1, Decimal("200.00"), 3),
        ("Emp 7F3A9C2E", 2, Decimal("130.00"), 6),
        ("Sin asignar", 1, Decimal("50.00"), 5),
    ]
    assert perf[1].average_ticket == Decimal("65.00")

def test_average_ticket_never_divides_by_zero():
    assert agg.EmployeeAggregate("x", 0, Decimal("0"), 0).average_ticket == Decimal("0.00")
    assert agg.average_ticket(Decimal("0"), 0) == Decimal("0.00")

def test_projection_uses_trailing_window():
    values = [Decimal(v) for v in range(1, 21)]  # 1..20
    # moyenne des 14 derniers (7..20) = 13.5 -> x30
    assert agg.projection(values, 14, 30) == Decimal("405.00")
    assert agg.projection([Decimal("10"), Decimal("20")], 14, 30) == Decimal("450.00")
    assert agg.projection([], 14, 30) == Decimal("0.00")

def test_partitions_sum_to_grand_total():
    grand = agg.total_income(SALES)
    assert sum(v for _, v in agg.daily_series(SALES, MX)) == grand
    assert sum(v for _, v in agg.method_distribution(SALES)) == grand
    assert sum(e.total_income for e in agg.employee_performance(SALES)) == grand
