from unittest.mock import MagicMock

from backend.admin import service as admin_service


def test_list_orders_flattens_buyer_email_and_counts(monkeypatch):
    repo = MagicMock()
    repo.list_orders.return_value = [
        {"order_no": "SO1", "status": "pending_shipment", "user": {"id": "u1", "email": "a@example.com"}},
        {"order_no": "SO2", "status": "pending_shipment", "user": None},
    ]
    repo.count_orders.return_value = 42
    monkeypatch.setattr(admin_service, "orders_repository", repo)

    result = admin_service.list_orders(page=2, limit=2, status="pending_shipment", order_no="SO")

    repo.list_orders.assert_called_once_with(page=2, limit=2, status="pending_shipment", order_no="SO")
    repo.count_orders.assert_called_once_with(status="pending_shipment", order_no="SO")
    assert result["total"] == 42
    assert [i["user_email"] for i in result["items"]] == ["a@example.com", None]


def test_ship_order_delegates(monkeypatch):
    ship = MagicMock(return_value={"order_no": "SO1", "status": "shipped"})
    monkeypatch.setattr(admin_service.orders_service, "ship_order", ship)
    assert admin_service.ship_order("SO1", "UPS", "1Z")["status"] == "shipped"
    ship.assert_called_once_with("SO1", "UPS", "1Z")
