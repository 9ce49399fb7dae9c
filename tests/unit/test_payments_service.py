import pytest
from fastapi import HTTPException
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

from backend import config
from backend.orders.models import OrderStateError
from backend.payments import service as payments_service
from backend.payments.token import InMemoryReplayGuard, PaymentTokenConfigError, generate_payment_token

ORDER = {
    "id": "order-1",
    "order_no": "SO1700000000000ABCD",
    "user_id": "u1",
    "status": "pending_payment",
    "currency": "EUR",
    "total_amount": 2500,
}
ITEMS = [
    {"order_id": "order-1", "product_name": "Mug", "quantity": 2, "unit_price": 1000, "currency": "EUR"},
    {"order_id": "order-1", "product_name": "Sticker", "quantity": 1, "unit_price": 500, "currency": "EUR", "product_image": "https://img/s.png"},
]


@pytest.fixture
def orders_repo(monkeypatch):
    repo = MagicMock()
    repo.get_order_by_id.side_effect = lambda oid: dict(ORDER) if oid == ORDER["id"] else None
    repo.get_order_items.return_value = list(ITEMS)
    monkeypatch.setattr(payments_service, "orders_repository", repo)
    return repo


@pytest.fixture
def stripe_calls(monkeypatch):
    calls = []

    def fake_create_session(**kwargs):
        calls.append(kwargs)
        return {"id": "cs_test_123", "url": "https://checkout.stripe.test/cs_test_123"}

    monkeypatch.setattr(payments_service.stripe_client, "create_session", fake_create_session)
    return calls


@pytest.fixture
def attach(monkeypatch):
    mock = MagicMock(return_value={"id": "order-1"})
    monkeypatch.setattr(payments_service.orders_service, "attach_checkout_session", mock)
    return mock


# --- create_payment_link (site A) ---

def test_create_payment_link():
    link = payments_service.create_payment_link(dict(ORDER))
    parsed = urlparse(link["url"])
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://pay.example.test/pay"
    assert parse_qs(parsed.query) == {"token": [link["token"]], "type": ["shop"]}


def test_create_payment_link_requires_pending_payment():
    with pytest.raises(OrderStateError):
        payments_service.create_payment_link({**ORDER, "status": "shipped"})


def test_create_payment_link_without_secret(monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_TOKEN_SECRET", "")
    with pytest.raises(PaymentTokenConfigError):
        payments_service.create_payment_link(dict(ORDER))


# --- process_payment (site B) ---

def test_process_payment_creates_checkout_session(orders_repo, stripe_calls, attach):
    token = generate_payment_token(ORDER["id"], ORDER["order_no"])

    result = payments_service.process_payment(token, "shop")

    assert result == {"checkoutUrl": "https://checkout.stripe.test/cs_test_123", "sessionId": "cs_test_123"}
    [call] = stripe_calls
    assert call["success_url"] == f"https://shop.example.test/shop/order/{ORDER['order_no']}?payment=success"
    assert call["cancel_url"] == f"https://shop.example.test/shop/order/{ORDER['order_no']}?payment=cancel"
    assert call["metadata"]["order_id"] == "order-1"
    assert call["metadata"]["order_no"] == ORDER["order_no"]
    assert call["metadata"]["type"] == "shop"
    assert call["client_reference_id"] == "order-1"
    assert [li["price_data"]["unit_amount"] for li in call["line_items"]] == [1000, 500]
    assert call["line_items"][0]["price_data"]["currency"] == "eur"
    attach.assert_called_once_with("order-1", "cs_test_123")


@pytest.mark.parametrize("token", ["", "garbage", "a.b"])
def test_process_payment_invalid_token(orders_repo, stripe_calls, token):
    with pytest.raises(HTTPException) as exc:
        payments_service.process_payment(token, "shop")
    assert exc.value.status_code == 400
    assert exc.value.detail == "Invalid or expired payment token"
    assert stripe_calls == []


def test_process_payment_expired_token_same_message(orders_repo, stripe_calls):
    token = generate_payment_token(ORDER["id"], ORDER["order_no"], now_ms=0)
    with pytest.raises(HTTPException) as exc:
        payments_service.process_payment(token, "shop")
    assert exc.value.detail == "Invalid or expired payment token"


def test_process_payment_order_no_mismatch(orders_repo, stripe_calls):
    token = generate_payment_token(ORDER["id"], "SO-other")
    with pytest.raises(HTTPException) as exc:
        payments_service.process_payment(token, "shop")
    assert exc.value.status_code == 400
    assert stripe_calls == []


def test_process_payment_unknown_order(orders_repo, stripe_calls):
    token = generate_payment_token("missing", ORDER["order_no"])
    with pytest.raises(HTTPException) as exc:
        payments_service.process_payment(token, "shop")
    assert exc.value.status_code == 400


def test_process_payment_order_not_pending(orders_repo, stripe_calls):
    orders_repo.get_order_by_id.side_effect = lambda oid: {**ORDER, "status": "pending_shipment"}
    token = generate_payment_token(ORDER["id"], ORDER["order_no"])
    with pytest.raises(HTTPException) as exc:
        payments_service.process_payment(token, "shop")
    assert exc.value.status_code == 400
    assert stripe_calls == []


def test_process_payment_unsupported_type(orders_repo, stripe_calls):
    token = generate_payment_token(ORDER["id"], ORDER["order_no"])
    with pytest.raises(HTTPException) as exc:
        payments_service.process_payment(token, "subscription")
    assert exc.value.status_code == 400


def test_process_payment_token_reusable_by_default(orders_repo, stripe_calls, attach):
    token = generate_payment_token(ORDER["id"], ORDER["order_no"])
    payments_service.process_payment(token, "shop")
    payments_service.process_payment(token, "shop")
    assert len(stripe_calls) == 2


def test_process_payment_single_use_tokens(monkeypatch, orders_repo, stripe_calls, attach):
    monkeypatch.setattr(config, "PAYMENT_TOKEN_SINGLE_USE", True)
    payments_service.set_replay_guard(InMemoryReplayGuard())
    token = generate_payment_token(ORDER["id"], ORDER["order_no"])

    payments_service.process_payment(token, "shop")
    with pytest.raises(HTTPException) as exc:
        payments_service.process_payment(token, "shop")
    assert exc.value.detail == "Invalid or expired payment token"


def test_process_payment_single_use_token_survives_stripe_failure(monkeypatch, orders_repo, attach):
    monkeypatch.setattr(config, "PAYMENT_TOKEN_SINGLE_USE", True)
    payments_service.set_replay_guard(InMemoryReplayGuard())
    token = generate_payment_token(ORDER["id"], ORDER["order_no"])

    monkeypatch.setattr(payments_service.stripe_client, "create_session", MagicMock(side_effect=RuntimeError("stripe down")))
    with pytest.raises(RuntimeError):
        payments_service.process_payment(token, "shop")

    healthy = MagicMock(return_value={"id": "cs_retry", "url": "https://checkout.stripe.test/cs_retry"})
    monkeypatch.setattr(payments_service.stripe_client, "create_session", healthy)
    result = payments_service.process_payment(token, "shop")
    assert result["sessionId"] == "cs_retry"

    with pytest.raises(HTTPException) as exc:
        payments_service.process_payment(token, "shop")
    assert exc.value.detail == "Invalid or expired payment token"


def test_process_payment_rejected_order_keeps_single_use_token(monkeypatch, orders_repo, stripe_calls, attach):
    monkeypatch.setattr(config, "PAYMENT_TOKEN_SINGLE_USE", True)
    payments_service.set_replay_guard(InMemoryReplayGuard())
    token = generate_payment_token(ORDER["id"], ORDER["order_no"])

    orders_repo.get_order_items.return_value = []
    with pytest.raises(HTTPException) as exc:
        payments_service.process_payment(token, "shop")
    assert exc.value.status_code == 400
    assert stripe_calls == []

    orders_repo.get_order_items.return_value = list(ITEMS)
    assert payments_service.process_payment(token, "shop")["sessionId"] == "cs_test_123"


def test_get_replay_guard_defaults(monkeypatch):
    assert payments_service.get_replay_guard() is None
    monkeypatch.setattr(config, "PAYMENT_TOKEN_SINGLE_USE", True)
    monkeypatch.setattr(config, "RATES_REDIS_URL", "")
    assert isinstance(payments_service.get_replay_guard(), InMemoryReplayGuard)


# --- handle_checkout_completed (webhook) ---

def _event(metadata, **session):
    return {"type": "checkout.session.completed", "data": {"object": {"id": "cs_1", "metadata": metadata, **session}}}


def test_handle_checkout_completed_marks_order_paid(monkeypatch):
    mark = MagicMock(return_value={"order_no": "SO1", "status": "pending_shipment"})
    monkeypatch.setattr(payments_service.orders_service, "mark_order_paid", mark)

    order = payments_service.handle_checkout_completed(
        _event({"order_id": "order-1", "order_no": "SO1", "type": "shop"}, payment_status="paid", amount_total=2500)
    )

    assert order["status"] == "pending_shipment"
    args = mark.call_args[0]
    assert args[0] == "order-1"
    assert args[1]["amount_total"] == 2500


def test_handle_checkout_completed_uses_client_reference(monkeypatch):
    mark = MagicMock(return_value={"order_no": "SO1"})
    monkeypatch.setattr(payments_service.orders_service, "mark_order_paid", mark)
    payments_service.handle_checkout_completed(_event({}, client_reference_id="order-9", payment_status="paid"))
    assert mark.call_args[0][0] == "order-9"


def test_handle_checkout_completed_ignores_other_flows(monkeypatch):
    mark = MagicMock()
    monkeypatch.setattr(payments_service.orders_service, "mark_order_paid", mark)
    assert payments_service.handle_checkout_completed(_event({"order_id": "x", "type": "ticket"})) is None
    assert payments_service.handle_checkout_completed(_event({})) is None
    assert payments_service.handle_checkout_completed(_event({"order_id": "x"}, payment_status="unpaid")) is None
    mark.assert_not_called()
