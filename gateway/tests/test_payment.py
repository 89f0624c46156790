"""
Unit tests for payment.py and purchase_metadata.py.

Run with: python -m pytest tests/test_payment.py -v
"""

import base64
import datetime
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

import config
from services.payment import OPERATION_ONE_CLICK, OPERATION_PAYMENT, Payment
from services.purchase_metadata import (
  Account,
  Address,
  Customer,
  GiftCards,
  Login,
  Order,
  filter_out_empty_fields,
  trim_text,
)
from services.signature_base import create_signature_base


def _prepared_payment(gateway_config, **attributes):
  payment = Payment("1234")
  payment.add_cart_item("Shirt", 1, 49900)
  for name, value in attributes.items():
    setattr(payment, name, value)
  return payment.check_and_prepare(gateway_config)


class TestCart:
  def test_total_is_sum_of_items(self):
    payment = Payment("1")
    payment.add_cart_item("Shirt", 2, 1000)
    payment.add_cart_item("Shipping", 1, 99.6)
    assert payment.total_amount == 1100

  def test_at_most_two_items(self):
    payment = Payment("1")
    payment.add_cart_item("a", 1, 1)
    payment.add_cart_item("b", 1, 1)
    with pytest.raises(ValueError):
      payment.add_cart_item("c", 1, 1)

  @pytest.mark.parametrize("quantity", [0, -1, "many", None])
  def test_invalid_quantity(self, quantity):
    with pytest.raises(ValueError):
      Payment("1").add_cart_item("a", quantity, 1)

  def test_texts_are_trimmed(self):
    payment = Payment("1")
    payment.add_cart_item("  " + "N" * 30, 1, 1, "D" * 50)
    item = payment.cart[0]
    assert item["name"] == "N" * 20
    assert item["description"] == "D" * 40

  def test_cart_property_is_a_copy(self):
    payment = Payment("1")
    payment.add_cart_item("a", 1, 1)
    payment.cart[0]["amount"] = 999
    assert payment.total_amount == 1


class TestMerchantData:
  def test_encoded_on_set(self):
    payment = Payment("1", merchant_data="order 1234")
    assert payment.merchant_data_encoded == base64.b64encode(b"order 1234").decode("ascii")
    assert payment.merchant_data == "order 1234"

  def test_already_encoded(self):
    payment = Payment("1")
    payment.set_merchant_data("b3JkZXI=", already_encoded=True)
    assert payment.merchant_data == "order"

  def test_too_long(self):
    with pytest.raises(ValueError):
      Payment("1", merchant_data="x" * 200)

  def test_unset_is_empty(self):
    assert Payment("1").merchant_data == ""
    assert Payment("1").merchant_data_encoded == ""


class TestCheckAndPrepare:
  def test_defaults(self, gateway_config):
    payment = _prepared_payment(gateway_config)
    assert payment.merchant_id == gateway_config.merchant_id
    assert payment.pay_operation == OPERATION_PAYMENT
    assert payment.pay_method == "card"
    assert payment.currency == "CZK"
    assert payment.language == "CZ"
    assert payment.ttl_sec == 1800
    assert payment.close_payment is True
    assert payment.return_url == "https://shop.example/return"
    assert payment.return_method == "POST"
    assert payment.description == "Test shop, 1234"

  def test_close_payment_default_from_config(self, make_config):
    payment = _prepared_payment(make_config(close_payment=False))
    assert payment.close_payment is False

  def test_one_click(self, gateway_config):
    payment = Payment("1", one_click_payment=True)
    payment.add_cart_item("a", 1, 1)
    payment.check_and_prepare(gateway_config)
    assert payment.pay_operation == OPERATION_ONE_CLICK

  def test_missing_return_url(self, make_config):
    gateway_config = make_config(return_url=None)
    payment = Payment("1")
    payment.add_cart_item("a", 1, 1)
    with pytest.raises(ValueError):
      payment.check_and_prepare(gateway_config)

  def test_empty_cart(self, gateway_config):
    with pytest.raises(ValueError):
      Payment("1").check_and_prepare(gateway_config)

  @pytest.mark.parametrize("order_no", ["", "12345678901", "12a"])
  def test_invalid_order_no(self, gateway_config, order_no):
    payment = Payment(order_no)
    payment.add_cart_item("a", 1, 1)
    with pytest.raises(ValueError):
      payment.check_and_prepare(gateway_config)

  def test_long_description_is_shortened(self, gateway_config):
    payment = _prepared_payment(gateway_config, description="x" * 300)
    assert len(payment.description) == 240
    assert payment.description.endswith("...")


class TestExport:
  def test_fields_before_1_8_include_description(self, make_config):
    gateway_config = make_config(url=config.GATEWAY_URL_TEST_1_7)
    fields = _prepared_payment(gateway_config).request_fields(gateway_config)
    assert "description" in fields
    assert "?customer" not in fields

  def test_fields_1_8_drop_description(self, make_config):
    gateway_config = make_config(url=config.GATEWAY_URL_TEST_1_8)
    fields = _prepared_payment(gateway_config).request_fields(gateway_config)
    assert "description" not in fields
    assert "?customer" not in fields

  def test_fields_1_9_add_purchase_metadata_after_cart(self, gateway_config):
    fields = _prepared_payment(gateway_config).request_fields(gateway_config)
    cart_position = fields.index("cart")
    assert fields[cart_position + 1:cart_position + 3] == ["?customer", "?order"]
    assert fields[-2:] == ["?logoVersion", "?colorSchemeVersion"]

  def test_export_order_and_empty_values(self, make_config):
    gateway_config = make_config(url=config.GATEWAY_URL_TEST_1_7)
    payload = _prepared_payment(gateway_config).export(gateway_config)
    assert list(payload) == [
      "merchantId", "orderNo", "dttm", "payOperation", "payMethod", "totalAmount",
      "currency", "closePayment", "returnUrl", "returnMethod", "cart", "description",
      "merchantData", "customerId", "language", "ttlSec",
    ]
    assert payload["dttm"] == ""
    assert payload["customerId"] == ""
    assert payload["merchantData"] == ""

  def test_signature_base_of_export(self, make_config):
    gateway_config = make_config(url=config.GATEWAY_URL_TEST_1_8)
    payment = _prepared_payment(gateway_config, logo_version=2)
    payload = payment.export(gateway_config)
    payload["dttm"] = "20240101120000"
    base = create_signature_base(payload, payment.request_fields(gateway_config))
    assert base == (
      f"{gateway_config.merchant_id}|1234|20240101120000|payment|card|49900|CZK|true|"
      "https://shop.example/return|POST|Shirt|1|49900||||CZ|1800|2"
    )

  def test_export_with_metadata(self, gateway_config):
    payment = _prepared_payment(gateway_config)
    payment.customer = Customer(name="Jan Novak", email="jan@example.test")
    payment.order = Order(order_type=Order.TYPE_PURCHASE, delivery=Order.DELIVERY_DIGITAL)
    payload = payment.export(gateway_config)
    assert list(payload)[10:13] == ["cart", "customer", "order"]
    assert payload["customer"] == {"name": "Jan Novak", "email": "jan@example.test"}
    assert payload["order"]["type"] == "purchase"


class TestPurchaseMetadata:
  def test_trim_text(self):
    assert trim_text("  abc  ", 10) == "abc"
    assert trim_text("abcdef", 4) == "abcd"
    assert trim_text("abcdef", 5, "..") == "abc.."
    assert trim_text(None, 5) == ""

  def test_filter_keeps_zero_and_false(self):
    assert filter_out_empty_fields({"a": 0, "b": False, "c": "", "d": None}) == {"a": 0, "b": False}

  def test_customer_with_account_and_login(self):
    customer = Customer(
      name="  " + "N" * 50,
      account=Account(created_at=datetime.datetime(2020, 1, 2, 3, 4, 5), order_history=3),
      login=Login(auth=Login.AUTH_ACCOUNT),
    )
    exported = customer.export()
    assert exported["name"] == "N" * 45
    assert exported["account"]["createdAt"] == "2020-01-02T03:04:05"
    assert exported["account"]["orderHistory"] == 3
    assert exported["account"]["suspicious"] is False
    assert exported["login"] == {"auth": "account"}
    assert "email" not in exported

  def test_order_with_addresses_and_gift_cards(self):
    order = Order(
      billing=Address("Main street 1", "Praha", "11000", "CZE"),
      gift_cards=GiftCards(total_amount=1000, currency="CZK", quantity=1),
    )
    exported = order.export()
    assert exported["billing"] == {"address1": "Main street 1", "city": "Praha", "zip": "11000", "country": "CZE"}
    assert exported["giftcards"] == {"totalAmount": 1000, "currency": "CZK", "quantity": 1}
    assert exported["deliveryMode"] == 0
    assert "shipping" not in exported
