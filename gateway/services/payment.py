"""
CSOB Gateway Client -- Payment

The order a customer is about to pay, as sent to payment/init. Amounts are in
hundredths of the currency unit (1.00 CZK = 100).

Usage:
  payment = Payment("1234")
  payment.add_cart_item("Shirt", 1, 49900)
  client.payment_init(payment)
  client.get_payment_process_url(payment)   # send the customer there
"""

import base64
import binascii
import re

from services.purchase_metadata import trim_text

OPERATION_PAYMENT = "payment"
OPERATION_ONE_CLICK = "oneclickPayment"

MAX_CART_ITEMS = 2
MAX_MERCHANT_DATA_LENGTH = 255

_ORDER_NO_PATTERN = re.compile(r"^[0-9]{1,10}$")

# Signed in this order. Every one of them is always sent, "" when unset.
_FIELDS_IN_ORDER = (
  "merchantId",
  "orderNo",
  "dttm",
  "payOperation",
  "payMethod",
  "totalAmount",
  "currency",
  "closePayment",
  "returnUrl",
  "returnMethod",
  "cart",
  "description",
  "merchantData",
  "customerId",
  "language",
  "ttlSec",
)

# Sent (and signed) only when set
_AUX_FIELDS_IN_ORDER = (
  "logoVersion",
  "colorSchemeVersion",
)

# payment/init dropped free-text description in 1.8
_DESCRIPTION_DROPPED_IN_VERSION = "1.8"
# customer/order purchase metadata exists since 1.9
_PURCHASE_METADATA_SINCE_VERSION = "1.9"


class Payment:
  def __init__(self, order_no="", merchant_data=None, customer_id=None, one_click_payment=None):
    self.order_no = order_no
    self.customer_id = customer_id
    self.currency = None
    self.close_payment = None
    self.return_url = None
    self.return_method = None
    self.description = None
    self.language = None
    self.pay_operation = None
    self.pay_method = None
    self.ttl_sec = None
    self.logo_version = None
    self.color_scheme_version = None
    # purchase_metadata.Customer / Order, sent from 1.9
    self.customer = None
    self.order = None

    self.merchant_id = None
    # Assigned by the gateway in payment/init
    self.pay_id = None

    self._cart = []
    self._merchant_data = None

    if merchant_data:
      self.set_merchant_data(merchant_data)
    if one_click_payment is not None:
      self.set_one_click_payment(one_click_payment)

  def __repr__(self):
    return f"Payment(order_no={self.order_no!r}, pay_id={self.pay_id!r})"

  # -----------------------------------------------------------------------
  # Cart
  # -----------------------------------------------------------------------

  def add_cart_item(self, name, quantity, total_amount, description=""):
    """
    Add an item. `total_amount` is for all pieces together, in hundredths.
    The gateway accepts at most two items.
    """
    if len(self._cart) >= MAX_CART_ITEMS:
      raise ValueError(
        f"The gateway supports only up to {MAX_CART_ITEMS} cart items in a single payment."
      )
    try:
      quantity_valid = float(quantity) >= 1
    except (TypeError, ValueError):
      quantity_valid = False
    if not quantity_valid:
      raise ValueError(f"Invalid quantity: {quantity}. It must be numeric and >= 1")

    self._cart.append({
      "name": trim_text(name, 20),
      "quantity": quantity,
      "amount": int(round(total_amount)),
      "description": trim_text(description, 40),
    })
    return self

  @property
  def cart(self):
    return [dict(item) for item in self._cart]

  @property
  def total_amount(self):
    return sum(item["amount"] for item in self._cart)

  # -----------------------------------------------------------------------
  # Merchant data
  # -----------------------------------------------------------------------

  def set_merchant_data(self, data, already_encoded=False):
    """Arbitrary merchant data, echoed back on return. Max 255 chars once Base64-encoded."""
    if not already_encoded:
      if isinstance(data, str):
        data = data.encode("utf-8")
      data = base64.b64encode(data).decode("ascii")
    if len(data) > MAX_MERCHANT_DATA_LENGTH:
      raise ValueError(
        f"Merchant data can not be longer than {MAX_MERCHANT_DATA_LENGTH} characters "
        "after base64 encoding."
      )
    self._merchant_data = data
    return self

  @property
  def merchant_data(self):
    """Decoded merchant data ("" when unset)."""
    if not self._merchant_data:
      return ""
    try:
      return base64.b64decode(self._merchant_data).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
      return ""

  @property
  def merchant_data_encoded(self):
    return self._merchant_data or ""

  def set_one_click_payment(self, one_click=True):
    """Mark this payment as a template for later one-click payments."""
    self.pay_operation = OPERATION_ONE_CLICK if one_click else OPERATION_PAYMENT
    return self

  # -----------------------------------------------------------------------
  # Export
  # -----------------------------------------------------------------------

  def check_and_prepare(self, gateway_config):
    """Fill defaults from the configuration and validate. Raises ValueError."""
    self.merchant_id = gateway_config.merchant_id

    self.pay_operation = self.pay_operation or OPERATION_PAYMENT
    self.pay_method = self.pay_method or "card"
    self.currency = self.currency or "CZK"
    self.language = self.language or "CZ"
    if not self.ttl_sec or not str(self.ttl_sec).isdigit():
      self.ttl_sec = 1800
    if self.close_payment is None:
      self.close_payment = bool(gateway_config.close_payment)

    self.return_url = self.return_url or gateway_config.return_url
    if not self.return_url:
      raise ValueError(
        "A return URL must be set, either on the payment or in the gateway configuration."
      )
    self.return_method = self.return_method or gateway_config.return_method

    if not self.description:
      self.description = f"{gateway_config.shop_name}, {self.order_no}"
    self.description = trim_text(self.description, 240, "...")
    self.customer_id = trim_text(self.customer_id, 50) or None

    if not self._cart:
      raise ValueError("Cart is empty. Please add one or two items into the cart using add_cart_item().")
    if not self.order_no or not _ORDER_NO_PATTERN.match(str(self.order_no)):
      raise ValueError("Invalid order_no - it must be a non-empty numeric value, 10 characters max.")
    return self

  def request_fields(self, gateway_config):
    """Ordered field spec of payment/init for the configured protocol version."""
    fields = []
    for field_name in _FIELDS_IN_ORDER:
      if field_name == "description" and gateway_config.query_api_version(_DESCRIPTION_DROPPED_IN_VERSION):
        continue
      fields.append(field_name)
      if field_name == "cart" and gateway_config.query_api_version(_PURCHASE_METADATA_SINCE_VERSION):
        fields.extend(["?customer", "?order"])
    fields.extend("?" + field_name for field_name in _AUX_FIELDS_IN_ORDER)
    return fields

  def _field_values(self):
    return {
      "merchantId": self.merchant_id,
      "orderNo": self.order_no,
      # filled by the envelope builder
      "dttm": "",
      "payOperation": self.pay_operation,
      "payMethod": self.pay_method,
      "totalAmount": self.total_amount,
      "currency": self.currency,
      "closePayment": self.close_payment,
      "returnUrl": self.return_url,
      "returnMethod": self.return_method,
      "cart": self.cart,
      "customer": self.customer.export() if self.customer else None,
      "order": self.order.export() if self.order else None,
      "description": self.description,
      "merchantData": self.merchant_data_encoded,
      "customerId": self.customer_id,
      "language": self.language,
      "ttlSec": self.ttl_sec,
      "logoVersion": self.logo_version,
      "colorSchemeVersion": self.color_scheme_version,
    }

  def export(self, gateway_config):
    """Ordered payload of payment/init (unsigned). Call check_and_prepare() first."""
    values = self._field_values()
    payload = {}
    for field in self.request_fields(gateway_config):
      field_name = field.lstrip("?")
      value = values[field_name]
      if field.startswith("?"):
        if value is not None:
          payload[field_name] = value
      else:
        payload[field_name] = "" if value is None else value
    return payload
