"""
CSOB Gateway Client -- Purchase Metadata

Optional customer and order details sent with payment/init from protocol 1.9
on (used by the gateway for 3-D Secure risk scoring). Every object exports an
ordered dict with texts trimmed to the gateway's limits and empty fields
dropped; nested objects are exported recursively and flattened into the
signature base like any other nested value.
"""

import datetime


def trim_text(text, max_length, ending=""):
  """Strip whitespace and cut to `max_length` characters (ending included)."""
  if text is None:
    return ""
  text = str(text).strip()
  if len(text) <= max_length:
    return text
  return text[:max_length - len(ending)].rstrip() + ending


def filter_out_empty_fields(data):
  """Drop None and "" values. 0 and False are kept."""
  return {key: value for key, value in data.items() if value is not None and value != ""}


def _format_timestamp(value):
  if not value:
    return None
  if isinstance(value, datetime.datetime):
    return value.isoformat(timespec="seconds")
  return value.isoformat()


# ---------------------------------------------------------------------------
# Customer
# ---------------------------------------------------------------------------

class Account:
  """Customer's account history at the merchant."""

  def __init__(
    self,
    created_at=None,
    changed_at=None,
    changed_pwd_at=None,
    order_history=0,
    payments_day=0,
    payments_year=0,
    oneclick_adds=0,
    suspicious=False,
  ):
    self.created_at = created_at
    self.changed_at = changed_at
    self.changed_pwd_at = changed_pwd_at
    self.order_history = order_history
    self.payments_day = payments_day
    self.payments_year = payments_year
    self.oneclick_adds = oneclick_adds
    self.suspicious = suspicious

  def export(self):
    return filter_out_empty_fields({
      "createdAt": _format_timestamp(self.created_at),
      "changedAt": _format_timestamp(self.changed_at),
      "changedPwdAt": _format_timestamp(self.changed_pwd_at),
      "orderHistory": int(self.order_history or 0),
      "paymentsDay": int(self.payments_day or 0),
      "paymentsYear": int(self.payments_year or 0),
      "oneclickAdds": int(self.oneclick_adds or 0),
      "suspicious": bool(self.suspicious),
    })


class Login:
  """How the customer authenticated at the merchant."""

  AUTH_GUEST = "guest"
  AUTH_ACCOUNT = "account"
  AUTH_FEDERATED = "federated"
  AUTH_ISSUER = "issuer"
  AUTH_THIRDPARTY = "thirdparty"
  AUTH_FIDO = "fido"
  AUTH_FIDO_SIGNED = "fido_signed"
  AUTH_API = "api"

  def __init__(self, auth="", auth_at=None, auth_data=""):
    self.auth = auth
    self.auth_at = auth_at
    self.auth_data = auth_data

  def export(self):
    return filter_out_empty_fields({
      "auth": trim_text(self.auth, 20),
      "authAt": _format_timestamp(self.auth_at),
      "authData": trim_text(self.auth_data, 2048),
    })


class Customer:
  def __init__(
    self,
    name="",
    email="",
    home_phone="",
    work_phone="",
    mobile_phone="",
    account=None,
    login=None,
  ):
    self.name = name
    self.email = email
    self.home_phone = home_phone
    self.work_phone = work_phone
    self.mobile_phone = mobile_phone
    self.account = account
    self.login = login

  def export(self):
    return filter_out_empty_fields({
      "name": trim_text(self.name, 45),
      "email": trim_text(self.email, 100),
      "homePhone": trim_text(self.home_phone, 20),
      "workPhone": trim_text(self.work_phone, 20),
      "mobilePhone": trim_text(self.mobile_phone, 20),
      "account": self.account.export() if self.account else None,
      "login": self.login.export() if self.login else None,
    })


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------

class Address:
  def __init__(self, address1, city, zip_code, country, address2="", address3="", state=""):
    self.address1 = address1
    self.address2 = address2
    self.address3 = address3
    self.city = city
    self.zip_code = zip_code
    self.state = state
    # ISO 3166-1 alpha-3, e.g. "CZE"
    self.country = country

  def export(self):
    return filter_out_empty_fields({
      "address1": trim_text(self.address1, 50),
      "address2": trim_text(self.address2, 50),
      "address3": trim_text(self.address3, 50),
      "city": trim_text(self.city, 50),
      "zip": trim_text(self.zip_code, 16),
      "state": trim_text(self.state, 3),
      "country": trim_text(self.country, 3),
    })


class GiftCards:
  def __init__(self, total_amount=None, currency=None, quantity=None):
    self.total_amount = total_amount
    self.currency = currency
    self.quantity = quantity

  def export(self):
    return filter_out_empty_fields({
      "totalAmount": self.total_amount,
      "currency": self.currency,
      "quantity": self.quantity,
    })


class Order:
  TYPE_PURCHASE = "purchase"
  TYPE_BALANCE = "balance"
  TYPE_PREPAID = "prepaid"
  TYPE_CASH = "cash"
  TYPE_CHECK = "check"

  AVAILABILITY_NOW = "now"
  AVAILABILITY_PREORDER = "preorder"

  DELIVERY_SHIPPING = "shipping"
  DELIVERY_SHIPPING_VERIFIED = "shipping_verified"
  DELIVERY_INSTORE = "instore"
  DELIVERY_DIGITAL = "digital"
  DELIVERY_TICKET = "ticket"
  DELIVERY_OTHER = "other"

  DELIVERY_MODE_ELECTRONIC = 0
  DELIVERY_MODE_SAME_DAY = 1
  DELIVERY_MODE_NEXT_DAY = 2
  DELIVERY_MODE_LATER = 3

  def __init__(
    self,
    order_type="",
    availability="",
    delivery="",
    delivery_mode=DELIVERY_MODE_ELECTRONIC,
    delivery_email="",
    name_match=False,
    address_match=False,
    billing=None,
    shipping=None,
    shipping_added_at=None,
    reorder=False,
    gift_cards=None,
  ):
    self.order_type = order_type
    self.availability = availability
    self.delivery = delivery
    self.delivery_mode = delivery_mode
    self.delivery_email = delivery_email
    self.name_match = name_match
    self.address_match = address_match
    self.billing = billing
    self.shipping = shipping
    self.shipping_added_at = shipping_added_at
    self.reorder = reorder
    self.gift_cards = gift_cards

  def export(self):
    return filter_out_empty_fields({
      "type": trim_text(self.order_type, 20),
      "availability": trim_text(self.availability, 20),
      "delivery": trim_text(self.delivery, 20),
      "deliveryMode": int(self.delivery_mode or 0),
      "deliveryEmail": trim_text(self.delivery_email, 100),
      "nameMatch": bool(self.name_match),
      "addressMatch": bool(self.address_match),
      "billing": self.billing.export() if self.billing else None,
      "shipping": self.shipping.export() if self.shipping else None,
      "shippingAddedAt": _format_timestamp(self.shipping_added_at),
      "reorder": bool(self.reorder),
      "giftcards": self.gift_cards.export() if self.gift_cards else None,
    })
