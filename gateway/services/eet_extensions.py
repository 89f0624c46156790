"""
CSOB Gateway Client -- EET Extensions

'eetV3' extension: registration of card sales in the Czech electronic sales
registry (EET). Sent with payment/init, payment/oneclick/init and
payment/refund; reported back by payment/status.

Prices here are in CZK with two decimals, NOT in hundredths like the Payment
object.
"""

from decimal import Decimal

from services.extensions import Extension
from services.signature_base import SIGNATURE_BASE_SEPARATOR, scalar_token

EET_EXTENSION_ID = "eetV3"

# Optional amounts, in the order the gateway signs them
_EET_OPTIONAL_PRICE_KEYS = (
  "priceZeroVat",
  "priceStandardVat",
  "vatStandard",
  "priceFirstReducedVat",
  "vatFirstReduced",
  "priceSecondReducedVat",
  "vatSecondReduced",
  "priceTravelService",
  "priceUsedGoodsStandardVat",
  "priceUsedGoodsFirstReduced",
  "priceUsedGoodsSecondReduced",
  "priceSubsequentSettlement",
  "priceUsedSubsequentSettlement",
)

# Report keys that the gateway echoes verbatim into the signature base
_EET_REPORT_SCALAR_KEYS = (
  "vatId",
  "receiptNumber",
  "receiptTime",
  "evidenceMode",
  "uuid",
  "sendTime",
  "acceptTime",
  "bkp",
  "pkp",
  "fik",
  "rejectTime",
)


def format_eet_price(price):
  """12.5 -> '12.50'"""
  return f"{Decimal(str(price)):.2f}"


class EETData:
  """The EET data set: premise, cash register, total price and optional VAT breakdown."""

  def __init__(self, premise_id=None, cash_register_id=None, total_price=None, **optional_prices):
    self.premise_id = premise_id
    self.cash_register_id = cash_register_id
    self.total_price = total_price
    self.delegated_vat_id = optional_prices.pop("delegatedVatId", None)
    unknown_keys = set(optional_prices) - set(_EET_OPTIONAL_PRICE_KEYS)
    if unknown_keys:
      raise ValueError(f"Unknown EET price keys: {sorted(unknown_keys)}")
    self.optional_prices = dict(optional_prices)
    # Only for data received from the gateway
    self.raw_data = None

  def as_dict(self):
    data = {
      "premiseId": int(self.premise_id),
      "cashRegisterId": self.cash_register_id,
      "totalPrice": format_eet_price(self.total_price),
    }
    if self.delegated_vat_id:
      data["delegatedVatId"] = self.delegated_vat_id
    for key in _EET_OPTIONAL_PRICE_KEYS:
      if self.optional_prices.get(key):
        data[key] = format_eet_price(self.optional_prices[key])
    return data

  def signature_tokens(self):
    return [scalar_token(value) for value in self.as_dict().values()]

  @classmethod
  def from_dict(cls, data):
    optional_prices = {key: data[key] for key in _EET_OPTIONAL_PRICE_KEYS if key in data}
    if "delegatedVatId" in data:
      optional_prices["delegatedVatId"] = data["delegatedVatId"]
    eet_data = cls(data.get("premiseId"), data.get("cashRegisterId"), data.get("totalPrice"), **optional_prices)
    eet_data.raw_data = data
    return eet_data


class EETReport:
  """One EET registration report (the 'report' or a 'cancel' item of payment/status)."""

  def __init__(self, raw_data):
    self.raw_data = raw_data
    self.eet_status = raw_data.get("eetStatus")
    self.data = EETData.from_dict(raw_data["data"]) if raw_data.get("data") else None
    self.verification_mode = raw_data.get("verificationMode")
    self.bkp = raw_data.get("bkp")
    self.pkp = raw_data.get("pkp")
    self.fik = raw_data.get("fik")
    self.error = raw_data.get("error")
    self.warnings = list(raw_data.get("warning") or [])

  def signature_tokens(self):
    """Tokens in signing order. Times are taken verbatim from the received data."""
    tokens = []
    if self.eet_status is not None:
      tokens.append(scalar_token(self.eet_status))
    if self.data:
      tokens.extend(self.data.signature_tokens())
    if self.verification_mode is not None:
      tokens.append(scalar_token(self.verification_mode))
    for key in _EET_REPORT_SCALAR_KEYS:
      value = self.raw_data.get(key)
      if value is not None and value != "":
        tokens.append(scalar_token(value))
    if self.error:
      tokens.extend([scalar_token(self.error.get("code")), scalar_token(self.error.get("desc"))])
    for warning in self.warnings:
      tokens.extend([scalar_token(warning.get("code")), scalar_token(warning.get("desc"))])
    return tokens


class EETInitExtension(Extension):
  """EET data for payment/init and payment/oneclick/init."""

  def __init__(self, eet_data, verification_mode=False, strict_signature_verification=True):
    super().__init__(EET_EXTENSION_ID, strict_signature_verification=strict_signature_verification)
    self.eet_data = eet_data
    self.verification_mode = bool(verification_mode)

  def build_request_data(self):
    return {
      "extension": self.extension_id,
      "dttm": None,
      "data": self.eet_data.as_dict(),
      "verificationMode": "true" if self.verification_mode else "false",
    }


class EETRefundExtension(Extension):
  """EET data for payment/refund (negative total price). Sends nothing without data."""

  def __init__(self, eet_data=None, strict_signature_verification=True):
    super().__init__(EET_EXTENSION_ID, strict_signature_verification=strict_signature_verification)
    self.eet_data = eet_data

  def build_request_data(self):
    if not self.eet_data:
      return None
    return {
      "extension": self.extension_id,
      "dttm": None,
      "data": self.eet_data.as_dict(),
    }


class EETStatusExtension(Extension):
  """EET report returned by payment/status. Response only."""

  def __init__(self, strict_signature_verification=True):
    super().__init__(EET_EXTENSION_ID, strict_signature_verification=strict_signature_verification)
    self.report = None
    self.cancels = []

  def set_response_data(self, response_data):
    super().set_response_data(response_data)
    self.report = EETReport(response_data["report"]) if response_data.get("report") else None
    self.cancels = [EETReport(cancel) for cancel in response_data.get("cancel") or []]

  def response_signature_base(self, response_without_signature):
    tokens = [
      scalar_token(response_without_signature.get("extension") or ""),
      scalar_token(response_without_signature.get("dttm") or ""),
    ]
    if self.report:
      tokens.extend(self.report.signature_tokens())
    for cancel in self.cancels:
      tokens.extend(cancel.signature_tokens())
    return SIGNATURE_BASE_SEPARATOR.join(tokens)

  @property
  def fik(self):
    return self.report.fik if self.report else ""

  @property
  def bkp(self):
    return self.report.bkp if self.report else ""

  @property
  def pkp(self):
    return self.report.pkp if self.report else ""

  @property
  def eet_status(self):
    return self.report.eet_status if self.report else ""
