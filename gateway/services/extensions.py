"""
CSOB Gateway Client -- Extensions

Optional add-on objects sent with a request and/or returned with a response,
each carrying its own signature. An extension owns:

  - its request data (ordered; None = the extension affects only the response)
  - the expected key order of its response object (None = natural order)
  - a strictness flag: True aborts the whole call when its response signature
    is wrong, False only records the outcome on the extension

Extensions live for a single call: the caller creates them, the response
validator attaches response data and the verification outcome, then they are
discarded.
"""

import datetime
import logging
import re

from services import crypto_service
from services.log_sinks import NULL_SINK
from services.signature_base import create_signature_base, without_signature

logger = logging.getLogger("csob.extensions")


class Extension:
  """Generic extension. Subclasses usually fix the id, the data shape and the response order."""

  def __init__(
    self,
    extension_id,
    input_data=None,
    expected_response_keys_order=None,
    strict_signature_verification=True,
    hash_method=None,
  ):
    if not extension_id:
      raise ValueError("No extension ID given!")
    self.extension_id = extension_id
    self.input_data = input_data
    self.expected_response_keys_order = expected_response_keys_order
    self.strict_signature_verification = strict_signature_verification
    # None = inherit the digest of the main configuration
    self.hash_method = hash_method
    self.response_data = None
    # None until a response object for this extension has been checked
    self.signature_correct = None

  def __repr__(self):
    return f"{type(self).__name__}({self.extension_id!r})"

  # -----------------------------------------------------------------------
  # Request side
  # -----------------------------------------------------------------------

  def build_request_data(self):
    """
    Ordered data to send with the request, or None to send nothing.

    Key order is significant: it is the order of the signature base. A "dttm"
    or "extension" key with an empty value is filled in automatically.
    """
    if not self.input_data:
      return None
    return dict(self.input_data)

  def request_signature_base(self, request_data):
    """Base string for signing the request object (natural key order)."""
    return create_signature_base(without_signature(request_data))

  # -----------------------------------------------------------------------
  # Response side
  # -----------------------------------------------------------------------

  def response_signature_base(self, response_without_signature):
    """Base string for verifying the response object."""
    return create_signature_base(response_without_signature, self.expected_response_keys_order)

  def set_response_data(self, response_data):
    self.response_data = response_data

  def verify(self, received_data, public_key_pem, hash_method, trace_log=NULL_SINK):
    """Check the signature of this extension's response object."""
    signature = received_data.get("signature")
    if not signature:
      return False

    base_string = self.response_signature_base(without_signature(received_data))
    trace_log.write(
      f"Verifying signature of response of extension {self.extension_id}, base string is: {base_string}"
    )
    return crypto_service.verify_signature(base_string, signature, public_key_pem, hash_method)


# ---------------------------------------------------------------------------
# trxDates -- transaction dates for payment/status
# ---------------------------------------------------------------------------

_AUTH_DATE_PATTERN = re.compile(r"^\d{12}$")
_SETTLEMENT_DATE_PATTERN = re.compile(r"^\d{8}$")


def parse_iso_datetime(value):
  """ISO 8601 timestamp, also with a trailing "Z" (not accepted by fromisoformat before 3.11)."""
  value = str(value).strip()
  if value.endswith(("Z", "z")):
    value = value[:-1] + "+00:00"
  return datetime.datetime.fromisoformat(value)


class DatesExtension(Extension):
  """'trxDates' extension for payment/status. Response only."""

  def __init__(self, strict_signature_verification=True):
    super().__init__(
      "trxDates",
      expected_response_keys_order=[
        "extension",
        "dttm",
        "?createdDate",
        "?authDate",
        "?settlementDate",
      ],
      strict_signature_verification=strict_signature_verification,
    )
    self.created_date = None
    self.auth_date = None
    self.settlement_date = None

  def set_response_data(self, response_data):
    super().set_response_data(response_data)

    self.created_date = None
    created_date = response_data.get("createdDate")
    if created_date:
      try:
        self.created_date = parse_iso_datetime(created_date)
      except ValueError:
        logger.warning("Unparseable createdDate in trxDates extension: %s", created_date)

    # authDate is yyMMddHHmmss
    self.auth_date = None
    auth_date = response_data.get("authDate")
    if auth_date and _AUTH_DATE_PATTERN.match(str(auth_date)):
      self.auth_date = datetime.datetime.strptime(str(auth_date), "%y%m%d%H%M%S")

    # settlementDate is yyyyMMdd
    self.settlement_date = None
    settlement_date = response_data.get("settlementDate")
    if settlement_date and _SETTLEMENT_DATE_PATTERN.match(str(settlement_date)):
      self.settlement_date = datetime.datetime.strptime(str(settlement_date), "%Y%m%d").date()


# ---------------------------------------------------------------------------
# maskClnRP -- masked card number for payment/status
# ---------------------------------------------------------------------------

class CardNumberExtension(Extension):
  """'maskClnRP' extension for payment/status. Response only."""

  def __init__(self, strict_signature_verification=True):
    super().__init__(
      "maskClnRP",
      expected_response_keys_order=[
        "extension",
        "dttm",
        "maskedCln",
        "expiration",
        "longMaskedCln",
      ],
      strict_signature_verification=strict_signature_verification,
    )
    self.masked_cln = None
    self.expiration = None
    self.long_masked_cln = None

  def set_response_data(self, response_data):
    super().set_response_data(response_data)
    # ****1234
    self.masked_cln = response_data.get("maskedCln")
    # MM/YY
    self.expiration = response_data.get("expiration")
    # 411111****1234
    self.long_masked_cln = response_data.get("longMaskedCln")
