"""
CSOB Gateway Client -- Client

Endpoint wrappers over the signing pipeline:

  envelope_builder.build_signed_request()  -> HttpTransport.send()
    -> response_validator.validate_response()

Each wrapper only assembles its payload and field orders, then interprets a
few well-known result codes:

  150  operation not allowed in the current payment state; becomes None when
       the caller passes ignore_wrong_payment_status_error=True
  800  customer not found            (customer/info)
  810  customer has no saved cards   (customer/info)
  820  customer has saved cards      (customer/info)

Payment states (paymentStatus):
  1 new, 2 in progress, 3 cancelled, 4 confirmed, 5 reversed, 6 declined,
  7 waiting for settlement, 8 settled, 9 refund being processed, 10 refunded
"""

import base64
import binascii
import logging

import config
from services import envelope_builder
from services.envelope_builder import HTTP_GET, HTTP_POST, HTTP_PUT
from services.gateway_config import GatewayConfig
from services.gateway_errors import (
  GatewayClientError,
  GatewayError,
  ProtocolError,
  SignatureError,
)
from services.http_transport import HttpTransport
from services.log_sinks import LoggerSink, resolve_log_sink
from services.payment import Payment
from services.response_validator import validate_response, verify_response_signature

logger = logging.getLogger("csob.client")

RESULT_CODE_INVALID_STATE = 150
CUSTOMER_NOT_FOUND = 800
CUSTOMER_NO_CARDS = 810
CUSTOMER_HAS_CARDS = 820

# ---------------------------------------------------------------------------
# Field orders
# ---------------------------------------------------------------------------

PAY_ID_REQUEST_FIELDS = ["merchantId", "payId", "dttm"]

# Error replies omit payId, and only fields that are present are signed
PAYMENT_RESPONSE_FIELDS = [
  "?payId",
  "dttm",
  "resultCode",
  "resultMessage",
  "?paymentStatus",
  "?authCode",
  "?statusDetail",
]

BUTTON_RESPONSE_FIELDS = [
  "?payId",
  "dttm",
  "resultCode",
  "resultMessage",
  "?paymentStatus",
  "?redirect.method",
  "?redirect.url",
  "?redirect.params",
]

ECHO_RESPONSE_FIELDS = ["dttm", "resultCode", "resultMessage"]

CUSTOMER_INFO_REQUEST_FIELDS = ["merchantId", "customerId", "dttm"]
CUSTOMER_INFO_RESPONSE_FIELDS = ["?customerId", "dttm", "resultCode", "resultMessage"]

RETURNING_CUSTOMER_FIELDS = [
  "payId",
  "dttm",
  "resultCode",
  "resultMessage",
  "?paymentStatus",
  "?authCode",
  "?merchantData",
]

# payment/close accepts a partial totalAmount since 1.7
_CLOSE_AMOUNT_SINCE_VERSION = "1.7"
# one-click and button requests no longer carry description since 1.8
_DESCRIPTION_DROPPED_IN_VERSION = "1.8"


class GatewayClient:
  """
  Talks to the payment gateway on behalf of one merchant.

  Args:
    gateway_config: GatewayConfig.
    log: business log target (path, callable, logging.Logger, sink). None
      forwards to the "csob.client" logger, False disables it.
    trace_log: wire-level log target. Contains signature bases, URLs and
      bodies; disabled unless given.
    transport: object with send(http_method, url, body) -> (status, text).
  """

  def __init__(self, gateway_config, log=None, trace_log=None, transport=None):
    self.config = gateway_config
    self.log = LoggerSink(logger) if log is None else resolve_log_sink(log)
    self.trace_log = resolve_log_sink(trace_log)
    self.transport = transport or HttpTransport(
      tls_verify=gateway_config.tls_verify,
      timeout_seconds=gateway_config.http_timeout_seconds,
    )

  @classmethod
  def from_environment(cls, transport=None):
    """Client configured from the CSOB_* environment values."""
    return cls(
      GatewayConfig.from_environment(),
      log=config.CSOB_LOG_FILE or None,
      trace_log=config.CSOB_TRACE_LOG_FILE or None,
      transport=transport,
    )

  # -----------------------------------------------------------------------
  # Core round trip
  # -----------------------------------------------------------------------

  def send_request(
    self,
    api_method,
    payload,
    http_method=HTTP_POST,
    response_fields=None,
    request_fields=None,
    extensions=(),
    return_url_only=False,
    tolerate_invalid_signature=False,
  ):
    """
    Sign `payload`, send it and return the verified response.

    With return_url_only=True nothing is sent; the signed URL is returned
    (used for payment/process, where the customer's browser makes the call).
    """
    self.trace_log.write(f"Will send request to method {api_method}")

    signed_request = envelope_builder.build_signed_request(
      self.config,
      api_method,
      payload,
      request_fields=request_fields,
      extensions=extensions,
      http_method=http_method,
      trace_log=self.trace_log,
    )
    if return_url_only:
      self.trace_log.write(f"Returned final URL: {signed_request.url}")
      return signed_request.url

    status_code, response_text = self.transport.send(
      signed_request.http_method, signed_request.url, signed_request.body
    )
    return validate_response(
      response_text,
      status_code,
      self.config,
      response_fields=response_fields,
      extensions=extensions,
      tolerate_invalid_signature=tolerate_invalid_signature,
      trace_log=self.trace_log,
    )

  def _pay_id_payload(self, pay_id):
    return {
      "merchantId": self.config.merchant_id,
      "payId": pay_id,
      "dttm": "",
    }

  def _send_logged(self, *args, **kwargs):
    try:
      return self.send_request(*args, **kwargs)
    except GatewayClientError as error:
      self.log.write(f"Fail, got exception: {type(error).__name__}, {error}")
      raise

  def _send_state_change(self, api_method, pay_id, payload, request_fields, ignore_wrong_payment_status_error, extensions=()):
    """PUT operations that the gateway refuses with code 150 in the wrong payment state."""
    self.log.write(f"{api_method} started for payment {pay_id}")
    try:
      response = self.send_request(
        api_method,
        payload,
        HTTP_PUT,
        response_fields=PAYMENT_RESPONSE_FIELDS,
        request_fields=request_fields,
        extensions=extensions,
      )
    except GatewayError as error:
      if ignore_wrong_payment_status_error and error.has_result_code(RESULT_CODE_INVALID_STATE):
        self.log.write(f"{api_method} failed, payment is not in correct status")
        return None
      self.log.write(f"Fail, got exception: {error.result_code}, {error}")
      raise
    except GatewayClientError as error:
      self.log.write(f"Fail, got exception: {type(error).__name__}, {error}")
      raise

    self.log.write(f"{api_method} OK")
    return response

  # -----------------------------------------------------------------------
  # Payments
  # -----------------------------------------------------------------------

  def payment_init(self, payment, extensions=()):
    """
    payment/init. Registers the payment and stores the assigned payId on it.

    Returns: the verified response.
    """
    payment.check_and_prepare(self.config)
    payload = payment.export(self.config)

    self.log.write(f"payment/init started for payment with orderNo {payment.order_no}")

    response = self._send_logged(
      "payment/init",
      payload,
      HTTP_POST,
      response_fields=PAYMENT_RESPONSE_FIELDS,
      request_fields=payment.request_fields(self.config),
      extensions=extensions,
    )

    if not response.get("payId"):
      self.log.write("Fail, no payId received.")
      raise ProtocolError("Gateway did not return a payId value.")

    payment.pay_id = response["payId"]
    self.log.write(f"payment/init OK, got payId {payment.pay_id}")
    return response

  def get_payment_process_url(self, payment):
    """Signed payment/process URL to send the customer's browser to. Sends nothing."""
    pay_id = get_pay_id(payment)
    url = self.send_request(
      "payment/process",
      self._pay_id_payload(pay_id),
      HTTP_GET,
      request_fields=PAY_ID_REQUEST_FIELDS,
      return_url_only=True,
    )
    self.log.write(f"URL for processing payment {pay_id}: {url}")
    return url

  def payment_status(self, payment, return_status_only=True, extensions=()):
    """
    payment/status.

    Returns: the paymentStatus number, or the whole verified response when
    return_status_only is False.
    """
    pay_id = get_pay_id(payment)
    self.log.write(f"payment/status started for payment {pay_id}")

    response = self._send_logged(
      "payment/status",
      self._pay_id_payload(pay_id),
      HTTP_GET,
      response_fields=PAYMENT_RESPONSE_FIELDS,
      request_fields=PAY_ID_REQUEST_FIELDS,
      extensions=extensions,
    )

    self.log.write(
      f"payment/status OK, status of payment {pay_id} is {response.get('paymentStatus')}"
    )
    if return_status_only:
      return response.get("paymentStatus")
    return response

  def payment_reverse(self, payment, ignore_wrong_payment_status_error=False):
    """payment/reverse. Cancels an authorized payment before settlement."""
    pay_id = get_pay_id(payment)
    return self._send_state_change(
      "payment/reverse",
      pay_id,
      self._pay_id_payload(pay_id),
      PAY_ID_REQUEST_FIELDS,
      ignore_wrong_payment_status_error,
    )

  def payment_close(self, payment, ignore_wrong_payment_status_error=False, amount=None):
    """
    payment/close. Confirms an authorized payment for settlement.

    `amount` (hundredths, at most the authorized amount) closes for a lower
    total; supported from protocol 1.7.
    """
    pay_id = get_pay_id(payment)
    payload = self._pay_id_payload(pay_id)
    if amount is not None:
      if not self.config.query_api_version(_CLOSE_AMOUNT_SINCE_VERSION):
        raise ValueError(
          f"Closing with a custom amount requires protocol {_CLOSE_AMOUNT_SINCE_VERSION} or newer."
        )
      payload["totalAmount"] = int(amount)

    return self._send_state_change(
      "payment/close",
      pay_id,
      payload,
      PAY_ID_REQUEST_FIELDS + ["?totalAmount"],
      ignore_wrong_payment_status_error,
    )

  def payment_refund(self, payment, ignore_wrong_payment_status_error=False, amount=None, extensions=()):
    """payment/refund. Without `amount` the whole payment is refunded."""
    pay_id = get_pay_id(payment)
    payload = self._pay_id_payload(pay_id)
    if amount is not None:
      payload["amount"] = int(amount)

    return self._send_state_change(
      "payment/refund",
      pay_id,
      payload,
      PAY_ID_REQUEST_FIELDS + ["?amount"],
      ignore_wrong_payment_status_error,
      extensions=extensions,
    )

  # -----------------------------------------------------------------------
  # One-click and button payments
  # -----------------------------------------------------------------------

  def payment_one_click_init(self, original_payment, new_payment, client_ip=None, extensions=()):
    """
    payment/oneclick/init. A new payment charged to the card of an earlier
    payment made with set_one_click_payment(). Follow with payment_one_click_start().
    """
    original_pay_id = get_pay_id(original_payment)
    if not new_payment.order_no:
      raise ValueError("The new payment needs an order_no.")

    payload = {
      "merchantId": self.config.merchant_id,
      "origPayId": original_pay_id,
      "orderNo": new_payment.order_no,
      "dttm": "",
    }
    if client_ip:
      payload["clientIp"] = client_ip
    if new_payment.total_amount > 0:
      payload["totalAmount"] = new_payment.total_amount
      payload["currency"] = new_payment.currency or "CZK"
    if new_payment.description and not self.config.query_api_version(_DESCRIPTION_DROPPED_IN_VERSION):
      payload["description"] = new_payment.description
    if new_payment.merchant_data_encoded:
      payload["merchantData"] = new_payment.merchant_data_encoded

    self.log.write(f"payment/oneclick/init started for original payment {original_pay_id}")

    response = self._send_logged(
      "payment/oneclick/init",
      payload,
      HTTP_POST,
      response_fields=PAYMENT_RESPONSE_FIELDS,
      request_fields=[
        "merchantId",
        "origPayId",
        "orderNo",
        "dttm",
        "?clientIp",
        "?totalAmount",
        "?currency",
        "?description",
        "?merchantData",
      ],
      extensions=extensions,
    )

    if not response.get("payId"):
      self.log.write("Fail, no payId received.")
      raise ProtocolError("Gateway did not return a payId value.")

    new_payment.pay_id = response["payId"]
    self.log.write(f"payment/oneclick/init OK, got payId {new_payment.pay_id}")
    return response

  def payment_one_click_start(self, payment):
    """payment/oneclick/start. Charges a payment prepared by payment_one_click_init()."""
    pay_id = get_pay_id(payment)
    self.log.write(f"payment/oneclick/start started for payment {pay_id}")

    response = self._send_logged(
      "payment/oneclick/start",
      self._pay_id_payload(pay_id),
      HTTP_POST,
      response_fields=PAYMENT_RESPONSE_FIELDS,
      request_fields=PAY_ID_REQUEST_FIELDS,
    )

    self.log.write(f"payment/oneclick/start OK, status of payment {pay_id} is {response.get('paymentStatus')}")
    return response

  def button_init(self, payment, client_ip, brand="csob"):
    """
    payment/button. Payment button of an internet banking (brand "csob" or
    "era"). The customer is sent to response["redirect"]["url"].
    """
    payment.check_and_prepare(self.config)

    payload = {
      "merchantId": self.config.merchant_id,
      "orderNo": payment.order_no,
      "dttm": "",
      "clientIp": client_ip,
      "totalAmount": payment.total_amount,
      "currency": payment.currency,
      "returnUrl": payment.return_url,
      "returnMethod": payment.return_method,
      "brand": brand,
    }
    if payment.merchant_data_encoded:
      payload["merchantData"] = payment.merchant_data_encoded
    payload["language"] = payment.language

    self.log.write(f"payment/button started for payment with orderNo {payment.order_no}")

    response = self._send_logged(
      "payment/button",
      payload,
      HTTP_POST,
      response_fields=BUTTON_RESPONSE_FIELDS,
      request_fields=[
        "merchantId",
        "orderNo",
        "dttm",
        "clientIp",
        "totalAmount",
        "currency",
        "returnUrl",
        "returnMethod",
        "brand",
        "?merchantData",
        "language",
      ],
    )

    if response.get("payId"):
      payment.pay_id = response["payId"]
    self.log.write(f"payment/button OK, got payId {response.get('payId')}")
    return response

  # -----------------------------------------------------------------------
  # Customers
  # -----------------------------------------------------------------------

  def customer_info(self, customer, return_if_has_cards_only=True):
    """
    customer/info. Whether the customer has cards saved for one-click payments.

    Returns: True/False when return_if_has_cards_only, otherwise the result
    code (800, 810 or 820; 0 if the gateway reports plain success). None when
    no customer ID is known.
    """
    customer_id = get_customer_id(customer)
    self.log.write(f"customer/info started for customer {customer_id}")
    if not customer_id:
      self.log.write("No customer ID given, aborting")
      return None

    payload = {
      "merchantId": self.config.merchant_id,
      "customerId": customer_id,
      "dttm": "",
    }

    result_code = 0
    result_message = ""
    try:
      self.send_request(
        "customer/info",
        payload,
        HTTP_GET,
        response_fields=CUSTOMER_INFO_RESPONSE_FIELDS,
        request_fields=CUSTOMER_INFO_REQUEST_FIELDS,
      )
    except GatewayError as error:
      # Every meaningful answer comes as a non-zero result code
      if not error.has_result_code(CUSTOMER_NOT_FOUND, CUSTOMER_NO_CARDS, CUSTOMER_HAS_CARDS):
        self.log.write(f"Fail, got exception: {error.result_code}, {error}")
        raise
      result_code = int(error.result_code)
      result_message = error.result_message

    self.log.write(f"Result: {result_code}, {result_message}")
    if return_if_has_cards_only:
      return result_code == CUSTOMER_HAS_CARDS
    return result_code

  def receive_returning_customer(self, return_data):
    """
    Verify the data the gateway sends along with the customer to the return URL.

    Returns: a copy of the data with merchantData Base64-decoded, or None if
    there is no data.
    Raises: SignatureError when the signature is missing or wrong.
    """
    if not return_data or "payId" not in return_data:
      return None

    self.trace_log.write(f"Received data from returning customer: {dict(return_data)}")
    received_data = dict(return_data)

    if not received_data.get("signature"):
      self.log.write(f"Returning customer: payId {received_data['payId']}, has no signature.")
      raise SignatureError("Returning customer data is not signed.", response=received_data)

    signature_correct, signature_base = verify_response_signature(
      received_data, self.config, RETURNING_CUSTOMER_FIELDS, self.trace_log
    )
    if not signature_correct:
      self.trace_log.write("Signature is invalid.")
      self.log.write(f"Returning customer: payId {received_data['payId']}, has invalid signature.")
      raise SignatureError(
        "Signature of returning customer data is invalid.",
        signature_base=signature_base,
        response=received_data,
      )

    if received_data.get("merchantData"):
      try:
        received_data["merchantData"] = base64.b64decode(
          received_data["merchantData"], validate=True
        ).decode("utf-8")
      except (binascii.Error, ValueError):
        logger.warning("merchantData of returning customer is not Base64, keeping it as received")

    message = (
      f"Returning customer: payId {received_data['payId']}, "
      f"authCode {received_data.get('authCode')}, "
      f"payment status {received_data.get('paymentStatus')}"
    )
    if received_data.get("merchantData"):
      message += f", merchantData {received_data['merchantData']}"
    self.log.write(message)
    return received_data

  # -----------------------------------------------------------------------
  # Connection checks
  # -----------------------------------------------------------------------

  def check_post_connection(self):
    """echo over POST. Verifies keys, merchant ID and connectivity."""
    response = self.send_request(
      "echo",
      {"merchantId": self.config.merchant_id, "dttm": ""},
      HTTP_POST,
      response_fields=ECHO_RESPONSE_FIELDS,
    )
    self.log.write("Connection test POST successful.")
    return response

  def check_get_connection(self):
    """echo over GET."""
    response = self.send_request(
      "echo",
      {"merchantId": self.config.merchant_id, "dttm": ""},
      HTTP_GET,
      response_fields=ECHO_RESPONSE_FIELDS,
      request_fields=["merchantId", "dttm"],
    )
    self.log.write("Connection test GET successful.")
    return response


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------

def get_pay_id(payment):
  """payId from a Payment, a response/dict with "payId", or the ID itself."""
  if isinstance(payment, Payment):
    if not payment.pay_id:
      raise ValueError("Given Payment does not have a payId. Please call payment_init() first.")
    payment = payment.pay_id
  elif isinstance(payment, dict):
    payment = payment.get("payId")

  if not isinstance(payment, str) or len(payment) != config.PAY_ID_LENGTH:
    raise ValueError(
      f"Given payment ID is not valid - it should be a string of {config.PAY_ID_LENGTH} characters."
    )
  return payment


def get_customer_id(customer):
  """customerId from a Payment, a dict with "customerId", or the ID itself."""
  if isinstance(customer, Payment):
    customer = customer.customer_id or ""
  elif isinstance(customer, dict):
    customer = customer.get("customerId") or ""

  if not isinstance(customer, str):
    raise ValueError("Given customer ID is not valid.")
  return customer
