"""
CSOB Gateway Client -- Configuration

All configuration values with sensible defaults.
Override via environment variables (see GatewayConfig.from_environment()).
"""

import os

# --- Gateway URLs (one per eAPI protocol version) ---
GATEWAY_URL_TEST_1_0 = "https://iapi.iplatebnibrana.csob.cz/api/v1"
GATEWAY_URL_PRODUCTION_1_0 = "https://api.platebnibrana.csob.cz/api/v1"
GATEWAY_URL_TEST_1_5 = "https://iapi.iplatebnibrana.csob.cz/api/v1.5"
GATEWAY_URL_PRODUCTION_1_5 = "https://api.platebnibrana.csob.cz/api/v1.5"
GATEWAY_URL_TEST_1_6 = "https://iapi.iplatebnibrana.csob.cz/api/v1.6"
GATEWAY_URL_PRODUCTION_1_6 = "https://api.platebnibrana.csob.cz/api/v1.6"
GATEWAY_URL_TEST_1_7 = "https://iapi.iplatebnibrana.csob.cz/api/v1.7"
GATEWAY_URL_PRODUCTION_1_7 = "https://api.platebnibrana.csob.cz/api/v1.7"
GATEWAY_URL_TEST_1_8 = "https://iapi.iplatebnibrana.csob.cz/api/v1.8"
GATEWAY_URL_PRODUCTION_1_8 = "https://api.platebnibrana.csob.cz/api/v1.8"
GATEWAY_URL_TEST_1_9 = "https://iapi.iplatebnibrana.csob.cz/api/v1.9"
GATEWAY_URL_PRODUCTION_1_9 = "https://api.platebnibrana.csob.cz/api/v1.9"

GATEWAY_URL_TEST_LATEST = GATEWAY_URL_TEST_1_9
GATEWAY_URL_PRODUCTION_LATEST = GATEWAY_URL_PRODUCTION_1_9

# --- Gateway endpoint ---
CSOB_GATEWAY_URL = os.environ.get("CSOB_GATEWAY_URL", GATEWAY_URL_TEST_LATEST)
# Empty = deduce from CSOB_GATEWAY_URL
CSOB_API_VERSION = os.environ.get("CSOB_API_VERSION", "")
# Empty = sha1 before 1.8, sha256 from 1.8
CSOB_HASH_METHOD = os.environ.get("CSOB_HASH_METHOD", "")

# --- Merchant identity and keys ---
# SECURITY: No hardcoded defaults -- must be set via environment variable
CSOB_MERCHANT_ID = os.environ.get("CSOB_MERCHANT_ID", "")
CSOB_PRIVATE_KEY_FILE = os.environ.get("CSOB_PRIVATE_KEY_FILE", "")
CSOB_PRIVATE_KEY_PASSWORD = os.environ.get("CSOB_PRIVATE_KEY_PASSWORD", "")
CSOB_BANK_PUBLIC_KEY_FILE = os.environ.get("CSOB_BANK_PUBLIC_KEY_FILE", "")

# --- Shop defaults ---
CSOB_SHOP_NAME = os.environ.get("CSOB_SHOP_NAME", "")
CSOB_RETURN_URL = os.environ.get("CSOB_RETURN_URL", "")
CSOB_RETURN_METHOD = os.environ.get("CSOB_RETURN_METHOD", "POST")
CSOB_CLOSE_PAYMENT = os.environ.get("CSOB_CLOSE_PAYMENT", "true").lower() in ("1", "true", "yes")

# --- HTTP transport ---
# CA bundle file or directory; empty = system defaults
CSOB_CA_BUNDLE = os.environ.get("CSOB_CA_BUNDLE", "")
CSOB_TLS_VERIFY = os.environ.get("CSOB_TLS_VERIFY", "true").lower() in ("1", "true", "yes")
CSOB_HTTP_TIMEOUT_SECONDS = float(os.environ.get("CSOB_HTTP_TIMEOUT_SECONDS", "30"))

# --- Logging ---
# Empty business log = forward to the "csob.client" logger
CSOB_LOG_FILE = os.environ.get("CSOB_LOG_FILE", "")
# Trace log contains signature bases, URLs and bodies. Empty = disabled.
CSOB_TRACE_LOG_FILE = os.environ.get("CSOB_TRACE_LOG_FILE", "")

# --- Formats ---
DTTM_FORMAT = "%Y%m%d%H%M%S"
PAY_ID_LENGTH = 15
