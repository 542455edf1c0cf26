"""
Suite constants.

These values are intentionally not configurable via environment variables.
"""

# Callback listener
CALLBACK_SUCCESS_MESSAGE = "Authorization successful! You can close this window."
CALLBACK_MISSING_CODE_MESSAGE = "Authorization failed. No code received."
CALLBACK_STATE_MISMATCH_MESSAGE = "Authorization failed. State parameter mismatch."

# Browser
BROWSER_LAUNCH_ARGS = ("--no-sandbox", "--disable-setuid-sandbox")
BROWSER_VIEWPORT = {"width": 1280, "height": 720}

# Token exchange
TOKEN_EXCHANGE_TIMEOUT_SECONDS = 30
ERROR_BODY_LOG_CHARS = 200

# Logging
SECRET_VISIBLE_CHARS = 6
