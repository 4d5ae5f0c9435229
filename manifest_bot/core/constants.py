"""Constants shared by the intake core, the renderers and the ledger."""

from decimal import Decimal

CURRENCY_SYMBOL = "€"
MONEY_QUANT = Decimal("0.01")

# Phone numbers
MIN_PHONE_DIGITS = 9
MAX_PHONE_DIGITS = 15

# Admin tracking input
MIN_TRACKING_NUMBER_LENGTH = 5
MAX_TRACKING_NUMBER_LENGTH = 64
NO_URL_TOKEN = "none"

# Free-text limits
MAX_PRODUCT_NAME_LENGTH = 120
MAX_SUPPORT_MESSAGE_LENGTH = 2000

# Intake amounts; OrderItem.line_total is Numeric(14, 2)
MAX_QUANTITY = 100_000
MAX_LINE_TOTAL = Decimal("99999999.99")
