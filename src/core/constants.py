"""Core application constants."""

from decimal import Decimal

MILLISECONDS_PER_SECOND = 1000

# Transmission is attempted once plus this many in-place retries before the
# run escalates to contingency.
MAX_TRANSMISSION_RETRIES = 2

# Declared totals may differ from line-item sums by at most one cent.
AMOUNT_TOLERANCE = Decimal("0.01")

MONEY_DECIMALS = 2
QUANTITY_DECIMALS = 8

# Accumulator scope covering every document type
ACCUMULATOR_SCOPE_ALL = "ALL"

# Document type codes
CREDIT_ELIGIBLE_DTE_TYPES = frozenset({"03", "05", "14"})
WITHHOLDING_DTE_TYPE = "07"
IVA_TRIBUTO_CODE = "20"

# Authority error codes that signal a transport problem rather than a rejection
COMMUNICATION_ERROR_CODE = "COM-ERR"
HTTP_ERROR_CODE_PREFIX = "HTTP-"

# Authority code for "received with observations"
OBSERVATIONS_CODE = "002"

DEFAULT_CONTINGENCY_REASON = "Falla en el servicio de Internet"
