"""
Application constants.

Centralized constants for settlement and commission processing.
"""

from decimal import Decimal

# ========================================================================
# COMMISSION CONSTANTS
# ========================================================================

# Deepest referral layer that can ever be paid
MAX_COMMISSION_DEPTH = 8

# Chain rows preloaded per walk: MAX_COMMISSION_DEPTH plus one to detect a
# cycle closing on the last layer
CHAIN_PRELOAD_LIMIT = MAX_COMMISSION_DEPTH + 1

# Monetary precision
USD_QUANTUM = Decimal("0.01")
CRYPTO_QUANTUM = Decimal("0.00000001")

# ========================================================================
# PAYMENT SESSION CONSTANTS
# ========================================================================

# Static, user-facing status messages. Internal error text never reaches users.
SESSION_STATUS_MESSAGES = {
    "pending": "Waiting for payment. Send cryptocurrency to the deposit address.",
    "confirming": "Payment detected! Waiting for blockchain confirmations.",
    "completed": "Payment confirmed! Your membership has been activated.",
    "partial": "Partial payment received. Please send the remaining amount or contact support.",
    "failed": "Payment failed. Please try again or contact support.",
    "expired": "Payment session expired. Please create a new session.",
}

UNKNOWN_STATUS_MESSAGE = "Unknown status"

# Treasury sweep batches never exceed this many sessions
TREASURY_SWEEP_MAX_BATCH = 500

# ========================================================================
# CUSTODIAN CONSTANTS
# ========================================================================

# Header carrying the base64 webhook signature
CUSTODIAN_SIGNATURE_HEADER = "Fireblocks-Signature"

# Transfer destination type that can settle a session
VAULT_ACCOUNT = "VAULT_ACCOUNT"


class CustodianTxStatus:
    """Custodian transaction statuses acted on."""

    COMPLETED = "COMPLETED"
    CONFIRMING = "CONFIRMING"

    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    BLOCKED = "BLOCKED"

    FAILURES = frozenset({FAILED, CANCELLED, REJECTED, BLOCKED})


# Webhook signing keys published by the custodian
CUSTODIAN_PRODUCTION_PUBLIC_KEY = """-----BEGIN PUBLIC KEY-----
MIICIjANBgkqhkiG9w0BAQEFAAOCAg8AMIICCgKCAgEA0+6wd9OJQpK60ZI7qnZG
jjQ0wNFUHfRv85Tdyek8+ahlg1Ph8uhwl4N6DZw5LwLXhNjzAbQ8LGPxt36RUZl5
YlxTru0jZNKx5lslR+H4i936A4pKBjgiMmSkVwXD9HcfKHTp70GQ812+J0Fvti/v
4nrrUpc011Wo4F6omt1QcYsi4GTI5OsEbeKQ24BtUd6Z1Nm/EP7PfPxeb4CP8KOH
clM8K7OwBUfWrip8Ptljjz9BNOZUF94iyjJ/BIzGJjyCntho64ehpUYP8UJykLVd
CGcu7sVYWnknf1ZGLuqqZQt4qt7cUUhFGielssZP9N9x7wzaAIFcT3yQ+ELDu1SZ
dE4lZsf2uMyfj58V8GDOLLE233+LRsRbJ083x+e2mW5BdAGtGgQBusFfnmv5Bxqd
HgS55hsna5725/44tvxll261TgQvjGrTxwe7e5Ia3d2Syc+e89mXQaI/+cZnylNP
SwCCvx8mOM847T0XkVRX3ZrwXtHIA25uKsPJzUtksDnAowB91j7RJkjXxJcz3Vh1
4k182UFOTPRW9jzdWNSyWQGl/vpe9oQ4c2Ly15+/toBo4YXJeDdDnZ5c/O+KKadc
IMPBpnPrH/0O97uMPuED+nI6ISGOTMLZo35xJ96gPBwyG5s2QxIkKPXIrhgcgUnk
tSM7QYNhlftT4/yVvYnk0YcCAwEAAQ==
-----END PUBLIC KEY-----"""

CUSTODIAN_SANDBOX_PUBLIC_KEY = """-----BEGIN PUBLIC KEY-----
MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8AMIIBCgKCAQEApZE6wL2+7P1ohvVYSpCd
gSgtmyGwiLbUC1UoGJhn1zwfY7ZWbNH7Pg8Osk8OzZTZHSG/arcgE8HnGCmGKtbE
QBkf2XlBRBQ01FcCMlZuJQJ3nElCPaMl9N6fq0VKNEIlVSVUpDCgvag5kFhDKS/L
p3YYJLFR46/hDlVLn+vM84diO3xGyMc16YJGNz7Z4jb8dmSZQE5E2XaQMDXW6uxC
c2ChjWJ3X5H70MzRG35JsN0j58SQTwbf4Pxm0aJfhPuaIBn3mJuZL5etsuFihoFG
FDnT+qWRcgD/pRNulBFAFhJeUnFrE4fFTJ1iaHhjBrStBCrxJk6QI0pGznoapTgA
2QIDAQAB
-----END PUBLIC KEY-----"""

# Asset id -> CoinGecko coin id for USD quotes
EXCHANGE_RATE_COIN_IDS = {
    "BTC": "bitcoin",
    "BTC_TEST": "bitcoin",
    "ETH": "ethereum",
    "ETH_TEST5": "ethereum",
    "LTC": "litecoin",
    "SOL": "solana",
}

# ========================================================================
# WORKER CONSTANTS
# ========================================================================

# Dramatiq time limits (ms)
DRAMATIQ_TIME_LIMIT_SHORT = 60_000
DRAMATIQ_TIME_LIMIT_STANDARD = 300_000
