"""Custodian gateway: API client, webhook signatures and exchange rates."""

from tierpay.services.custodian.client import (
    CustodianClient,
    DepositAddress,
    RequestSigner,
    TransferResult,
)
from tierpay.services.custodian.rates import ExchangeRateProvider
from tierpay.services.custodian.signature import SignatureVerifier


__all__ = [
    "CustodianClient",
    "DepositAddress",
    "ExchangeRateProvider",
    "RequestSigner",
    "SignatureVerifier",
    "TransferResult",
]
