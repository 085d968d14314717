"""Broker REST API integration."""

from .client import BrokerClient
from .exceptions import BrokerRequestError
from .models import BrokerAccount, BrokerContract, OrderRequest, RawTrade

__all__ = [
    "BrokerClient",
    "BrokerRequestError",
    "BrokerAccount",
    "BrokerContract",
    "OrderRequest",
    "RawTrade",
]
