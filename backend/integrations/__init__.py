"""External API integrations.

This package contains:
- Aggregator protocol: Normalized accounts/transactions and the client interface
- Basiq client: Integration with the Basiq open-banking API
- Banking API client: HTTP client for this service's own banking endpoints
"""

from integrations.aggregator_protocol import (
    AggregatorAccount,
    AggregatorClient,
    AggregatorConsent,
    AggregatorTransaction,
)

__all__ = [
    "AggregatorAccount",
    "AggregatorClient",
    "AggregatorConsent",
    "AggregatorTransaction",
]
