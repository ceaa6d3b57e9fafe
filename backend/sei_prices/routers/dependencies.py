"""
Router Dependencies

Placeholders injected from main.py via app.dependency_overrides.
"""

from sei_prices.services.ingestion_orchestrator import IngestionOrchestrator
from sei_prices.services.price_store import PriceStore


def get_price_store() -> PriceStore:
    """Get the price store - will be overridden in main.py"""
    raise NotImplementedError("Must override price store dependency")


def get_orchestrator() -> IngestionOrchestrator:
    """Get the ingestion orchestrator - will be overridden in main.py"""
    raise NotImplementedError("Must override orchestrator dependency")
