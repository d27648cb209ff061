"""Orchestration services for the stock valuation engine."""

from inventory_services.analytics_service import ProjectionDrift, StockAnalyticsService

__all__ = [
    "ProjectionDrift",
    "StockAnalyticsService",
]
