from trading_dashboard.client.api import DashboardApiClient, DashboardApiError, api_delete, api_post
from trading_dashboard.client.fetcher import FetchState, ResourceFetcher

__all__ = [
    "DashboardApiClient",
    "DashboardApiError",
    "FetchState",
    "ResourceFetcher",
    "api_delete",
    "api_post",
]
