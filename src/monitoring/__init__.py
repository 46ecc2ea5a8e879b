from src.monitoring.metrics import get_metrics, record_refresh, record_request

__all__ = ["get_metrics", "record_refresh", "record_request"]
