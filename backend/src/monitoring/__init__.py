from src.monitoring.metrics import get_metrics, record_provider_outcome, record_request

__all__ = ["get_metrics", "record_provider_outcome", "record_request"]
