from src.directions.budget import RequestBudget
from src.directions.client import MapboxDirectionsClient
from src.directions.models import DirectionsPort, DirectionsResult, TravelProfile

__all__ = ["DirectionsPort", "DirectionsResult", "MapboxDirectionsClient", "RequestBudget", "TravelProfile"]
