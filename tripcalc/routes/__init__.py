# tripcalc/routes/__init__.py
from tripcalc.routes.itinerary import create_itinerary_blueprint

__all__ = ["create_itinerary_blueprint"]
