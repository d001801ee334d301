"""
Map marker models for the admin console map.
"""

from pydantic import BaseModel


class MarkerBadge(BaseModel):
    label: str  # single letter shown on the marker
    color: str  # palette name
    hex_color: str


class MarkerPopup(BaseModel):
    title: str
    description: str
    coordinates: str
    reported_at: str
    maps_url: str


class MapMarker(BaseModel):
    report_id: str
    lat: float
    lng: float
    status: str
    badge: MarkerBadge
    popup: MarkerPopup
