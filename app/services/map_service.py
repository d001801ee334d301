"""
Map service - turn live reports into admin map markers.

One marker per report that still has a location (resolved reports lose
theirs). Each marker carries a single-letter badge keyed to the emergency
category and the hover popup content.
"""

from typing import Dict, Iterable, List

from app.models.map import MapMarker, MarkerBadge, MarkerPopup
from app.models.report import EmergencyType, ReportResponse
from app.utils.time import format_datetime

BADGES: Dict[EmergencyType, MarkerBadge] = {
    EmergencyType.FIRE: MarkerBadge(label="F", color="red", hex_color="#dc2626"),
    EmergencyType.CRIME: MarkerBadge(label="C", color="blue", hex_color="#2563eb"),
    EmergencyType.MEDICAL: MarkerBadge(label="M", color="green", hex_color="#16a34a"),
    EmergencyType.ACCIDENT: MarkerBadge(label="A", color="yellow", hex_color="#eab308"),
    EmergencyType.OTHER: MarkerBadge(label="O", color="gray", hex_color="#6b7280"),
}


def get_incident_badge(category: EmergencyType) -> MarkerBadge:
    return BADGES.get(category, BADGES[EmergencyType.OTHER])


def google_maps_url(lat: float, lng: float) -> str:
    return f"https://www.google.com/maps?q={lat},{lng}"


def build_popup(report: ReportResponse) -> MarkerPopup:
    lat, lng = report.location.lat, report.location.lng
    return MarkerPopup(
        title=report.type or "Unknown Incident",
        description=report.description or "No description available",
        coordinates=f"{lat:.4f}, {lng:.4f}",
        reported_at=format_datetime(report.timestamp),
        maps_url=google_maps_url(lat, lng),
    )


def build_map_markers(reports: Iterable[ReportResponse]) -> List[MapMarker]:
    """
    Build markers for every report with a location.

    Args:
        reports: Reports in display order

    Returns:
        Markers in the same order, skipping reports without a location
    """
    markers = []
    for report in reports:
        if report.location is None:
            continue
        markers.append(MapMarker(
            report_id=report.id,
            lat=report.location.lat,
            lng=report.location.lng,
            status=report.status.value,
            badge=get_incident_badge(report.category),
            popup=build_popup(report),
        ))
    return markers
