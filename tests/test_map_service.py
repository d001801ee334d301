# tests/test_map_service.py
"""Unit tests for admin map markers."""

from app.models.report import ReportResponse
from app.services.map_service import build_map_markers, google_maps_url
from tests.conftest import T0


def make_report(report_id, report_type, location=None, description=""):
    return ReportResponse.from_document(report_id, {
        "type": report_type,
        "description": description,
        "location": location,
        "timestamp": T0,
        "device_id": "D",
        "status": "active",
    })


class TestMarkers:
    def test_badges_by_type(self):
        location = {"lat": 14.6, "lng": 121.0}
        reports = [make_report(t, t, location) for t in ("Fire", "Crime", "Medical", "Accident", "Flood")]
        badges = [(m.badge.label, m.badge.color) for m in build_map_markers(reports)]
        assert badges == [("F", "red"), ("C", "blue"), ("M", "green"), ("A", "yellow"), ("O", "gray")]

    def test_reports_without_location_are_skipped(self):
        reports = [make_report("r1", "Fire"), make_report("r2", "Fire", {"lat": 1.0, "lng": 2.0})]
        assert [m.report_id for m in build_map_markers(reports)] == ["r2"]

    def test_popup_content(self):
        report = make_report("r1", "Medical", {"lat": 14.599512, "lng": 120.984222}, "Person collapsed")
        popup = build_map_markers([report])[0].popup
        assert popup.title == "Medical"
        assert popup.description == "Person collapsed"
        assert popup.coordinates == "14.5995, 120.9842"
        assert popup.maps_url == "https://www.google.com/maps?q=14.599512,120.984222"
        assert popup.reported_at.endswith("UTC")

    def test_popup_fallbacks(self):
        popup = build_map_markers([make_report("r1", "", {"lat": 0.0, "lng": 0.0})])[0].popup
        assert popup.title == "Unknown Incident"
        assert popup.description == "No description available"

    def test_maps_url(self):
        assert google_maps_url(14.6, 121.0) == "https://www.google.com/maps?q=14.6,121.0"
