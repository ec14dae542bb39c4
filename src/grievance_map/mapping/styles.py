"""Color and style constants for the complaint heat map."""

from dataclasses import dataclass

from ..models.schemas import HeatTier


@dataclass
class FeatureStyle:
    """Style configuration for a polygon overlay."""

    fill_color: str  # Hex without # (e.g., "10B981")
    fill_opacity: float
    stroke_color: str  # Hex without #
    stroke_opacity: float
    stroke_width: float

    def to_simplestyle(self) -> dict:
        """Convert to SimpleStyle properties for GeoJSON."""
        return {
            "fill": f"#{self.fill_color}",
            "fill-opacity": self.fill_opacity,
            "stroke": f"#{self.stroke_color}",
            "stroke-opacity": self.stroke_opacity,
            "stroke-width": self.stroke_width,
        }


# Heat tier fills. NONE is green so zero-complaint areas read as a baseline,
# the rest darken monotonically.
TIER_COLORS = {
    HeatTier.NONE: "#10B981",  # Green
    HeatTier.LOW: "#FCA5A5",  # Light red
    HeatTier.MEDIUM: "#F87171",  # Red
    HeatTier.HIGH: "#EF4444",  # Medium red
    HeatTier.VERY_HIGH: "#991B1B",  # Very dark red
}

# Complaint marker colors by priority
PRIORITY_MARKER_COLORS = {
    "urgent": "#DC2626",
    "high": "#FF671F",
    "medium": "#FF671F",
    "low": "#10B981",
    "default": "#EF4444",
}

STYLES = {
    "village_boundary": FeatureStyle(
        fill_color="E5E7EB",  # Light gray
        fill_opacity=0.3,
        stroke_color="374151",  # Dark gray
        stroke_opacity=0.8,
        stroke_width=1.5,
    ),
    "highlight": FeatureStyle(
        fill_color="FF671F",  # Saffron
        fill_opacity=0.5,
        stroke_color="FF671F",
        stroke_opacity=1.0,
        stroke_width=3,
    ),
}


def get_marker_color(priority: str) -> str:
    """Marker color hex for a complaint priority."""
    return PRIORITY_MARKER_COLORS.get(
        (priority or "").lower(), PRIORITY_MARKER_COLORS["default"]
    )
