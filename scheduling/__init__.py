"""Time arithmetic, conflict detection and availability filtering."""
