# facility_booking/routes/__init__.py
"""HTTP routes. All application routes are versioned under v1/."""
