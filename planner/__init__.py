"""Itinerary planner - day-by-day trip lists kept in sync with per-day maps."""
