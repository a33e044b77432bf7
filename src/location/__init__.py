"""
Location-aware data fetching modules for the soil data service.

Modules:
    resolver    — Validate raw lat/lng query values
    soilgrids   — Fetch and normalize ISRIC SoilGrids soil properties
    elevation   — Fetch Open-Elevation terrain data
    weather     — Fetch and summarize the Open-Meteo forecast
    cache       — Geo-bounded cache lookups over the cache store
    errors      — Validation and fatal upstream errors
    pipeline    — Orchestrate cache and data sources into one record
"""
