# Routes package init
"""
SnapPDF Backend — API Routes Package
=====================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - convert.py:      POST /convert               (images → PDF download)
    - conversions.py:  GET  /conversions           (recent conversion log)
                       POST /conversions           (log a conversion)
                       GET  /conversions/stats     (daily totals)
    - health.py:       GET  /health                (service health check)
                       GET  /                      (service index)

Routes stay thin: read the request, call a service, shape the response.
"""
