# Services package init
"""
SnapPDF Backend — Services Layer
=================================

What:  Business logic between routes (HTTP) and the audit database.

Service Inventory:
    - compression_service: tier table and single-image JPEG re-encoding
    - conversion_service:  upload validation, page assembly, PDF streaming
    - audit_service:       optional conversion log (insert, history, stats)
"""
