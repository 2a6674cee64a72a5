"""Route groups: admin, shop and auth pages, plus the explicit error page."""
