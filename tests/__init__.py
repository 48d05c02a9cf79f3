# WMS Test Suite
#
# - Service tests: ledger, purchasing, catalog, analytics, settings, backup
# - Store tests: snapshot persistence and schema migrations
# - API tests: Flask test client against the JSON routes
#
# Run with: pytest
