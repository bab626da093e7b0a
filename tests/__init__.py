# =============================================================================
# tests/ - Test Suite
# =============================================================================
# - test_models.py: model relationships and cascade
# - test_contact_service.py: create, edit reconciliation, search
# - test_exporter.py: CSV/Excel export formatting
# - test_auth.py: password policy, login, role checks
# - test_api.py: HTTP routes
#
# Run tests with: pytest
# =============================================================================
