# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the period closure service:
# - fakes.py: InMemoryStore, an EarningsStore with failure injection
# - test_calculator.py / test_period_dates.py: pure rule and calendar tests
# - test_*_service.py / test_closure_state.py / test_orchestrator.py: services
# - test_supabase_store.py: query building against a mocked client
# - test_routers.py: API endpoints through TestClient
#
# Run tests with: pytest
# =============================================================================
