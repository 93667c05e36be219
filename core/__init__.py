# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the period closure logic:
# - models/: Pydantic schemas for data validation
# - calculator.py: Platform conversion rule table
# - store/: Persistence contract and its Supabase implementation
# - services/: Freeze, closure state, archive, backup and orchestration
#
# Code in this package should NOT import from Celery.
# This keeps the logic testable and reusable.
# =============================================================================
