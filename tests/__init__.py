# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Marketplace Messaging API:
# - test_models.py: Unit tests for Pydantic model validation
# - test_messaging_service.py: Conversation and message operations
# - test_subscription.py: Realtime new-message subscriptions
# - test_api.py: HTTP/WebSocket endpoints and token verification
# - test_websocket_manager.py: Connection bookkeeping
# - test_supabase_client.py: Per-token client cache and row lookups
# - test_config.py: Environment-driven settings
#
# fake_supabase.py provides the in-memory database the tests run against.
#
# Run tests with: pytest
# =============================================================================
