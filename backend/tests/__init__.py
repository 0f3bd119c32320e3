# Stock Ledger Test Suite
#
# - Ledger store, aggregator, consumer and checkout engine (pytest, in-memory SQLite)
# - Concurrency tests (threads against a temporary file-backed SQLite database)
# - HTTP routes and CLI commands
#
# Run with: pytest (from the repository root)
