# Core package - foundational components
#
# Modules:
# - config: Application settings
# - logging: Structured logging
# - storage: Cosmos DB connection pooling and document access
