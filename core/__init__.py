# Core package - foundational components
#
# Modules:
# - config: Application settings
# - logging: Structured logging
# - errors: Error taxonomy
# - cache: Fail-open Redis listing cache
# - repository: Product persistence (PostgreSQL)
# - storage: Pluggable image storage (local disk, S3)
# - uploads: Image allow-list and temporary staging
# - context: Process-wide client handles
