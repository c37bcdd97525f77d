"""
sqlpeek - SQL synthesis, execution and benchmarking across database dialects

Main modules:
- core: Data models, enums and errors
- dialect: Type mapping, identifier quoting and literal formatting
- ddl: CREATE/ALTER/DROP TABLE generation
- utils: Data-edit SQL generation, validation and formatting
- datastore: Async database access for each supported engine
- benchmark: Repeated execution and latency statistics
- tracking: Cancellation of in-flight queries
- config: Configuration loading and serialization
"""

__version__ = "1.0.0"
