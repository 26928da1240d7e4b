"""
Database Services

Service layer for guarded migrations:
- Connection lifecycle
- Catalog inspection
- Guarded DDL
- Backups and restore
- Validation and execution
"""
