from .postgresql_adapter import PostgreSQLAdapter

__all__ = ['PostgreSQLAdapter']
