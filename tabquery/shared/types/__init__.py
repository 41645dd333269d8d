from tabquery.shared.types.models import ResultSet

__all__ = ["ResultSet"]
