from .engine import QueryEngine, execute_sql  # noqa: F401
from .parser import parse  # noqa: F401
