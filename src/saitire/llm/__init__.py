from .router import ROLES, AIContext, LLMClient, missing_credentials
from .structured import (
    ParseError,
    RepairError,
    complete_structured,
    extract_json,
    parse_structured,
    repair_structured,
)

__all__ = [
    "ROLES",
    "AIContext",
    "LLMClient",
    "ParseError",
    "RepairError",
    "complete_structured",
    "extract_json",
    "missing_credentials",
    "parse_structured",
    "repair_structured",
]
