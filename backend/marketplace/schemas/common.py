"""
Shared field types for request/response schemas.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import PlainSerializer

# Decimals stay exact in Python and serialize as JSON numbers
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Rating = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
Rate = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
