"""Transaction notification payload sent by YaYa Wallet."""

import uuid
from typing import Union

from pydantic import (
    BaseModel,
    Field,
    HttpUrl,
    StrictFloat,
    StrictInt,
    TypeAdapter,
    ValidationError,
    field_validator,
)

_http_url = TypeAdapter(HttpUrl)

# Order is part of the signing contract with the provider.
SIGNED_FIELDS = (
    "id",
    "amount",
    "currency",
    "created_at_time",
    "timestamp",
    "cause",
    "full_name",
    "account_name",
    "invoice_url",
)


class TransactionPayload(BaseModel):
    """Webhook body. Values are kept exactly as received so they can be re-signed.

    Numeric fields are strict: a string or boolean would be coerced into a
    different rendering than the one the provider signed, so it is rejected.
    """

    id: str = Field(..., description="Transaction identifier (UUID)")
    amount: Union[StrictInt, StrictFloat] = Field(..., description="Transaction amount")
    currency: str = Field(..., min_length=3, max_length=3, description="Currency code, e.g. ETB")
    created_at_time: StrictInt = Field(..., description="Creation time, unix seconds")
    timestamp: StrictInt = Field(..., description="Send time, unix seconds")
    cause: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    account_name: str = Field(..., min_length=1)
    invoice_url: str = Field(..., description="Invoice URL")

    @field_validator("id")
    @classmethod
    def id_must_be_uuid(cls, value: str) -> str:
        try:
            uuid.UUID(value)
        except ValueError:
            raise ValueError("Invalid transaction ID format")
        return value

    @field_validator("amount")
    @classmethod
    def amount_must_be_non_negative(cls, value: Union[int, float]) -> Union[int, float]:
        if value < 0:
            raise ValueError("Amount must be a non-negative number")
        return value

    @field_validator("cause", "full_name", "account_name")
    @classmethod
    def must_not_be_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Field cannot be empty or contain only whitespace")
        return value

    @field_validator("invoice_url")
    @classmethod
    def invoice_url_must_be_url(cls, value: str) -> str:
        # Validate only; the normalized form would break the signature.
        try:
            _http_url.validate_python(value)
        except ValidationError:
            raise ValueError("Invalid invoice URL format")
        return value
