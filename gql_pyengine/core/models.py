"""Wire models for GraphQL requests and responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .errors import GraphQLError


class GraphQLRequest(BaseModel):
    """A request as clients send it: {"query", "variables", "operationName"}."""

    model_config = ConfigDict(populate_by_name=True)

    query: str
    variables: dict[str, Any] | None = None
    operation_name: str | None = Field(default=None, alias="operationName")


class ErrorPayload(BaseModel):
    """One entry of the response "errors" list."""

    message: str
    locations: list[dict[str, int]] | None = None
    path: list[str | int] | None = None
    extensions: dict[str, Any] | None = None

    @classmethod
    def from_error(cls, error: GraphQLError) -> "ErrorPayload":
        return cls.model_validate(error.to_dict())


class GraphQLResponse(BaseModel):
    """A response as clients receive it; errors is None when there are none."""

    data: dict[str, Any] | None = None
    errors: list[ErrorPayload] | None = None

    @classmethod
    def from_errors(
        cls,
        data: dict[str, Any] | None,
        errors: list[GraphQLError],
    ) -> "GraphQLResponse":
        """Build a response from execution output."""
        payloads = [ErrorPayload.from_error(e) for e in errors]
        return cls(data=data, errors=payloads or None)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the wire shape, keeping "errors": null."""
        errors = None
        if self.errors:
            errors = [e.model_dump(exclude_none=True) for e in self.errors]
        return {"data": self.data, "errors": errors}
