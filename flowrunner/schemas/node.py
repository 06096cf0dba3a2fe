"""Node type schemas."""

from pydantic import BaseModel


class NodeTypeInfo(BaseModel):
    """A registered executor."""

    type: str
    description: str
