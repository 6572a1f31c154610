"""
zero_crm/tools/models.py
========================

Typed views over the JSON the Zero API returns.

``Record`` declares the attributes every entity shares. Anything else the
API sends (foreign keys such as ``companyId`` or ``contactIds``, display
fields, nested relations attached by dot-notation ``fields``) lands in the
model's extension map (``model_extra``) and is read back with ``get()`` under
its API name.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# API (camelCase) name -> attribute name for the declared fields
_ATTRIBUTE_BY_KEY = {
    "workspaceId": "workspace_id",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


class Record(BaseModel):
    """One entity returned by the API (company, contact, deal, event, ...)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    workspace_id: Optional[str] = Field(default=None, alias="workspaceId")
    name: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    custom: Dict[str, Any] = Field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Read a field by its API name, declared or not."""
        attribute = _ATTRIBUTE_BY_KEY.get(key, key)
        if attribute in type(self).model_fields:
            value = getattr(self, attribute)
            return default if value is None else value
        return (self.model_extra or {}).get(key, default)

    def with_values(self, values: Dict[str, Any]) -> "Record":
        """Return a copy with ``values`` (keyed by API name) applied."""
        update = {_ATTRIBUTE_BY_KEY.get(key, key): value for key, value in values.items()}
        return self.model_copy(update=update)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ListPage(BaseModel):
    """One page of a list endpoint: ``{data, total?, limit?, offset?}``."""

    data: List[Record] = Field(default_factory=list)
    total: Optional[int] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    @property
    def has_more(self) -> bool:
        if self.total is None:
            return False
        return (self.offset or 0) + len(self.data) < self.total
