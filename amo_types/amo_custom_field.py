from __future__ import annotations
from typing import Any, Dict, List, Union
from pydantic import BaseModel, ConfigDict, Field


CustomFieldId = Union[int, str]


class CustomField(BaseModel):
  """Custom field entry as written by the v2 API: an id and its values.

  Each value is kept verbatim, so keys like `enum` or `subtype` survive a
  fetch/save round trip.
  """

  id: CustomFieldId
  values: List[Dict[str, Any]] = Field(default_factory=list)

  model_config = ConfigDict(extra="ignore")  # drops name, is_system, etc.


class Tag(BaseModel):
  name: str

  model_config = ConfigDict(extra="ignore")
