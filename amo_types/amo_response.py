from __future__ import annotations
from typing import Any, Dict, List
from pydantic import BaseModel, ConfigDict, Field


class AmoEmbedded(BaseModel):
  items: List[Dict[str, Any]]

  model_config = ConfigDict(extra="ignore")


class AmoResponse(BaseModel):
  """Envelope returned by read and write calls: `{"_embedded": {"items": [...]}}`."""

  embedded: AmoEmbedded = Field(alias="_embedded")

  model_config = ConfigDict(extra="ignore")

  @property
  def items(self) -> List[Dict[str, Any]]:
    return self.embedded.items
