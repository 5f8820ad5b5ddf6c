from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class SearchField(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    type: str = ""
    label: str = ""
    value: str = ""

    def matches(self, name: str) -> bool:
        return self.name == name or self.type == name


class SearchRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    entries: list[SearchField] = Field(default_factory=list, alias="fields")

    def first(self, name: str) -> str:
        for item in self.entries:
            if item.matches(name):
                logger.debug("located field [%s] -> [%s]", name, item.value)
                return item.value
        logger.warning("cannot find field [%s] in search results", name)
        return ""

    def all(self, name: str) -> list[str]:
        return [item.value for item in self.entries if item.matches(name)]


class SearchGroup(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    records: list[SearchRecord] = Field(default_factory=list, alias="record_list")


class SearchResult(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    groups: list[SearchGroup] = Field(default_factory=list, alias="group_list")
