from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, Union

Number = Union[StrictInt, StrictFloat]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TopicCreated(_CamelModel):
    topic_id: str
    secret: str
    sub_path: str
    pub_path: str


class TopicRead(_CamelModel):
    markdown: str
    created_at: str
    updated_at: str


class TopicContentUpdate(BaseModel):
    markdown: str


class TopicContentUpdated(_CamelModel):
    success: bool = True
    updated_at: str


class Reaction(BaseModel):
    # Unknown keys ride along so reactions are relayed as sent.
    model_config = ConfigDict(frozen=True, extra="allow")

    emoji: str
    timestamp: Optional[Number] = None


class PubEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    reaction: Optional[Reaction] = None


class InboundFrame(_CamelModel):
    """One client frame. Every field is optional and handled on its own.

    A key that is present with a ``null`` value is rejected rather than read
    as "absent".
    """

    markdown: Optional[str] = None
    current_page: Optional[Number] = None
    current_section: Optional[Number] = None
    pub: Optional[PubEvent] = None

    @model_validator(mode="after")
    def _reject_explicit_nulls(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} must not be null")
        return self

    @property
    def has_content(self) -> bool:
        return self.markdown is not None

    @property
    def has_navigation(self) -> bool:
        return self.current_page is not None or self.current_section is not None

    @property
    def reaction(self) -> Optional[Reaction]:
        if self.pub is None:
            return None
        return self.pub.reaction


class OutboundFrame(_CamelModel):
    model_config = ConfigDict(frozen=True)

    markdown: Optional[str] = None
    current_page: Optional[Number] = None
    current_section: Optional[Number] = None
    pub: Optional[PubEvent] = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class ErrorFrame(BaseModel):
    error: str
    code: Optional[str] = None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)
