"""chat/completions 请求与响应的强类型结构。

请求体：{"model": str, "messages": [{"role", "content"}...], "max_tokens": int}
响应体：只消费 choices[0].message.content，其余字段忽略。

响应的任何结构不匹配都在 decode_completion 中统一归类为 ResponseDecodeError，
而不是一串零散的可选值判断。
"""

from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from chat_core.domain.conversation import Message, Role
from chat_core.domain.exceptions import RequestBuildError, ResponseDecodeError


class WireMessage(BaseModel):
    role: Role
    content: str

    @classmethod
    def from_message(cls, message: Message) -> "WireMessage":
        return cls(role=message.role, content=message.content)


class CompletionRequest(BaseModel):
    model: str
    messages: List[WireMessage]
    max_tokens: int

    def to_body(self) -> bytes:
        try:
            return self.model_dump_json().encode("utf-8")
        except (TypeError, ValueError) as e:
            raise RequestBuildError(code="REQUEST_BUILD_ERROR", message=str(e))


class ResponseMessage(BaseModel):
    role: Optional[str] = None
    content: str


class ResponseChoice(BaseModel):
    message: ResponseMessage
    finish_reason: Optional[str] = None


class CompletionResponse(BaseModel):
    choices: List[ResponseChoice] = Field(min_length=1)

    @property
    def content(self) -> str:
        return self.choices[0].message.content


def decode_completion(raw: bytes) -> CompletionResponse:
    try:
        return CompletionResponse.model_validate_json(raw)
    except PydanticValidationError as e:
        preview = raw[:200].decode("utf-8", errors="replace")
        raise ResponseDecodeError(
            code="DECODE_ERROR",
            message=f"unexpected completion response: {e.error_count()} error(s)",
            body_preview=preview,
        )
