"""远端模型调用配置（SettingsProvider）。

ChatConfig 是一次调用期间不可变的配置快照：endpoint、api key、模型名、
context size 以及是否自动生成标题。导入导出使用与原客户端一致的
camelCase JSON（modelLabel / modelRequestName / apiKey / endpoint /
contextSize / autoSummarizeTitles）。
"""

import json
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from chat_core.domain.conversation import PersistenceLayer
from chat_core.domain.exceptions import StoreError, ValidationError
from chat_core.infrastructure.logging.logger import logger

SETTINGS_KEY = "chatConfig"


class ChatConfig(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
        protected_namespaces=(),
    )

    model_label: str = Field(default="Default Model", description="仅用于展示")
    model_request_name: str = Field(default="chat", description="作为请求体中的 model 字段发送")
    api_key: str = Field(default="", description="可选的 Bearer 凭证")
    endpoint: str = Field(default="", description="chat completion 的完整 URL")
    context_size: int = Field(default=1024, ge=1, description="作为 max_tokens 发送")
    auto_summarize_titles: bool = False

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class SettingsProvider(Protocol):
    def current(self) -> ChatConfig:
        ...


class StaticSettingsProvider:
    """固定配置，主要用于脚本和测试。"""

    def __init__(self, config: Optional[ChatConfig] = None):
        self._config = config or ChatConfig()

    def current(self) -> ChatConfig:
        return self._config


class PersistentSettingsProvider:
    """把 ChatConfig 作为独立 blob 保存在 PersistenceLayer 中。"""

    def __init__(self, persistence: PersistenceLayer, key: str = SETTINGS_KEY):
        self._persistence = persistence
        self._key = key
        self._config = self._load()

    def current(self) -> ChatConfig:
        return self._config

    def update(self, **changes: Any) -> ChatConfig:
        merged = {**self._config.model_dump(), **changes}
        self._config = self._validate(merged)
        self._save()
        return self._config

    def export_json(self) -> str:
        return self._config.to_json()

    def import_json(self, text: str) -> ChatConfig:
        """导入配置文本；缺失的字段保留当前值。"""
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ValidationError(code="INVALID_SETTINGS", message=f"settings are not valid JSON: {e}")
        if not isinstance(data, dict):
            raise ValidationError(code="INVALID_SETTINGS", message="settings must be a JSON object")
        merged = {**self._config.model_dump(by_alias=True), **data}
        self._config = self._validate(merged)
        self._save()
        logger.info("Imported chat settings", extra={"extra": {"keys": sorted(data)}})
        return self._config

    @staticmethod
    def _validate(data: dict) -> ChatConfig:
        try:
            return ChatConfig.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(code="INVALID_SETTINGS", message=str(e))

    def _load(self) -> ChatConfig:
        raw = self._persistence.load(self._key)
        if raw is None:
            return ChatConfig()
        try:
            return ChatConfig.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.error("Stored chat settings are invalid, using defaults", extra={"extra": {"error": str(e)}})
            return ChatConfig()

    def _save(self) -> None:
        try:
            self._persistence.save(self._key, self._config.to_json().encode("utf-8"))
        except StoreError:
            logger.error("Failed to persist chat settings", extra={"extra": {"key": self._key}})
            raise
