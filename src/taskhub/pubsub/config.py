"""PubSubConfig -- Pub/Sub 流水线配置加载

从环境变量加载配置，不硬编码 project / emulator 地址。
"""

import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from pydantic import BaseModel, Field, field_validator

log = structlog.get_logger()


class PubSubConfig(BaseModel):
    """Pub/Sub 流水线配置 -- 从环境变量加载

    环境变量:
        PUBSUB_PROJECT_ID: GCP project（默认 task-project）
        PUBSUB_EMULATOR_HOST: 本地 emulator 地址，未设置时使用生产凭据
        TASKHUB_PUBSUB_ENABLED: 是否启用事件流水线（默认 true）
        TASKHUB_PUBSUB_RETENTION_S: subscription 消息保留时长（秒，默认 3600）
        TASKHUB_PUBSUB_ACK_DEADLINE_S: subscription ack 截止时间（秒，默认 30）
        TASKHUB_PUBSUB_PUBLISH_TIMEOUT_S: 单次发布等待超时（秒，默认 10）
        TASKHUB_PUBSUB_MAX_WORKERS: 每个 subscription 的并发处理数（默认 4）
        TASKHUB_PUBSUB_MAX_MESSAGES: 单次 pull 的最大消息数（默认 10）
        TASKHUB_STATS_DEDUP: 统计订阅者是否按事件去重（默认 true）
        TASKHUB_STATS_ALL_KINDS: 统计订阅者是否订阅全部事件类型（默认 true）
        TASKHUB_STATS_TIMEZONE: 当日计数翻日判断使用的时区（默认 UTC）
    """

    project_id: str = Field(
        default="task-project",
        description="GCP project ID",
    )
    emulator_host: str | None = Field(
        default=None,
        description="Pub/Sub emulator 地址（host:port）",
    )
    enabled: bool = Field(
        default=True,
        description="是否启用事件流水线",
    )
    retention_seconds: int = Field(
        default=3600,
        ge=600,
        description="subscription 消息保留时长（秒）",
    )
    ack_deadline_seconds: int = Field(
        default=30,
        ge=10,
        le=600,
        description="subscription ack 截止时间（秒）",
    )
    publish_timeout_s: float = Field(
        default=10.0,
        gt=0,
        description="单次发布等待 broker 确认的超时（秒）",
    )
    max_workers: int = Field(
        default=4,
        ge=1,
        description="每个 subscription 的并发消息处理数",
    )
    max_messages: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="单次 pull 的最大消息数",
    )
    pull_timeout_s: float = Field(
        default=5.0,
        gt=0,
        description="单次 pull 的等待超时（秒）",
    )
    statistics_dedup_enabled: bool = Field(
        default=True,
        description="统计订阅者按 event_id 幂等应用增量",
    )
    statistics_subscribe_all_kinds: bool = Field(
        default=True,
        description="统计订阅者订阅全部四种事件类型（否则仅 task-status-changed）",
    )
    statistics_timezone: str = Field(
        default="UTC",
        description="当日计数翻日判断使用的 IANA 时区",
    )

    @field_validator("statistics_timezone")
    @classmethod
    def _check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone: {v}") from e
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """统计时区对象"""
        return ZoneInfo(self.statistics_timezone)


def _parse_bool(val: str) -> bool:
    return val.strip().lower() in ("1", "true", "yes", "on")


# 数值型环境变量 -> (字段名, 类型)
_NUMERIC_ENV: dict[str, tuple[str, type]] = {
    "TASKHUB_PUBSUB_RETENTION_S": ("retention_seconds", int),
    "TASKHUB_PUBSUB_ACK_DEADLINE_S": ("ack_deadline_seconds", int),
    "TASKHUB_PUBSUB_PUBLISH_TIMEOUT_S": ("publish_timeout_s", float),
    "TASKHUB_PUBSUB_MAX_WORKERS": ("max_workers", int),
    "TASKHUB_PUBSUB_MAX_MESSAGES": ("max_messages", int),
}


def load_pubsub_config() -> PubSubConfig:
    """从环境变量加载 Pub/Sub 配置

    数值非法或超出范围时记录 warning 并回退到默认值。

    Returns:
        PubSubConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("PUBSUB_PROJECT_ID"):
        kwargs["project_id"] = val

    if val := os.environ.get("PUBSUB_EMULATOR_HOST"):
        kwargs["emulator_host"] = val

    if val := os.environ.get("TASKHUB_PUBSUB_ENABLED"):
        kwargs["enabled"] = _parse_bool(val)

    for env_var, (key, cast) in _NUMERIC_ENV.items():
        if val := os.environ.get(env_var):
            try:
                kwargs[key] = cast(val)
            except ValueError:
                log.warning(
                    "invalid_pubsub_config",
                    env_var=env_var,
                    value=val,
                    fallback=PubSubConfig.model_fields[key].default,
                )
                # 使用默认值，不阻塞启动

    if val := os.environ.get("TASKHUB_STATS_DEDUP"):
        kwargs["statistics_dedup_enabled"] = _parse_bool(val)

    if val := os.environ.get("TASKHUB_STATS_ALL_KINDS"):
        kwargs["statistics_subscribe_all_kinds"] = _parse_bool(val)

    if val := os.environ.get("TASKHUB_STATS_TIMEZONE"):
        kwargs["statistics_timezone"] = val

    # 超出范围的数值同样回退默认值
    for key, field in PubSubConfig.model_fields.items():
        if key not in kwargs:
            continue
        try:
            PubSubConfig(**{key: kwargs[key]})
        except ValueError:
            log.warning(
                "invalid_pubsub_config",
                field=key,
                value=kwargs[key],
                fallback=field.default,
            )
            kwargs.pop(key)

    return PubSubConfig(**kwargs)
