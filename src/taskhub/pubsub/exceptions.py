"""Pub/Sub 流水线异常体系"""


class PubSubError(Exception):
    """Pub/Sub 流水线基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class TopicNotInitializedError(PubSubError):
    """查询的 topic 尚未初始化（不在缓存中）"""

    def __init__(self, topic_name: str) -> None:
        super().__init__(f"Topic {topic_name} not initialized", recoverable=False)
        self.topic_name = topic_name


class TopicInitializationError(PubSubError):
    """topic 创建失败，启动流程应中止"""

    def __init__(self, topic_name: str, original_error: Exception) -> None:
        super().__init__(
            f"Failed to initialize topic {topic_name}: {original_error}",
            recoverable=False,
        )
        self.topic_name = topic_name
        self.original_error = original_error


class SubscriptionInitializationError(PubSubError):
    """subscription 创建失败"""

    def __init__(self, subscription_name: str, original_error: Exception) -> None:
        super().__init__(
            f"Failed to initialize subscription {subscription_name}: {original_error}",
            recoverable=False,
        )
        self.subscription_name = subscription_name
        self.original_error = original_error


class PublishError(PubSubError):
    """事件发布失败（单次尝试，不重试）

    调用方决定是否重发；HTTP 请求不因此失败。
    """

    def __init__(self, topic_name: str, original_error: Exception) -> None:
        super().__init__(
            f"Failed to publish to {topic_name}: {original_error}",
            recoverable=True,
        )
        self.topic_name = topic_name
        self.original_error = original_error
