# skill_translator/core/exceptions.py
"""
本模块定义了 skill-translator 项目中所有自定义的、语义化的异常类型。

上层调用者（HTTP 边界层、CLI）依据异常类型把错误映射为稳定的对外分类，
因此底层实现不应抛出裸的第三方异常。
"""


class SkillTranslatorError(Exception):
    """
    所有 skill-translator 自定义异常的通用基类。
    捕获此异常可以处理所有源自本项目的预期错误。
    """


class ConfigurationError(SkillTranslatorError):
    """加载、解析或验证配置时发生的错误，例如缺失 API 密钥。"""


class EngineNotFoundError(SkillTranslatorError, KeyError):
    """
    尝试访问一个未注册的翻译引擎时引发的错误。
    继承自 KeyError 是为了保持与字典查找行为的一致性。
    """


class ContentValidationError(SkillTranslatorError):
    """输入内容的编码不合法（如 base64 损坏、非 UTF-8）。属于本地错误，从不重试。"""


class APIError(SkillTranslatorError):
    """
    与外部翻译服务交互时发生的错误。
    例如网络问题、流式响应中断或服务返回错误状态码。对重试逻辑而言等同于一次超时。
    """


class TranslationError(SkillTranslatorError):
    """翻译调用失败的公共基类。"""


class TranslationTimeoutError(TranslationError):
    """一次逻辑翻译调用（含全部重试）超出了总截止时间。"""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"翻译在 {timeout_seconds:g} 秒内未完成")


class EmptyResponseError(TranslationError):
    """翻译服务成功返回，但结果在去除空白后为空。"""

    def __init__(self, message: str = "翻译服务返回了空结果"):
        super().__init__(message)


class RetryExhaustedError(TranslationError):
    """所有重试次数均已用尽。携带尝试次数与最后一次失败的原因。"""

    def __init__(self, attempts: int, last_error: BaseException | None):
        self.attempts = attempts
        self.last_error = last_error
        reason = str(last_error) if last_error is not None else "未知错误"
        super().__init__(f"重试 {attempts} 次后仍然失败: {reason}")


class StorageError(SkillTranslatorError):
    """
    缓存持久化层发生的任何错误。通常是底层数据库驱动异常的包装。
    此类错误总是向上传播，绝不降级为“缓存未命中”。
    """


class ServiceShuttingDownError(SkillTranslatorError):
    """服务正在优雅停机，不再接受新的翻译请求。"""
