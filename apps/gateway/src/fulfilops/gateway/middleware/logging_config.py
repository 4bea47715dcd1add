"""structlog 配置模块

dev 模式：控制台可读输出；json 模式：单行 JSON（生产环境，便于日志平台检索）。
标准库 logging（uvicorn / httpx / aiosqlite）同样经过 structlog 渲染。
Logfire APM：LOGFIRE_SEND_TO_LOGFIRE 环境变量控制，false 时只输出本地日志。
"""

import logging
import os

import structlog

# 第三方库日志默认只保留 WARNING 以上，避免每次存储调用都刷屏
_NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def _add_service_name(_logger, _method_name, event_dict):
    event_dict.setdefault("service", "fulfilops")
    return event_dict


def setup_logging() -> None:
    """初始化 structlog 配置

    环境变量：
    - FULFILOPS_LOG_FORMAT: "json" 或 "dev"（默认）
    - FULFILOPS_LOG_LEVEL: 日志级别，默认 INFO
    """
    log_format = os.environ.get("FULFILOPS_LOG_FORMAT", "dev").lower()
    log_level = os.environ.get("FULFILOPS_LOG_LEVEL", "INFO").upper()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer(
            ensure_ascii=False
        )
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logfire() -> None:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE=true 时启用（需要 LOGFIRE_TOKEN 与 logfire extra），
    初始化失败只记录告警，服务继续运行。
    """
    send_to_logfire = os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower()
    if send_to_logfire != "true":
        return
    try:
        import logfire

        logfire.configure(service_name="fulfilops")
        logfire.instrument_httpx()
    except Exception as e:
        structlog.get_logger().warning("logfire_init_failed", error=str(e))
