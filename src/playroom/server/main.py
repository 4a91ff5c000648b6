"""
服务器主程序入口

启动游戏服务器，监听客户端连接。
"""

import logging
import os
import time

from playroom.shared.constants import DEFAULT_HOST, DEFAULT_PORT

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """配置日志，级别与日志文件可通过环境变量 LOG_LEVEL / LOG_FILE 覆盖"""
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(os.environ.get("LOG_FILE", "server.log")), logging.StreamHandler()],
    )


def main():
    """启动服务器主函数"""
    setup_logging()
    logger.info("=" * 50)
    # 支持通过环境变量覆盖主机与端口
    host = os.environ.get("HOST", DEFAULT_HOST)
    try:
        port = int(os.environ.get("PORT", DEFAULT_PORT))
    except ValueError:
        port = DEFAULT_PORT

    logger.info("Playroom 游戏服务器启动中...")
    logger.info(f"监听地址: {host}:{port}")
    logger.info("=" * 50)

    server = None
    try:
        from playroom.server.network import NetworkServer

        server = NetworkServer(host, port)
        server.start()

        logger.info("服务器运行中，按 Ctrl+C 停止")

        # 保持服务器运行
        while True:
            time.sleep(1)

    except KeyboardInterrupt:
        logger.info("服务器正在关闭...")
    except Exception as e:
        logger.error(f"服务器错误: {e}", exc_info=True)
    finally:
        if server is not None:
            server.stop()
        logger.info("服务器已停止")


if __name__ == "__main__":
    main()
