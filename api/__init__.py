"""
api/ — Gas 补助与 RPC 健康检查的 HTTP 接口（FastAPI）
"""

from api.main import app, create_app

__all__ = ["app", "create_app"]
