"""
Shared router dependencies
"""

from fastapi import Request

from services.runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime
