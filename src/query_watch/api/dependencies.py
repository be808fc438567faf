from fastapi import Request

from query_watch.api.rendering import DashboardRenderer
from query_watch.warehouse.failed_queries import FailedQueryRepository


def get_repository(request: Request) -> FailedQueryRepository:
    return request.app.state.repository


def get_renderer(request: Request) -> DashboardRenderer:
    return request.app.state.renderer
