from __future__ import annotations

from typing import Optional, Sequence

import jinja2

from query_watch.warehouse.failed_queries import FailedQuery

DASHBOARD_TEMPLATE = "dashboard.html"


def _create_jinja_env() -> jinja2.Environment:
    return jinja2.Environment(
        loader=jinja2.PackageLoader("query_watch", "templates"),
        autoescape=jinja2.select_autoescape(["html"]),
        undefined=jinja2.StrictUndefined,
    )


class DashboardRenderer:
    """
    Renders the failed-query dashboard. The template is parsed once at
    construction so a broken template fails startup, not the first request.
    Every interpolated value is HTML-escaped by the environment.
    """

    def __init__(
        self, refresh_seconds: int = 30, env: Optional[jinja2.Environment] = None
    ) -> None:
        self._refresh_seconds = refresh_seconds
        self._template = (env or _create_jinja_env()).get_template(DASHBOARD_TEMPLATE)

    @property
    def refresh_seconds(self) -> int:
        return self._refresh_seconds

    def render(self, queries: Sequence[FailedQuery]) -> str:
        users = sorted({q.user_name for q in queries})
        return self._template.render(
            queries=list(queries),
            count=len(queries),
            unique_users=len(users),
            user_list=users,
            refresh_seconds=self._refresh_seconds,
        )


__all__ = ["DashboardRenderer", "DASHBOARD_TEMPLATE"]
