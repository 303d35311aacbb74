"""Datasette plugin for the blogtraffic content API, keyword suggestions and blog pages."""

from datasette_blogtraffic.plugin import (
    extra_template_vars,
    prepare_jinja2_environment,
    register_routes,
    skip_csrf,
    startup,
)

__all__ = [
    "extra_template_vars",
    "prepare_jinja2_environment",
    "register_routes",
    "skip_csrf",
    "startup",
]
