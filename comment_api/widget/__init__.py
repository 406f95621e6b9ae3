"""Embeddable widget script, admin panel page and static assets."""

from .static import AssetFiles, mount_static
from .template import (
    TemplateHotReloader,
    WidgetTemplateCache,
    WidgetTemplateData,
    WidgetTemplateError,
    determine_api_url,
    render_template,
)


__all__ = [
    "AssetFiles",
    "TemplateHotReloader",
    "WidgetTemplateCache",
    "WidgetTemplateData",
    "WidgetTemplateError",
    "determine_api_url",
    "mount_static",
    "render_template",
]
