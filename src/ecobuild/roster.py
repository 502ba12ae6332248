# roster.py
# Projects tested on every run. Edit this file to add or remove projects.
from __future__ import annotations

from .dsl import addon, app, build, ignore, override, roster

# Applied to every project that has no matching override of its own.
DEFAULT_VERSION_OVERRIDES = {
    "24.*": ignore("v24 testing limited to selected projects"),
}


PROJECTS = roster(
    # ---- Add-ons ----
    addon(
        "hugerte-for-flow",
        "https://github.com/parttio/hugerte-for-flow",
        versions={"24.*": override(branch="v1")},
    ),
    build("super-fields", "https://github.com/vaadin-miki/super-fields")
    .in_subdir("superfields")
    .with_java("21-tem")
    .build(),
    addon("flow-viritin", "https://github.com/viritin/flow-viritin"),
    addon(
        "dramafinder",
        "https://github.com/parttio/dramafinder",
        notify_users=["jcgueriaud1"],
    ),
    addon(
        "sortable-layout",
        "https://github.com/jcgueriaud1/sortable-layout",
        notify_users=["jcgueriaud1"],
    ),
    addon("grid-pagination", "https://github.com/parttio/grid-pagination"),
    addon("vaadin-fullcalendar", "https://github.com/stefanuebe/vaadin-fullcalendar"),
    addon("vaadin-maps-leaflet-flow", "https://github.com/xdev-software/vaadin-maps-leaflet-flow"),
    addon("vaadin-ckeditor", "https://github.com/wontlost-ltd/vaadin-ckeditor"),
    addon(
        "svg-visualizations",
        "https://github.com/viritin/svg-visualizations",
        extra_args=["-DskipPerformanceValidation=true"],
    ),
    addon(
        "maplibre",
        "https://github.com/parttio/maplibre",
        versions={
            "25.*": override(branch="v25"),
            "24.*": override(branch="v24"),
        },
    ),
    addon(
        "SimpleTimeline",
        "https://github.com/samie/SimpleTimeline",
        notify_users=["samie"],
        versions={"24.*": override()},  # build on 24 despite the default
    ),
    # ---- Applications ----
    app("spring-boot-spatial-example", "https://github.com/mstahv/spring-boot-spatial-example"),
    app(
        "xsd-validator-ui",
        "https://github.com/rucko24/xsd-validator-ui",
        notify_users=["rucko24"],
    ),
)
