"""
Phase catalog — the default provisioning plan.

    dependencies → performance
                 → services → homeassistant
                            → gaming → media
                            → fileserver

Disabled features are simply left out of the list.
"""

from __future__ import annotations

from commandcenter.core.config.settings import Settings
from commandcenter.core.models.phase import Phase
from commandcenter.phases import fileserver, foundation, gaming, homeassistant, media, performance, services


def build_phases(settings: Settings) -> list[Phase]:
    """Build the ordered Phase list for ``settings``."""
    phases = [
        foundation.build(settings),
        performance.build(settings),
        services.build(settings),
    ]
    features = settings.features
    if features.homeassistant:
        phases.append(homeassistant.build(settings))
    if features.gaming:
        phases.append(gaming.build(settings))
    if features.media:
        phases.append(media.build(settings))
    if features.fileserver:
        phases.append(fileserver.build(settings))
    return phases
