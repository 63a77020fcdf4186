"""
Label Resolver - Compute the display label for an entry.

Fallback chain (each step gated by its LabelConfig flag):
  1. Subtitle, when subtitle-only display is on
  2. The node's own label
  3. Subtitle
  4. Joined tags
  5. "{Kind} {index+1}" (bare kind name without an index)
  6. Placeholder text
"""

from typing import Iterable, Optional

from tourfind.config import LabelConfig
from tourfind.index.models import NodeContext

DEFAULT_PLACEHOLDER = "[Unnamed Item]"


def resolve_label(
    label: Optional[str],
    subtitle: Optional[str],
    tags: Iterable[str],
    context: NodeContext,
    config: LabelConfig = LabelConfig(),
) -> str:
    """Return a non-empty display label. Deterministic for identical inputs."""
    label = (label or "").strip()
    subtitle = (subtitle or "").strip()
    tags = [t.strip() for t in tags or () if t and t.strip()]

    if config.only_subtitles and subtitle:
        return subtitle

    if label:
        return label

    if config.use_subtitle and subtitle:
        return subtitle

    if config.use_tags and tags:
        return ", ".join(tags)

    if config.use_element_type:
        kind_name = context.kind.value
        if context.index is not None and context.index >= 0:
            return f"{kind_name} {context.index + 1}"
        return kind_name

    return config.placeholder.strip() or DEFAULT_PLACEHOLDER
