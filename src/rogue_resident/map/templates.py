from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Tuple

from ..data.loader import default_loader
from .models import NodeType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeTemplate:
    titles: Tuple[str, ...]
    descriptions: Tuple[str, ...]


@lru_cache(maxsize=1)
def load_node_templates() -> Dict[NodeType, NodeTemplate]:
    """Titles and descriptions per node type from the bundled ``node_templates.yaml``."""
    raw = default_loader().load_resource("node_templates.yaml", schema="node_templates")
    templates = {
        NodeType(kind): NodeTemplate(titles=tuple(t["titles"]), descriptions=tuple(t["descriptions"]))
        for kind, t in raw.items()
    }
    logger.debug("Loaded node templates for %d node types", len(templates))
    return templates


__all__ = ["NodeTemplate", "load_node_templates"]
