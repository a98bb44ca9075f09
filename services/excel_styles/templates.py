"""Named bundles of style rules.

A rule ``{"template": "blue_medium"}`` in ``excelStyles`` is replaced by
the template's rules before anything else runs.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


def _table_template(description: str, heading: str, band: str, border: str) -> Dict[str, Any]:
    """Heading row, every other data row banded, thin row borders."""
    return {
        "description": description,
        "excelStyles": [
            {
                "cells": "2",
                "style": {
                    "font": {"color": "FFFFFF"},
                    "fill": {"patternFill": {"patternType": "solid", "fgColor": heading, "bgColor": heading}},
                },
            },
            {
                "cells": "3:n,2",
                "style": {
                    "fill": {"patternFill": {"patternType": "solid", "fgColor": band, "bgColor": band}},
                },
            },
            {
                "cells": "2:",
                "style": {
                    "border": {
                        "top": {"style": "thin", "color": border},
                        "bottom": {"style": "thin", "color": border},
                    },
                },
            },
        ],
    }


TEMPLATES: Dict[str, Dict[str, Any]] = {
    "blue_medium": _table_template("Blue Medium Weight", "4472C4", "D9E1F2", "8EA9DB"),
    "green_medium": _table_template("Green Medium Weight", "70AD47", "E2EFDA", "A9D08E"),
}


def get_template(name: str) -> Optional[Dict[str, Any]]:
    """A copy of the named template, or None."""
    template = TEMPLATES.get(name)
    return copy.deepcopy(template) if template is not None else None


def list_templates() -> Dict[str, str]:
    return {name: template["description"] for name, template in TEMPLATES.items()}


def _template_name(rule: Any) -> Optional[str]:
    if isinstance(rule, dict):
        return rule.get("template")
    return getattr(rule, "template", None)


def expand_templates(rules: List[Any]) -> List[Any]:
    """Replace template references with the template's rules, in place order."""
    expanded: List[Any] = []
    for rule in rules:
        name = _template_name(rule)
        if name is None:
            expanded.append(rule)
            continue
        template = get_template(name)
        if template is None:
            logger.warning(f"Template '{name}' not found. Ignoring template.")
            continue
        expanded.extend(template["excelStyles"])
    return expanded
