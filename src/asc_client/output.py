"""
Rendering of decoded envelopes for the command line.

Tabular formats flatten each resource into one row (id, type, then its
attributes, nested attributes joined with dots) using pandas.
"""

import json
from typing import Any, Dict, List, Union

import pandas as pd

from .envelope import Links, Resource, Response, SingleResponse
from .exceptions import ValidationError

OUTPUT_FORMATS = ("json", "table", "csv", "markdown")

Envelope = Union[Response, SingleResponse]


def _links_to_dict(links: Links) -> Dict[str, str]:
    values = {"self": links.self_url, "next": links.next, "prev": links.prev}
    return {k: v for k, v in values.items() if v}


def resource_to_dict(resource: Resource) -> Dict[str, Any]:
    item: Dict[str, Any] = {"type": resource.type, "id": resource.id}
    if resource.attributes:
        item["attributes"] = resource.attributes
    if resource.relationships:
        item["relationships"] = resource.relationships
    return item


def envelope_to_dict(envelope: Envelope) -> Dict[str, Any]:
    """Convert an envelope back to its JSON:API document shape."""
    if isinstance(envelope, SingleResponse):
        document: Dict[str, Any] = {"data": resource_to_dict(envelope.data)}
    else:
        document = {"data": [resource_to_dict(r) for r in envelope.data]}
        if envelope.meta:
            document["meta"] = envelope.meta
    if envelope.included:
        document["included"] = [resource_to_dict(r) for r in envelope.included]
    links = _links_to_dict(envelope.links)
    if links:
        document["links"] = links
    return document


def to_dataframe(envelope: Envelope) -> pd.DataFrame:
    """
    Flatten the envelope's primary data into a DataFrame.

    Returns:
        One row per resource with ``id`` and ``type`` first; an empty
        DataFrame with those two columns when there is no data
    """
    if isinstance(envelope, SingleResponse):
        resources: List[Resource] = [envelope.data]
    else:
        resources = list(envelope.data)

    if not resources:
        return pd.DataFrame(columns=["id", "type"])

    rows = [
        {"id": r.id, "type": r.type, **dict(r.attributes or {})}
        for r in resources
    ]
    df = pd.json_normalize(rows)
    leading = ["id", "type"]
    return df[leading + [c for c in df.columns if c not in leading]]


def _cell(value: Any) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    if isinstance(value, (list, dict)):
        value = json.dumps(value)
    return str(value).replace("|", "\\|").replace("\n", " ")


def _markdown(df: pd.DataFrame) -> str:
    header = "| " + " | ".join(str(c) for c in df.columns) + " |"
    divider = "| " + " | ".join("---" for _ in df.columns) + " |"
    lines = [header, divider]
    for row in df.itertuples(index=False):
        lines.append("| " + " | ".join(_cell(v) for v in row) + " |")
    return "\n".join(lines)


def render(envelope: Envelope, output_format: str = "json") -> str:
    """
    Render an envelope as json, table, csv or markdown.

    Raises:
        ValidationError: If the format is unknown
    """
    output_format = (output_format or "json").strip().lower()
    if output_format not in OUTPUT_FORMATS:
        raise ValidationError(
            f"unsupported output format {output_format!r} "
            f"(expected one of: {', '.join(OUTPUT_FORMATS)})"
        )

    if output_format == "json":
        return json.dumps(envelope_to_dict(envelope), indent=2)

    df = to_dataframe(envelope)
    if output_format == "csv":
        return df.to_csv(index=False).rstrip("\n")
    if output_format == "markdown":
        return _markdown(df)
    if df.empty:
        return "No results."
    return df.to_string(index=False)
