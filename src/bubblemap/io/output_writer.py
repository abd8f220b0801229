from __future__ import annotations

import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Optional

from bubblemap.config.settings import TEMPLATE_DATA_PLACEHOLDER
from bubblemap.core.models import Graph, PipelineStats
from bubblemap.io.schemas import graph_to_dict


logger = logging.getLogger(__name__)


def write_graph_json(graph: Graph, out_dir: str, filename: str = "bubblemap.json") -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(graph_to_dict(graph), f, indent=2)

    return str(out_path)


def embed_graph(graph: Graph, template: str) -> str:
    """
    Replace the template's data-loading line with the graph inlined as a
    JavaScript literal. A template without that line is returned unchanged
    (it will still load bubblemap.json at runtime).
    """
    if TEMPLATE_DATA_PLACEHOLDER not in template:
        logger.warning("template has no data placeholder; leaving it to fetch bubblemap.json")
        return template
    json_data = json.dumps(graph_to_dict(graph), indent=2).replace("</", "<\\/")
    return template.replace(TEMPLATE_DATA_PLACEHOLDER, f"const data = {json_data};")


def write_bubblemap_html(
    graph: Graph,
    out_dir: str,
    template_path: Optional[str] = None,
    filename: str = "output.html",
) -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    if template_path:
        logger.info("reading template %s", template_path)
        template = Path(template_path).read_text(encoding="utf-8")
    else:
        template = DEFAULT_TEMPLATE

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        f.write(embed_graph(graph, template))

    return str(out_path)


def write_summary_md(
    graph: Graph,
    out_dir: str,
    filename: str = "summary.md",
    receiver: Optional[str] = None,
    stats: Optional[PipelineStats] = None,
) -> str:
    """
    Short run summary: sizes, top participants, top flows.
    """
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename

    def fmt_usd(x: Decimal) -> str:
        return f"{x:.2f}"

    def short(addr: str) -> str:
        return addr if len(addr) <= 14 else f"{addr[:10]}..."

    lines = []
    lines.append("# Bubblemap Summary\n")
    lines.append(f"- Nodes: **{len(graph.nodes)}**\n")
    lines.append(f"- Links: **{len(graph.edges)}**\n")
    if receiver:
        lines.append(f"- Receiver: **{receiver}**\n")
    if stats is not None:
        lines.append(f"- Pages fetched: **{stats.pages}** ({stats.records} transfers)\n")
        lines.append(f"- Participants seen: **{stats.total_nodes}** (kept {len(graph.nodes)})\n")
        lines.append(f"- Pairs seen: **{stats.total_edges}** (kept {len(graph.edges)})\n")
        if stats.stop_reason is not None:
            lines.append(f"- Stopped on: **{stats.stop_reason.value}**\n")
    lines.append("\n")

    lines.append("## Top 10 Participants (by USD)\n\n")
    if not graph.nodes:
        lines.append("_No transfers found for this receiver._\n\n")
    else:
        for n in graph.nodes[:10]:
            lines.append(f"- **{fmt_usd(n.value)} USD** | {n.id}\n")
        lines.append("\n")

    lines.append("## Top 10 Flows (by USD)\n\n")
    if not graph.edges:
        lines.append("_No flows kept._\n\n")
    else:
        for e in graph.edges[:10]:
            lines.append(
                f"- **{fmt_usd(e.value)} USD** | {short(e.source)} -> {short(e.target)} "
                f"| {e.count} transfer(s)\n"
            )
        lines.append("\n")

    lines.append("## Limitations\n\n")
    lines.append("- Only the highest-value participants and flows are kept; totals are not a ledger.\n")
    lines.append("- USD amounts are as reported by Bitquery; missing amounts count as 0.\n")

    with out_path.open("w", encoding="utf-8") as f:
        f.writelines(lines)

    return str(out_path)


DEFAULT_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>Bubblemap</title>
  <style>
    :root {
      --bg: #0f1115;
      --panel: #151824;
      --text: #e6e8ef;
      --muted: #9aa3b2;
      --accent: #5bd1d7;
    }
    body {
      margin: 0;
      font-family: "SF Mono", "Menlo", "Consolas", monospace;
      background: var(--bg);
      color: var(--text);
    }
    header {
      padding: 16px 20px;
      border-bottom: 1px solid #23283a;
      background: var(--panel);
    }
    header h1 { margin: 0; font-size: 18px; }
    header p { margin: 6px 0 0 0; font-size: 12px; color: var(--muted); }
    #map { width: 100vw; height: calc(100vh - 64px); display: block; }
    .tip {
      position: absolute;
      pointer-events: none;
      padding: 6px 8px;
      font-size: 12px;
      background: var(--panel);
      border: 1px solid #23283a;
      display: none;
    }
  </style>
</head>
<body>
  <header>
    <h1>Bubblemap</h1>
    <p id="stats">Loading...</p>
  </header>
  <svg id="map"></svg>
  <div class="tip" id="tip"></div>

  <script src="https://cdn.jsdelivr.net/npm/d3@7"></script>
  <script type="module">
    const data = await fetch('./bubblemap.json').then(r => r.json());

    const svg = d3.select("#map");
    const width = svg.node().clientWidth;
    const height = svg.node().clientHeight;
    const tip = document.getElementById("tip");
    const short = (a) => (a.length > 14 ? a.slice(0, 6) + "..." + a.slice(-4) : a);

    const maxValue = d3.max(data.nodes, (d) => d.value) || 1;
    const radius = d3.scaleSqrt().domain([0, maxValue]).range([3, 48]);
    const linkWidth = d3.scaleLog().domain([1, d3.max(data.links, (d) => d.value + 1) || 2]).range([0.5, 6]);

    const sim = d3.forceSimulation(data.nodes)
      .force("link", d3.forceLink(data.links).id((d) => d.id).distance(80))
      .force("charge", d3.forceManyBody().strength(-60))
      .force("collide", d3.forceCollide((d) => radius(d.value) + 2))
      .force("center", d3.forceCenter(width / 2, height / 2));

    const link = svg.append("g").attr("stroke", "#3a4157").attr("stroke-opacity", 0.6)
      .selectAll("line").data(data.links).join("line")
      .attr("stroke-width", (d) => linkWidth(d.value + 1));

    const node = svg.append("g")
      .selectAll("circle").data(data.nodes).join("circle")
      .attr("r", (d) => radius(d.value))
      .attr("fill", "#5bd1d7").attr("fill-opacity", 0.75)
      .on("mousemove", (ev, d) => {
        tip.style.display = "block";
        tip.style.left = ev.pageX + 12 + "px";
        tip.style.top = ev.pageY + 12 + "px";
        tip.textContent = `${d.label} | ${d.value.toFixed(2)} USD`;
      })
      .on("mouseout", () => { tip.style.display = "none"; });

    const label = svg.append("g")
      .selectAll("text").data(data.nodes.slice(0, 25)).join("text")
      .attr("font-size", 10).attr("fill", "#e6e8ef").attr("text-anchor", "middle")
      .text((d) => short(d.label));

    sim.on("tick", () => {
      link.attr("x1", (d) => d.source.x).attr("y1", (d) => d.source.y)
          .attr("x2", (d) => d.target.x).attr("y2", (d) => d.target.y);
      node.attr("cx", (d) => d.x).attr("cy", (d) => d.y);
      label.attr("x", (d) => d.x).attr("y", (d) => d.y + 3);
    });

    document.getElementById("stats").textContent =
      `Nodes: ${data.nodes.length} | Links: ${data.links.length}`;
  </script>
</body>
</html>
"""
