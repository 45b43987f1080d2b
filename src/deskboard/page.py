from __future__ import annotations

import json

from .config import Config

HTML_TEMPLATE = """<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>Dashboard</title>
  <style>
    :root {{
      --bg: {bg};
      --fg: {fg};
      --fg-dim: {fg_dim};
      --border: {border};
      --alert: {alert};
      --font: ui-sans-serif, system-ui, "DejaVu Sans", sans-serif;
    }}
    body {{
      margin: 0;
      background: var(--bg);
      color: var(--fg);
      font-family: var(--font);
    }}
    header {{
      padding: 16px 24px;
      border-bottom: 1px solid var(--border);
    }}
    .grid {{
      display: grid;
      grid-template-columns: repeat({cols}, 1fr);
      gap: 24px;
      padding: 24px;
    }}
    .card {{
      border: 1px solid var(--border);
      border-radius: 12px;
      padding: 16px;
    }}
    .head {{
      display: flex;
      justify-content: space-between;
      align-items: baseline;
    }}
    .title {{ font-size: 20px; margin: 0 0 10px 0; }}
    .updated {{ color: var(--fg-dim); font-size: 12px; }}
    .line {{ color: var(--fg-dim); line-height: 1.5; }}
    .error {{ color: var(--alert); }}
    a {{ color: var(--fg); }}
  </style>
</head>
<body>
  <header>
    <h1>Dashboard</h1>
    <div class="updated" id="today"></div>
  </header>
  <div class="grid" id="grid"></div>

  <script>
    const POLL_MS = {poll_ms};

    function linesForWidget(w) {{
      const d = w.data;
      switch (w.name) {{
        case "weather":
          return [
            d.location,
            `${{d.temp}}°  ${{d.description}}`,
            `Feels like ${{d.feels_like}}°  Humidity ${{d.humidity}}%  Wind ${{d.wind}} m/s`,
          ];
        case "forecast":
          if (!d.length) return ["No forecast data available"];
          return d.map(f => `${{f.day}}  ${{f.temp}}°  ${{f.condition}}`);
        case "stocks":
          if (!d.length) return ["No stock data available"];
          return d.map(s => {{
            const sign = s.change >= 0 ? "+" : "";
            const star = s.favorite ? " *" : "";
            return {{
              text: `${{s.symbol}}  $${{s.price.toFixed(2)}}  ${{sign}}${{s.change.toFixed(2)}} (${{s.changePercent.toFixed(2)}}%)${{star}}`,
              mark: s.symbol,
            }};
          }});
        case "news":
          if (!d.length) return ["No news available"];
          return d.map(a => ({{
            text: `${{a.bookmarked ? "[saved] " : ""}}${{a.title}} - ${{a.source}} - ${{a.time_ago}}`,
            mark: a.id,
          }}));
        case "tasks": {{
          if (!d.tasks.length) return ["No tasks found"];
          const out = d.tasks.map(t => {{
            const bits = [t.name, t.status];
            if (t.priority_label) bits.push(t.priority_label.text);
            if (t.due) bits.push(t.due.text);
            return bits.join("  ");
          }});
          out.push(d.summary);
          return out;
        }}
        case "calendar": {{
          const out = [d.month];
          for (const week of d.weeks) {{
            out.push(week.map(c => {{
              const label = String(c.day).padStart(2, " ");
              return c.in_month ? (c.has_event ? label + "*" : label + " ") : "   ";
            }}).join(" "));
          }}
          for (const e of d.events) out.push(`${{e.time || "all day"}}  ${{e.summary}}`);
          return out;
        }}
        default:
          return [JSON.stringify(d).slice(0, 120)];
      }}
    }}

    function bodyForWidget(w) {{
      if (w.error) return [["error", w.error]];
      if (w.loading && w.data == null) return [["line", "Loading..."]];
      if (w.data == null) return [];
      return linesForWidget(w).map(ln => typeof ln === "string" ? ["line", ln, null] : ["line", ln.text, ln.mark]);
    }}

    async function refreshWidget(name, params) {{
      await fetch(`/api/widgets/${{name}}/refresh`, {{
        method: "POST",
        headers: {{"Content-Type": "application/json"}},
        body: JSON.stringify(params || {{}}),
      }});
      setTimeout(poll, 500);
    }}

    async function toggleMark(name, key) {{
      await fetch(`/api/widgets/${{name}}/marks/${{encodeURIComponent(key)}}`, {{method: "POST"}});
      poll();
    }}

    function render(data) {{
      const grid = document.getElementById("grid");
      grid.replaceChildren();
      for (const w of data.results) {{
        const card = document.createElement("div");
        card.className = "card";

        const head = document.createElement("div");
        head.className = "head";
        const title = document.createElement("div");
        title.className = "title" + (w.ok ? "" : " error");
        title.textContent = w.title || w.name;
        head.appendChild(title);

        const updated = document.createElement("span");
        updated.className = "updated";
        updated.textContent = w.updated_text ? `Updated ${{w.updated_text}}` : "";
        head.appendChild(updated);

        const button = document.createElement("button");
        button.textContent = "Refresh";
        button.disabled = w.loading;
        button.onclick = () => {{
          if (w.name === "weather" || w.name === "forecast") {{
            const city = prompt("City (leave empty to keep current)");
            refreshWidget(w.name, city ? {{city}} : {{}});
          }} else if (w.name === "calendar") {{
            const date = prompt("Date (YYYY-MM-DD, leave empty for today)");
            refreshWidget(w.name, date ? {{date}} : {{}});
          }} else {{
            refreshWidget(w.name);
          }}
        }};
        head.appendChild(button);
        card.appendChild(head);

        for (const [cls, text, mark] of bodyForWidget(w)) {{
          const div = document.createElement("div");
          div.className = cls;
          div.textContent = text;
          if (mark != null) {{
            div.style.cursor = "pointer";
            div.title = "Click to toggle";
            div.onclick = () => toggleMark(w.name, mark);
          }}
          card.appendChild(div);
        }}
        grid.appendChild(card);
      }}
    }}

    async function poll() {{
      const response = await fetch("/api/widgets");
      if (response.ok) render(await response.json());
    }}

    document.getElementById("today").textContent = new Date().toLocaleDateString("en-US", {{
      weekday: "long", year: "numeric", month: "long", day: "numeric",
    }});
    render({initial_json});
    setInterval(poll, POLL_MS);
  </script>
</body>
</html>
"""

def render_page(cfg: Config, initial: dict) -> str:
    theme = cfg.section("theme")
    return HTML_TEMPLATE.format(
        cols=max(1, int(cfg.section("dashboard").get("columns", 2))),
        poll_ms=int(cfg.section("dashboard").get("page_poll_seconds", 10) * 1000),
        bg=theme.get("background", "#0b1120"),
        fg=theme.get("foreground", "#e2e8f0"),
        fg_dim=theme.get("foreground_dim", "#94a3b8"),
        border=theme.get("panel_border", "#1e293b"),
        alert=theme.get("alert", "#ff3355"),
        initial_json=json.dumps(initial).replace("</", "<\\/"),
    )
