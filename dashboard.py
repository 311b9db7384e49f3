import json
import logging
import os
from datetime import datetime, timezone

import pandas as pd
import plotly.express as px
import tldextract

logger = logging.getLogger(__name__)

# Bundled public suffix snapshot only; the report must not need network access.
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())

HISTORY_LIMIT = 365

# --- THEME ---
COLORS = {
    'text': '#E0E0E0',
    'accent': '#00F3FF',
    'danger': '#FF003C',
    'success': '#00FF9D',
    'grid': 'rgba(0, 243, 255, 0.05)'
}


def public_suffix(key):
    suffix = _EXTRACT(key).suffix
    return suffix or key.rsplit('.', 1)[-1]


def build_partition_frame(partitions, minimal):
    """One row per partition: sizes before and after shadow filtering."""
    kept = pd.Series([d.top_level_key for d in minimal], dtype=object).value_counts()
    rows = [{'key': key, 'total': len(members)} for key, members in partitions.items()]
    df = pd.DataFrame(rows, columns=['key', 'total'])
    df['minimal'] = df['key'].map(kept).fillna(0).astype(int)
    df['shadowed'] = df['total'] - df['minimal']
    df['suffix'] = df['key'].map(public_suffix)
    return df


def load_history(path):
    if not os.path.exists(path):
        return []
    try:
        with open(path, encoding='utf-8') as f:
            history = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable history file %s: %s", path, e)
        return []
    return history if isinstance(history, list) else []


def save_history(path, stats_data):
    history = load_history(path)
    history.append(stats_data)
    history = history[-HISTORY_LIMIT:]
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(history, f)
    return history


def generate_dashboard(df_main, history, stats, path="stats.html"):
    logger.info("Generating run report %s", path)

    layout_style = dict(paper_bgcolor='rgba(0,0,0,0)', plot_bgcolor='rgba(0,0,0,0)',
        font=dict(family='JetBrains Mono, monospace', color=COLORS['text']),
        margin=dict(l=20, r=20, t=40, b=20),
        xaxis=dict(showgrid=True, gridcolor=COLORS['grid'], zeroline=False),
        yaxis=dict(showgrid=True, gridcolor=COLORS['grid'], zeroline=False)
    )

    # 1. Suffix distribution of the minimal set
    df_suffix = df_main.groupby('suffix', as_index=False)['minimal'].sum()
    df_suffix = df_suffix.sort_values('minimal', ascending=False).head(8)
    fig_suffix = px.pie(df_suffix, values='minimal', names='suffix', hole=0.7,
                        color_discrete_sequence=px.colors.sequential.Plasma)
    fig_suffix.update_layout(**layout_style, height=300, showlegend=False)
    fig_suffix.update_traces(textposition='outside', textinfo='label+percent')

    # 2. Partitions that shrank the most
    df_top = df_main.sort_values(['shadowed', 'key'], ascending=[False, True]).head(15)
    fig_top = px.bar(df_top, x='shadowed', y='key', orientation='h', color='shadowed',
                     color_continuous_scale='Viridis')
    fig_top.update_layout(**layout_style, height=400, coloraxis_showscale=False)
    fig_top.update_yaxes(autorange="reversed")

    # 3. History
    df_hist = pd.DataFrame(history, columns=['date', 'minimal'])
    fig_hist = px.area(df_hist, x='date', y='minimal', line_shape='spline', markers=True)
    fig_hist.update_layout(**layout_style, height=250)
    fig_hist.update_traces(line_color=COLORS['success'], fillcolor='rgba(0, 255, 157, 0.1)')

    rows = "".join(
        f"<tr><td>{label}</td><td class='num'>{value}</td></tr>"
        for label, value in [
            ("Input domains", stats.input_domains),
            ("Unique domains", stats.unique_domains),
            ("Added by personal block list", stats.merged),
            ("Removed by personal allow list", stats.removed),
            ("Shadowed subdomains", stats.shadowed),
            ("Blocked domains", stats.minimal),
            ("Explicitly allowed domains", stats.overrides),
        ]
    )
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

    html = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Servers Blacklist // Run Report</title>
    <script src="https://cdn.plot.ly/plotly-latest.min.js"></script>
    <style>
        body {{ background: #000; color: {COLORS['text']}; font-family: 'JetBrains Mono', monospace; margin: 0; padding: 20px; }}
        h3 {{ color: {COLORS['accent']}; font-size: 14px; text-transform: uppercase; letter-spacing: 1px; }}
        .grid {{ display: grid; grid-template-columns: 1fr 1fr; gap: 20px; }}
        .card {{ border: 1px solid rgba(0, 243, 255, 0.2); border-radius: 4px; padding: 20px; }}
        td.num {{ text-align: right; color: {COLORS['danger']}; padding-left: 20px; }}
    </style>
</head>
<body>
    <h3>Run of {generated}</h3>
    <div class="grid">
        <div class="card"><h3>Summary</h3><table>{rows}</table></div>
        <div class="card"><h3>Suffix Distribution</h3>{fig_suffix.to_html(full_html=False, include_plotlyjs=False)}</div>
        <div class="card"><h3>Top Shadowed Partitions</h3>{fig_top.to_html(full_html=False, include_plotlyjs=False)}</div>
        <div class="card"><h3>History</h3>{fig_hist.to_html(full_html=False, include_plotlyjs=False)}</div>
    </div>
</body>
</html>
"""

    with open(path, "w", encoding="utf-8") as f:
        f.write(html)
    return path
