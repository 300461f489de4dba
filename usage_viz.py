"""Render usage charts as PNG files.

Reads a session export, builds the analytics payload and saves:

- daily_download.png: daily download volume with rolling averages
- daily_upload.png: daily upload volume with rolling averages
- hourly_heatmap.png: active minutes by weekday and hour of day
"""

from __future__ import annotations

import os
import sys
from typing import Any

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
import seaborn as sns  # noqa: E402

from analytics import build_dashboard_payload  # noqa: E402

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def daily_frame(payload: dict[str, Any]) -> pd.DataFrame:
    """Build an ascending daily DataFrame with rolling and cumulative averages."""
    df = pd.DataFrame(payload["daily"])
    if df.empty:
        return df
    df["date"] = pd.to_datetime(df["date"])
    df = df.sort_values("date").reset_index(drop=True)

    for column in ("total_download_mb", "total_upload_mb"):
        df[f"{column}_7_day_avg"] = df[column].rolling(window=7, min_periods=1).mean()
        df[f"{column}_28_day_avg"] = df[column].rolling(window=28, min_periods=1).mean()
        df[f"{column}_cumulative_avg"] = df[column].expanding().mean()
    return df


def _plot_daily(df: pd.DataFrame, column: str, title: str, color: str, path: str) -> None:
    plt.figure(figsize=(15, 8))
    plt.bar(df['date'], df[column], alpha=0.5, color=color, label='Daily Total')
    plt.plot(df['date'], df[f'{column}_7_day_avg'], color='red', linewidth=2, label='7-day Average')
    plt.plot(df['date'], df[f'{column}_28_day_avg'], color='green', linewidth=2, label='28-day Average')
    plt.plot(df['date'], df[f'{column}_cumulative_avg'], color='purple', linewidth=2, label='Lifetime Average to Date')
    plt.title(title, fontsize=14, pad=20)
    plt.xlabel('Date', fontsize=12)
    plt.ylabel('Megabytes', fontsize=12)
    plt.grid(True, alpha=0.3)
    plt.legend()
    plt.xticks(rotation=45)
    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches='tight')
    plt.close()


def _plot_hourly_heatmap(hourly: dict[str, Any], path: str) -> None:
    minutes = pd.DataFrame(hourly["heatmap"], index=WEEKDAYS).div(60).round(1)
    plt.figure(figsize=(15, 5))
    sns.heatmap(minutes, cmap="Blues", cbar_kws={"label": "Active minutes"})
    plt.title('Active Time by Weekday and Hour', fontsize=14, pad=20)
    plt.xlabel('Hour of Day', fontsize=12)
    plt.ylabel('')
    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches='tight')
    plt.close()


def render_charts(payload: dict[str, Any], output_dir: str = "usage_analytics") -> list[str]:
    """Render all charts for *payload* into *output_dir*.

    Returns:
        Paths of the files written.  Daily charts are skipped when there
        are no day aggregates.
    """
    os.makedirs(output_dir, exist_ok=True)
    sns.set_theme(style="whitegrid")
    written = []

    df = daily_frame(payload)
    if not df.empty:
        download_path = os.path.join(output_dir, "daily_download.png")
        _plot_daily(df, "total_download_mb", "Daily Download with Rolling Averages", "skyblue", download_path)
        upload_path = os.path.join(output_dir, "daily_upload.png")
        _plot_daily(df, "total_upload_mb", "Daily Upload with Rolling Averages", "lightcoral", upload_path)
        written += [download_path, upload_path]

    heatmap_path = os.path.join(output_dir, "hourly_heatmap.png")
    _plot_hourly_heatmap(payload["hourly"], heatmap_path)
    written.append(heatmap_path)
    return written


if __name__ == "__main__":
    source = sys.argv[1] if len(sys.argv) > 1 else "sessions.json"
    files = render_charts(build_dashboard_payload(source))
    print(f"Visualizations have been saved: {', '.join(files)}")
