"""Admin exports: per-user text report and CSV of all submissions."""
import csv
import io
import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable

from jinja2 import Environment, FileSystemLoader

from diagnosis.services.module_schema import MODULES

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

MODULE_TITLES = {
    "mentor": "O Mentor",
    "mentee": "O Mentorado",
    "method": "O Método",
    "delivery": "A Entrega",
}

CSV_COLUMNS = ["id", "name", "email", "status", "progress_percentage", "last_updated"] + [
    f"{module}_percentage" for module in MODULES
]

env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    keep_trailing_newline=True,
    trim_blocks=True,
    autoescape=False,
)


def render_user_report(detail: Dict[str, Any], generated_at: datetime = None) -> str:
    generated_at = generated_at or datetime.now()
    sections = [
        {
            "title": MODULE_TITLES[module],
            "percentage": detail["modules"][module]["percentage"],
            "body": json.dumps(detail["formData"].get(module, {}), indent=2, ensure_ascii=False),
        }
        for module in MODULES
    ]
    template = env.get_template("reports/user_report.txt")
    return template.render(
        user=detail,
        sections=sections,
        rule="=" * 60,
        divider="-" * 60,
        generated_at=generated_at.strftime("%d/%m/%Y %H:%M:%S"),
    )


def report_filename(name: str, when: datetime = None) -> str:
    when = when or datetime.now()
    slug = re.sub(r"\s+", "-", (name or "usuario").strip()) or "usuario"
    slug = re.sub(r"[^\w\-]", "", slug)
    return f"relatorio-{slug}-{when.strftime('%Y%m%d%H%M%S')}.txt"


def export_csv(details: Iterable[Dict[str, Any]]) -> str:
    """One row per submission with aggregate and per-module percentages"""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
    writer.writeheader()
    for detail in details:
        row = {
            "id": detail["id"],
            "name": detail.get("name") or "",
            "email": detail["email"],
            "status": detail["status"],
            "progress_percentage": detail["progressPercentage"],
            "last_updated": detail["lastUpdated"].isoformat() if detail.get("lastUpdated") else "",
        }
        for module in MODULES:
            row[f"{module}_percentage"] = detail["modules"][module]["percentage"]
        writer.writerow(row)
    return buffer.getvalue()
